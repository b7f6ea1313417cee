from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from vsl_studio.suggest.coordinator import (
    CompleteFn,
    SuggestionCoordinator,
    SuggestionPolicy,
    SuggestionState,
    multi_line_policy,
    single_line_policy,
)
from vsl_studio.suggest.geometry import (
    FieldMetrics,
    GhostPosition,
    approximate_caret_left,
    caret_position,
)
from vsl_studio.suggest.text import clean_suggestion


ACCEPT_KEYS = frozenset({"Tab", "ArrowRight"})
DISMISS_KEY = "Escape"


@dataclass
class KeyEvent:
    key: str
    default_prevented: bool = False

    def prevent_default(self) -> None:
        self.default_prevented = True


KeyHandler = Callable[[KeyEvent], None]
ChangeHandler = Callable[[str], None]


class SuggestionField:
    """
    Headless text field with inline ghost-text suggestions.

    A UI adapter forwards its widget events here (``change``, ``key_down``,
    ``move_caret``) and renders ``ghost_text`` at ``ghost_position``. Each field
    builds its own coordinator on mount; nothing is shared between fields.
    """

    def __init__(
        self,
        complete: CompleteFn,
        policy: SuggestionPolicy,
        metrics: FieldMetrics | None = None,
        value: str = "",
        on_change: ChangeHandler | None = None,
        on_key_down: KeyHandler | None = None,
    ) -> None:
        self.value = value
        self.caret = len(value)
        self.metrics = metrics or FieldMetrics()
        self.on_change = on_change
        self.on_key_down = on_key_down
        self.ghost_position: GhostPosition | None = None
        self.coordinator = SuggestionCoordinator(complete, policy=policy, on_change=self._suggestion_changed)

    @property
    def suggestion(self) -> SuggestionState:
        return self.coordinator.state

    @property
    def ghost_text(self) -> str:
        state = self.coordinator.state
        if not state.ready:
            return ""
        return clean_suggestion(state.text, self.value[: self.caret])

    def change(self, value: str, caret: int | None = None) -> None:
        self.value = value
        self.caret = len(value) if caret is None else caret
        if self.on_change is not None:
            self.on_change(value)
        self.coordinator.request_suggestion(value, self.caret)
        self._reposition()

    def key_down(self, key: str) -> KeyEvent:
        event = KeyEvent(key)
        if key == DISMISS_KEY:
            self.coordinator.clear_suggestion()
        elif key in ACCEPT_KEYS and self.coordinator.state.ready:
            event.prevent_default()
            accepted = self.coordinator.accept_suggestion(self.value, self.caret)
            self.value = accepted.text
            self.caret = accepted.caret
            if self.on_change is not None:
                self.on_change(self.value)

        if self.on_key_down is not None:
            self.on_key_down(event)
        return event

    def move_caret(self, caret: int) -> None:
        self.caret = max(0, min(caret, len(self.value)))
        self._reposition()

    def unmount(self) -> None:
        self.coordinator.close()
        self.ghost_position = None

    def _suggestion_changed(self, state: SuggestionState) -> None:
        self._reposition()

    def _reposition(self) -> None:
        if self.coordinator.state.ready:
            self.ghost_position = self.measure_caret()
        else:
            self.ghost_position = None

    def measure_caret(self) -> GhostPosition:
        raise NotImplementedError


class SingleLineField(SuggestionField):
    def __init__(self, complete: CompleteFn, policy: SuggestionPolicy | None = None, **kwargs) -> None:
        super().__init__(complete, policy or single_line_policy(), **kwargs)

    def measure_caret(self) -> GhostPosition:
        m = self.metrics
        return GhostPosition(
            top=m.padding_top,
            left=approximate_caret_left(self.caret, m),
            line_height=m.line_height,
        )


class MultiLineField(SuggestionField):
    def __init__(self, complete: CompleteFn, policy: SuggestionPolicy | None = None, font=None, **kwargs) -> None:
        self.font = font
        super().__init__(complete, policy or multi_line_policy(), **kwargs)

    def measure_caret(self) -> GhostPosition:
        return caret_position(self.value[: self.caret], self.metrics, font=self.font)

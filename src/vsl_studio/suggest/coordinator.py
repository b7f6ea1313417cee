from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, NamedTuple

from vsl_studio.config import settings
from vsl_studio.suggest.text import clean_suggestion, context_window, is_eligible


logger = logging.getLogger(__name__)

CompleteFn = Callable[[str], Awaitable[str]]


@dataclass(frozen=True)
class SuggestionPolicy:
    enabled: bool = True
    min_chars: int = 2
    max_context: int = 80
    # 0 dispatches on the keystroke itself; anything else defers by that many ms.
    debounce_ms: int = 0

    @property
    def debounced(self) -> bool:
        return self.debounce_ms > 0

    def with_debounce(self, debounce_ms: int | None = None) -> "SuggestionPolicy":
        if debounce_ms is None:
            debounce_ms = settings.autocomplete_debounce_ms
        return replace(self, debounce_ms=debounce_ms)


def single_line_policy(**overrides) -> SuggestionPolicy:
    base = SuggestionPolicy(min_chars=settings.suggestion_min_chars, max_context=settings.single_line_max_context)
    return replace(base, **overrides)


def multi_line_policy(**overrides) -> SuggestionPolicy:
    base = SuggestionPolicy(min_chars=settings.suggestion_min_chars, max_context=settings.multi_line_max_context)
    return replace(base, **overrides)


@dataclass(frozen=True)
class SuggestionState:
    text: str = ""
    is_loading: bool = False
    visible: bool = False

    @property
    def ready(self) -> bool:
        return self.visible and bool(self.text) and not self.is_loading


IDLE = SuggestionState()
PENDING = SuggestionState(text="", is_loading=True, visible=True)


@dataclass(frozen=True)
class SuggestionRequest:
    fragment: str
    issued_at: float


class Acceptance(NamedTuple):
    text: str
    inserted: str
    caret: int


class SuggestionCoordinator:
    """
    Owns the ghost-text suggestion for one text field.

    Idle -> Pending (request issued) -> Ready (non-empty answer) -> Idle again on
    accept, clear or ineligible input. A failed or aborted request goes straight
    from Pending back to Idle. Only the most recent request may change state:
    issuing a new one cancels the previous task, and a response whose request is
    no longer current is dropped.

    Must be driven from a running event loop; ``request_suggestion`` schedules
    work on it and returns immediately.
    """

    def __init__(
        self,
        complete: CompleteFn,
        policy: SuggestionPolicy | None = None,
        on_change: Callable[[SuggestionState], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.policy = policy or multi_line_policy()
        self._complete = complete
        self._on_change = on_change
        self._clock = clock
        self._state = IDLE
        self._last_context = ""
        self._request: SuggestionRequest | None = None
        self._task: asyncio.Task | None = None
        self._timer: asyncio.TimerHandle | None = None

    @property
    def state(self) -> SuggestionState:
        return self._state

    @property
    def current_request(self) -> SuggestionRequest | None:
        return self._request

    def request_suggestion(self, full_text: str, caret: int) -> None:
        context = context_window(full_text, caret, self.policy.max_context)
        if not self.policy.enabled or not is_eligible(context, self.policy.min_chars):
            self.clear_suggestion()
            return

        if context == self._last_context:
            # Nothing changed in the trailing window; drop any deferred call for an older one.
            if self._timer is not None:
                self._cancel_timer()
                if not self._inflight():
                    # The shown text was computed for this very window.
                    self._set_state(replace(self._state, is_loading=False) if self._state.text else IDLE)
            return

        if self.policy.debounced:
            self._cancel_timer()
            # The current text belongs to an older window; hold it back until the deferred call lands.
            self._set_state(replace(self._state, is_loading=True, visible=True))
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(self.policy.debounce_ms / 1000, self._fire, context)
        else:
            self._issue(context)

    def accept_suggestion(self, full_text: str, caret: int) -> Acceptance:
        if not self._state.ready:
            return Acceptance(full_text, "", caret)

        before, after = full_text[:caret], full_text[caret:]
        inserted = clean_suggestion(self._state.text, before)
        self.clear_suggestion()
        return Acceptance(before + inserted + after, inserted, caret + len(inserted))

    def clear_suggestion(self) -> None:
        self._cancel_timer()
        self._cancel_inflight()
        self._request = None
        self._last_context = ""
        self._set_state(IDLE)

    def close(self) -> None:
        """Field unmount."""
        self.clear_suggestion()

    def _fire(self, context: str) -> None:
        self._timer = None
        if context != self._last_context:
            self._issue(context)

    def _issue(self, context: str) -> None:
        self._cancel_inflight()
        request = SuggestionRequest(fragment=context, issued_at=self._clock())
        self._request = request
        self._last_context = context
        self._set_state(PENDING)
        self._task = asyncio.get_running_loop().create_task(self._fetch(request))

    async def _fetch(self, request: SuggestionRequest) -> None:
        try:
            text = await self._complete(request.fragment)
        except asyncio.CancelledError:
            logger.debug("Suggestion request for %r aborted", request.fragment)
            raise
        except Exception as exc:
            if request is self._request:
                logger.warning("Suggestion request for %r failed: %s", request.fragment, exc)
                self._request = None
                self._last_context = ""
                self._set_state(IDLE)
            return

        if request is not self._request:
            logger.debug("Dropping stale suggestion for %r", request.fragment)
            return

        text = text or ""
        self._task = None
        if text:
            self._set_state(SuggestionState(text=text, is_loading=False, visible=True))
        else:
            self._set_state(IDLE)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _inflight(self) -> bool:
        return self._task is not None and not self._task.done()

    def _cancel_inflight(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _set_state(self, state: SuggestionState) -> None:
        if state == self._state:
            return
        self._state = state
        if self._on_change is not None:
            self._on_change(state)

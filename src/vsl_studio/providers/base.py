from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class GeneratedText:
    text: str
    prompt_used: str
    provider: str
    model: str
    raw_metadata: dict[str, Any]


class TextProvider(Protocol):
    name: str

    async def generate_text(self, prompt: str, model: str | None = None) -> GeneratedText: ...

    async def complete_fragment(self, fragment: str) -> str: ...

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import NamedTuple

from PIL import ImageFont


@dataclass(frozen=True)
class FieldMetrics:
    """Box model of a rendered text field, in pixels."""

    font_size: int = 14
    line_height: int = 20
    width: int = 480
    padding_left: int = 12
    padding_right: int = 12
    padding_top: int = 8
    font_path: str | None = None

    @property
    def inner_width(self) -> int:
        return max(1, self.width - self.padding_left - self.padding_right)


class GhostPosition(NamedTuple):
    top: float
    left: float
    line_height: float


_FONT_CANDIDATES = (
    "assets/fonts/DejaVuSans.ttf",
    "assets/fonts/Inter-Regular.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/System/Library/Fonts/Supplemental/Arial.ttf",
    "/System/Library/Fonts/Helvetica.ttc",
    "/Library/Fonts/Arial.ttf",
    "C:\\Windows\\Fonts\\arial.ttf",
)


@lru_cache(maxsize=32)
def load_font(size: int, font_path: str | None = None) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """
    Prefer the requested TTF, then common system fonts. If none is found, fall back to
    Pillow's default font so measurement still works (just less precisely).
    """
    candidates = ((font_path,) if font_path else ()) + _FONT_CANDIDATES
    for c in candidates:
        p = Path(c)
        if p.exists():
            try:
                return ImageFont.truetype(str(p), size=size)
            except OSError:
                continue
    return ImageFont.load_default()


def text_width(text: str, font) -> float:
    if not text:
        return 0.0
    return float(font.getlength(text))


_TOKENS = re.compile(r"\S+|[^\S\n]+")


def wrap_lines(text: str, font, max_w: float) -> list[str]:
    """
    Lay ``text`` out like a ``white-space: pre-wrap; word-wrap: break-word`` box:
    explicit newlines always break, words wrap at ``max_w``, whitespace never
    starts a wrap, and a single word wider than the box is split by character.
    """
    lines: list[str] = []
    for paragraph in text.split("\n"):
        cur = ""
        for token in _TOKENS.findall(paragraph):
            trial = cur + token
            if token.isspace() or text_width(trial, font) <= max_w:
                cur = trial
                continue
            if cur.strip():
                lines.append(cur)
                cur = ""
            # Token alone on a fresh line; break it up if it still doesn't fit.
            for ch in token:
                if cur and text_width(cur + ch, font) > max_w:
                    lines.append(cur)
                    cur = ""
                cur += ch
        lines.append(cur)
    return lines


def caret_position(text_before_caret: str, metrics: FieldMetrics, font=None) -> GhostPosition:
    """Pixel offset (relative to the field's border box) where the caret glyph sits."""
    font = font or load_font(metrics.font_size, metrics.font_path)
    lines = wrap_lines(text_before_caret, font, metrics.inner_width)
    return GhostPosition(
        top=metrics.padding_top + (len(lines) - 1) * metrics.line_height,
        left=metrics.padding_left + text_width(lines[-1], font),
        line_height=metrics.line_height,
    )


def approximate_caret_left(n_chars: int, metrics: FieldMetrics) -> float:
    """Single-line fields: roughly 0.6em per character after the left padding."""
    return metrics.padding_left + n_chars * 0.6 * metrics.font_size

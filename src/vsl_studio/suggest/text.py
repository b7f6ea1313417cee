"""Pure string helpers behind inline suggestions: context extraction, eligibility, cleanup."""

from __future__ import annotations

import re

_WS = re.compile(r"\s+")

# Punctuation the completion model tends to echo around its answer.
ARTIFACT_PATTERNS = (
    re.compile(r"^[\"'“”‘’]\s*"),
    re.compile(r"\s*[\"'“”‘’]$"),
    re.compile(r"^\s*[-–—]\s*"),
    re.compile(r"^\s*\.\s*"),
)

# Eligibility thresholds on the trimmed context.
AFTER_WORD_MIN_CHARS = 5
LONG_CONTEXT_CHARS = 10


def last_token(text: str) -> str:
    """Last whitespace-separated token; empty when ``text`` ends in whitespace."""
    return _WS.split(text)[-1]


def context_window(full_text: str, caret: int, max_context: int) -> str:
    caret = max(0, min(caret, len(full_text)))
    before = full_text[:caret]
    return before[-max_context:] if max_context > 0 else before


def is_eligible(context: str, min_chars: int) -> bool:
    trimmed = context.strip()
    if len(trimmed) < min_chars:
        return False
    mid_word = len(last_token(context)) >= 1
    after_word = context[-1:].isspace() and len(trimmed) >= AFTER_WORD_MIN_CHARS
    return mid_word or after_word or len(trimmed) >= LONG_CONTEXT_CHARS


def clean_suggestion(raw: str, context_tail: str) -> str:
    """
    Normalize a raw completion before it is shown or inserted at the caret.

    Strips echoed quotes, a leading dash marker and a leading period, then drops a
    prefix that repeats the word being typed (case-insensitive). A leading space in
    the raw completion survives as one space when the context doesn't already end
    in whitespace, so "Olá" + " tudo" stays two words.
    """
    if not raw:
        return ""

    clean = raw.strip()
    for pattern in ARTIFACT_PATTERNS:
        clean = pattern.sub("", clean, count=1)

    word = last_token(context_tail).lower()
    if word and clean.lower().startswith(word):
        return clean[len(word):]

    if clean and raw[:1].isspace() and context_tail and not context_tail[-1:].isspace():
        return " " + clean
    return clean

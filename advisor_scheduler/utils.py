"""Shared text helpers used across the conversation core."""

import re

_AFFIRMATIVE = re.compile(r"\b(yes|correct|right|confirm|confirmed)\b")
_NEGATIVE = re.compile(r"\b(no|nope|don't|do not|keep it)\b")


def normalize_text(value: str) -> str:
    """Lower-case a message and collapse runs of whitespace.

    Examples:
        >>> normalize_text("  Tomorrow   AFTERNOON ")
        'tomorrow afternoon'
    """
    return re.sub(r"\s+", " ", value).strip().lower()


def contains_any(text: str, phrases: list[str]) -> bool:
    """Case-insensitive substring check against a list of phrases."""
    lower = text.lower()
    return any(phrase in lower for phrase in phrases)


def is_affirmative(text: str) -> bool:
    """True for an explicit yes / correct / right / confirm, or a bare 'y'."""
    normalized = normalize_text(text)
    return normalized == "y" or bool(_AFFIRMATIVE.search(normalized))


def is_negative(text: str) -> bool:
    """True when the user explicitly declines."""
    normalized = normalize_text(text)
    return normalized == "n" or bool(_NEGATIVE.search(normalized))

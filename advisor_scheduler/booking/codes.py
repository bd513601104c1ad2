"""
Booking code generation and validation.

Codes look like ``NL-A742``: a fixed prefix, one uppercase letter and
three digits. They are short enough to read aloud and are the only handle
a caller needs to reschedule or cancel.
"""

import logging
import random
import re
import string
from typing import Callable, Optional

logger = logging.getLogger(__name__)

CODE_PREFIX = "NL-"
_CODE_RE = re.compile(r"^NL-[A-Z]\d{3}$")
_CODE_IN_TEXT_RE = re.compile(r"\bNL-[A-Z]\d{3}\b", re.IGNORECASE)


class BookingCodeExhaustedError(Exception):
    """No unused booking code could be found within the allowed attempts."""


def generate_booking_code() -> str:
    letter = random.choice(string.ascii_uppercase)
    digits = random.randint(100, 999)
    return f"{CODE_PREFIX}{letter}{digits}"


def validate_booking_code(code: str) -> bool:
    return bool(code) and bool(_CODE_RE.match(code))


def extract_booking_code(text: str) -> Optional[str]:
    """Find the first code-shaped token in free text, normalized to upper case.

    Examples:
        >>> extract_booking_code("my code is nl-a742 thanks")
        'NL-A742'
    """
    if not text:
        return None
    match = _CODE_IN_TEXT_RE.search(text)
    return match.group(0).upper() if match else None


def generate_unique_booking_code(
    in_use: Callable[[str], bool], max_attempts: int = 50
) -> str:
    """Generate a code that ``in_use`` reports as free.

    Raises:
        BookingCodeExhaustedError: if every attempt collided.
    """
    for _ in range(max_attempts):
        code = generate_booking_code()
        if not in_use(code):
            return code
    logger.error("No free booking code after %d attempts", max_attempts)
    raise BookingCodeExhaustedError(
        f"Could not generate a unique booking code after {max_attempts} attempts"
    )

"""
Duration input for the hours ledger.
Users type hours as bare digits ("8", "730", "1030"); punctuation such as "7:30" is ignored.
"""
import math
import re
from decimal import Decimal, ROUND_HALF_UP

from errors import InvalidDuration

_NON_DIGITS = re.compile(r"[^\d]")
_STORAGE_UNIT = Decimal("0.01")


def _digits(text: str | None) -> str:
    return _NON_DIGITS.sub("", text or "")


def _hours_from_digits(digits: str) -> float | None:
    """Apply the length rules; None when the digit string is unusable."""
    n = len(digits)
    if n == 0 or n > 4:
        return None
    if n <= 2:
        return float(int(digits))
    if n == 3:
        return int(digits[:1]) + int(digits[1:]) / 60.0
    return int(digits[:2]) + int(digits[2:]) / 60.0


def parse_duration(text: str | None) -> float:
    """Parse free-form duration input into fractional hours.
    1-2 digits are whole hours, 3 digits H+MM, 4 digits HH+MM. Anything else gives 0.0."""
    hours = _hours_from_digits(_digits(text))
    return hours if hours is not None else 0.0


def parse_duration_strict(text: str | None) -> float:
    """Like parse_duration, but raise InvalidDuration for non-blank input that cannot be read.
    Blank input is 0.0 (an untouched field)."""
    if not (text or "").strip():
        return 0.0
    hours = _hours_from_digits(_digits(text))
    if hours is None:
        raise InvalidDuration(f"Cannot read duration {text!r}; use 8, 730 or 1030.")
    return hours


def format_duration(hours: float) -> str:
    """Format fractional hours as HH:MM. Negative values get a leading '-'."""
    sign = "-" if hours < 0 else ""
    hours = abs(hours)
    whole = math.floor(hours)
    minutes = int(Decimal(str((hours - whole) * 60)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if minutes == 60:
        whole += 1
        minutes = 0
    return f"{sign}{whole:02d}:{minutes:02d}"


def to_storage_decimal(hours: float) -> float:
    """Round to two decimal places (half up) for persistence and comparisons."""
    return float(Decimal(str(hours)).quantize(_STORAGE_UNIT, rounding=ROUND_HALF_UP))


def to_hundredths(hours: float) -> int:
    """Storage rounding as an integer count of hundredths of an hour."""
    return int(Decimal(str(hours)).quantize(_STORAGE_UNIT, rounding=ROUND_HALF_UP) * 100)

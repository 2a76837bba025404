"""
Tests for duration parsing and formatting.
"""
import pytest

from duration import (
    format_duration,
    parse_duration,
    parse_duration_strict,
    to_hundredths,
    to_storage_decimal,
)
from errors import InvalidDuration


class TestParseDuration:
    """Digit-length rules."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("8", 8.0),
            ("10", 10.0),
            ("130", 1.5),
            ("730", 7.5),
            ("1030", 10.5),
            ("0", 0.0),
            ("0045", 0.75),
        ],
    )
    def test_digit_rules(self, text, expected):
        """Up to two digits are hours; three or four digits end in minutes."""
        assert parse_duration(text) == pytest.approx(expected)

    def test_punctuation_is_ignored(self):
        """'7:30' and ' 7h30 ' read the same as '730'."""
        assert parse_duration("7:30") == pytest.approx(7.5)
        assert parse_duration(" 7h30 ") == pytest.approx(7.5)

    @pytest.mark.parametrize("text", ["", None, "abc", "99999", "123456"])
    def test_fails_closed(self, text):
        """Blank, unreadable or too-long input reads as zero."""
        assert parse_duration(text) == 0

    def test_returns_float(self):
        """Whole hours still come back as a float."""
        assert isinstance(parse_duration("8"), float)


class TestParseDurationStrict:
    """Strict parsing separates blank input from unreadable input."""

    def test_blank_is_zero(self):
        """Empty, whitespace and None input are zero."""
        assert parse_duration_strict("") == 0.0
        assert parse_duration_strict("   ") == 0.0
        assert parse_duration_strict(None) == 0.0

    def test_valid_input_matches_lenient(self):
        """Readable input parses the same as with parse_duration."""
        assert parse_duration_strict("1030") == parse_duration("1030")

    @pytest.mark.parametrize("text", ["abc", "99999", "--"])
    def test_unreadable_raises(self, text):
        """Unreadable or too-long input raises InvalidDuration."""
        with pytest.raises(InvalidDuration):
            parse_duration_strict(text)


class TestFormatDuration:
    """HH:MM display of decimal hours."""

    @pytest.mark.parametrize(
        "hours, expected",
        [
            (8.0, "08:00"),
            (7.5, "07:30"),
            (10.5, "10:30"),
            (0.0, "00:00"),
            (0.25, "00:15"),
            (7 + 10 / 60, "07:10"),
        ],
    )
    def test_format(self, hours, expected):
        """Decimal hours become zero-padded HH:MM."""
        assert format_duration(hours) == expected

    def test_rounded_minutes_carry_into_hour(self):
        """Minutes that round up to 60 become the next hour."""
        assert format_duration(7.999) == "08:00"

    def test_negative_hours_keep_sign(self):
        """Over-allocated remaining hours are shown, not clamped."""
        assert format_duration(-1.5) == "-01:30"


class TestRoundTrip:
    """parse -> format reproduces HH:MM within one minute for valid inputs."""

    @pytest.mark.parametrize("hours", [0, 1, 7, 9, 12, 23])
    @pytest.mark.parametrize("minutes", [0, 1, 15, 29, 30, 45, 59])
    def test_four_digit_round_trip(self, hours, minutes):
        """Four-digit input formats back to within a minute."""
        text = f"{hours:02d}{minutes:02d}"
        formatted = format_duration(parse_duration(text))
        fh, fm = (int(x) for x in formatted.split(":"))
        assert abs((fh * 60 + fm) - (hours * 60 + minutes)) <= 1

    def test_three_digit_round_trip(self):
        """Three-digit input formats back exactly."""
        assert format_duration(parse_duration("745")) == "07:45"


class TestStorageRounding:
    """Two-decimal storage values and hundredths for comparison."""

    def test_two_decimals(self):
        """Values are kept to two decimals."""
        assert to_storage_decimal(7 + 10 / 60) == 7.17
        assert to_storage_decimal(8.0) == 8.0

    def test_half_up(self):
        """Halves round up, not to even."""
        assert to_storage_decimal(0.125) == 0.13

    def test_hundredths(self):
        """Hours convert to whole hundredths after rounding."""
        assert to_hundredths(8.01) == 801
        assert to_hundredths(7.999) == 800

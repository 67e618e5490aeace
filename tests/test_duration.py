import pytest

from core.duration import MAX_SECONDS, format_duration, parse_duration
from core.errors import ParseError, ValidationError


@pytest.mark.parametrize("text, seconds", [
    ("0", 0),
    ("1s", 1),
    ("1m", 60),
    ("1h", 3600),
    ("1d", 86400),
    ("1d2h3m4s", 93784),
    ("90s", 90),
    ("1h30m", 5400),
    ("2s1m", 62),
])
def test_parse_duration(text, seconds):
    assert parse_duration(text) == seconds


@pytest.mark.parametrize("seconds, text", [
    (0, "0"),
    (59, "59s"),
    (3600, "1h"),
    (90061, "1d1h1s"),
    (86400 * 7 + 60, "7d1m"),
])
def test_format_duration(seconds, text):
    assert format_duration(seconds) == text


def test_round_trip_over_unit_components():
    for d in (0, 1, 3):
        for h in (0, 5, 23):
            for m in (0, 1, 59):
                for s in (0, 30, 59):
                    total = d * 86400 + h * 3600 + m * 60 + s
                    assert parse_duration(format_duration(total)) == total


def test_empty_string_fails():
    with pytest.raises(ParseError):
        parse_duration("")


def test_unknown_unit_fails():
    with pytest.raises(ParseError) as exc:
        parse_duration("5x")
    assert "unknown unit" in str(exc.value)


def test_missing_unit_fails():
    with pytest.raises(ParseError):
        parse_duration("5")


def test_missing_number_fails():
    with pytest.raises(ParseError):
        parse_duration("h")


def test_overflow_fails():
    parse_duration(f"{MAX_SECONDS}s")
    with pytest.raises(ParseError):
        parse_duration(f"{MAX_SECONDS}s1s")
    with pytest.raises(ParseError):
        parse_duration(f"{MAX_SECONDS}d")
    with pytest.raises(ParseError):
        parse_duration("9" * 5000 + "s")


def test_leading_zeros_allowed():
    assert parse_duration("0" * 30 + "90s") == 90


def test_parse_error_is_validation_error():
    with pytest.raises(ValidationError) as exc:
        parse_duration("1w")
    assert exc.value.field == "ttl"

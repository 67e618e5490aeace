"""
Compact RouterOS duration strings such as "1d2h3m4s".

Valid units are "d", "h", "m" and "s". The literal "0" means zero seconds.
"""
from core.errors import ParseError

MAX_SECONDS = (1 << 63) - 1

UNITS = {
    "d": 86400,
    "h": 3600,
    "m": 60,
    "s": 1,
}


def parse_duration(s: str) -> int:
    """Parses a duration string into a number of seconds."""
    orig = s
    if s == "0":
        return 0
    if not s:
        raise ParseError(orig, "invalid duration ''")

    total = 0
    while s:
        # [0-9]+
        i = 0
        while i < len(s) and s[i].isdigit() and s[i].isascii():
            i += 1
        if i == 0:
            raise ParseError(orig, f"invalid duration {orig!r}")
        digits = s[:i].lstrip("0") or "0"
        s = s[i:]
        if len(digits) > len(str(MAX_SECONDS)):
            raise ParseError(orig, f"invalid duration {orig!r}")
        value = int(digits)

        # единица измерения: всё до следующей цифры
        j = 0
        while j < len(s) and not s[j].isdigit():
            j += 1
        if j == 0:
            raise ParseError(orig, f"missing unit in duration {orig!r}")
        unit = s[:j]
        s = s[j:]
        if unit not in UNITS:
            raise ParseError(orig, f"unknown unit {unit!r} in duration {orig!r}")

        if value > MAX_SECONDS // UNITS[unit]:
            raise ParseError(orig, f"invalid duration {orig!r}")
        total += value * UNITS[unit]
        if total > MAX_SECONDS:
            raise ParseError(orig, f"invalid duration {orig!r}")

    return total


def format_duration(seconds: int) -> str:
    """Formats seconds as "1d18h3m5s", omitting zero components."""
    if seconds < 0:
        raise ValueError(f"negative duration: {seconds}")
    if seconds == 0:
        return "0"

    parts = []
    for unit, size in UNITS.items():
        value, seconds = divmod(seconds, size)
        if value:
            parts.append(f"{value}{unit}")
    return "".join(parts)

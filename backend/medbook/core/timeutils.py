"""Clock-time helpers: "HH:MM" strings <-> minute offsets since midnight."""
import re

from medbook.core.errors import FormatError

CLOCK_PATTERN = re.compile(r"([0-1]?[0-9]|2[0-3]):[0-5][0-9]")
MINUTES_PER_DAY = 24 * 60


def to_minutes(clock: str) -> int:
    """Parse "HH:MM" (hour may be a single digit) into 0..1439."""
    if not isinstance(clock, str) or not CLOCK_PATTERN.fullmatch(clock):
        raise FormatError(f"Invalid time '{clock}', expected HH:MM")
    hours, minutes = clock.split(":")
    return int(hours) * 60 + int(minutes)


def from_minutes(n: int) -> str:
    if not 0 <= n < MINUTES_PER_DAY:
        raise FormatError(f"Minute offset {n} is outside a single day")
    return f"{n // 60:02d}:{n % 60:02d}"


def normalize(clock: str) -> str:
    """Zero-pad a clock string, e.g. "9:05" -> "09:05"."""
    return from_minutes(to_minutes(clock))


def is_valid_range(start: str, end: str) -> bool:
    return to_minutes(end) > to_minutes(start)


def is_clock(value) -> bool:
    return isinstance(value, str) and bool(CLOCK_PATTERN.fullmatch(value))

"""
Slot Generation

Splits a doctor's daily availability window into discrete bookable slots
and flags the ones already taken.
"""
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Union

from medbook.config.constants import ConflictMode, NO_AVAILABILITY_MESSAGE
from medbook.core.errors import FieldError, ValidationError
from medbook.core.timeutils import from_minutes, to_minutes
from medbook.scheduling.conflicts import any_conflict, resolve_mode


@dataclass(frozen=True)
class Slot:
    start_time: str
    end_time: str
    available: bool

    def as_dict(self) -> dict:
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "available": self.available,
        }


@dataclass
class DaySlots:
    """Slots for one doctor on one date. ``configured`` is False when no rule covers the day."""
    slots: List[Slot] = field(default_factory=list)
    configured: bool = True
    message: Optional[str] = None
    slot_duration_minutes: Optional[int] = None

    @classmethod
    def not_configured(cls) -> "DaySlots":
        return cls(slots=[], configured=False, message=NO_AVAILABILITY_MESSAGE)


def iter_slots(
    window_start: str,
    window_end: str,
    slot_duration_minutes: int,
    bookings: Iterable = (),
    mode: Union[ConflictMode, str, None] = None,
) -> Iterator[Slot]:
    """
    Yield slots [cursor, cursor + duration) from window_start while the slot
    still fits before window_end. A trailing partial slot is dropped.
    """
    if slot_duration_minutes <= 0:
        raise ValidationError(
            "Invalid slot duration",
            errors=[FieldError("slot_duration_minutes", "Slot duration must be positive")],
        )

    mode = resolve_mode(mode)
    bookings = list(bookings)
    cursor = to_minutes(window_start)
    end = to_minutes(window_end)

    while cursor + slot_duration_minutes <= end:
        slot_start = from_minutes(cursor)
        slot_end = from_minutes(cursor + slot_duration_minutes)
        taken = any_conflict(slot_start, slot_end, bookings, mode)
        yield Slot(start_time=slot_start, end_time=slot_end, available=not taken)
        cursor += slot_duration_minutes


def generate_slots(
    window_start: str,
    window_end: str,
    slot_duration_minutes: int,
    bookings: Iterable = (),
    mode: Union[ConflictMode, str, None] = None,
) -> List[Slot]:
    return list(iter_slots(window_start, window_end, slot_duration_minutes, bookings, mode))


def slots_for_rule(rule, bookings: Iterable = (), mode=None) -> DaySlots:
    """Build the day's slots from an availability rule, or the empty 'not configured' result."""
    if rule is None:
        return DaySlots.not_configured()
    return DaySlots(
        slots=generate_slots(
            rule.start_time, rule.end_time, rule.slot_duration_minutes, bookings, mode
        ),
        slot_duration_minutes=rule.slot_duration_minutes,
    )

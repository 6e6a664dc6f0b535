"""
Appointment conflict detection.

Two rules decide whether a requested interval collides with a booking:

- ``exact``: the booking starts at the same minute (legacy behaviour; a
  booking of a different length that only partially covers the request is
  not detected).
- ``overlap``: the two half-open intervals ``[start, end)`` intersect.

`booking_conflicts` is the pure predicate shared by the slot generator and
the booking pre-check; `has_conflict` runs the same rule against the
database. Neither replaces the partial unique index on
(doctor_id, appointment_date, start_time), which is what actually stops two
concurrent requests from booking the same slot.
"""
import logging
from datetime import date
from typing import Iterable, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from medbook.config.constants import ConflictMode
from medbook.config.settings import settings
from medbook.core.timeutils import to_minutes
from medbook.db.crud.appointment import find_conflicting_appointment

logger = logging.getLogger(__name__)


def resolve_mode(mode: Union[ConflictMode, str, None]) -> ConflictMode:
    if mode is None:
        mode = settings.conflict_mode
    return ConflictMode(mode)


def booking_conflicts(
    start_time: str,
    end_time: Optional[str],
    booking,
    mode: Union[ConflictMode, str, None] = None,
) -> bool:
    """
    Check a single booking (anything with start_time/end_time) against a
    requested interval. Without ``end_time`` the request is the point
    ``start_time``.
    """
    mode = resolve_mode(mode)
    start = to_minutes(start_time)
    booked_start = to_minutes(booking.start_time)

    if mode is ConflictMode.EXACT:
        return start == booked_start

    booked_end = to_minutes(booking.end_time)
    if end_time is None:
        return booked_start <= start < booked_end
    return start < booked_end and to_minutes(end_time) > booked_start


def any_conflict(
    start_time: str,
    end_time: Optional[str],
    bookings: Iterable,
    mode: Union[ConflictMode, str, None] = None,
) -> bool:
    mode = resolve_mode(mode)
    return any(booking_conflicts(start_time, end_time, b, mode) for b in bookings)


async def has_conflict(
    db: AsyncSession,
    doctor_id: int,
    appointment_date: date,
    start_time: str,
    end_time: Optional[str] = None,
    mode: Union[ConflictMode, str, None] = None,
    exclude_id: Optional[int] = None,
) -> bool:
    """
    Return True if an active appointment of ``doctor_id`` on ``appointment_date``
    collides with the requested slot under ``mode`` (defaults to settings).
    """
    mode = resolve_mode(mode)
    conflict = await find_conflicting_appointment(
        db,
        doctor_id=doctor_id,
        appointment_date=appointment_date,
        start_time=start_time,
        end_time=end_time,
        mode=mode,
        exclude_id=exclude_id,
    )
    if conflict is not None:
        logger.info(
            f"Conflict ({mode.value}) for doctor_id={doctor_id} on {appointment_date} "
            f"at {start_time}: appointment_id={conflict.id} ({conflict.start_time}-{conflict.end_time})"
        )
        return True
    return False

"""
Weekly availability service.

Reads a doctor's rule for a given date, merges it with that day's active
bookings into slots, and replaces the weekly schedule all-or-nothing.
"""
import logging
from datetime import date
from typing import Any, List, Mapping, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from medbook.core.errors import NotFoundError
from medbook.core.timeutils import normalize
from medbook.db.crud import availability as availability_crud
from medbook.db.crud.appointment import get_active_appointments_for_doctor_on_date
from medbook.db.crud.doctor import get_doctor
from medbook.db.models import AvailabilityRuleModel
from medbook.scheduling.slots import DaySlots, slots_for_rule
from medbook.scheduling.validation import raise_for_errors, validate_rules

logger = logging.getLogger(__name__)


def day_of_week(target_date: date) -> int:
    """0 = Sunday .. 6 = Saturday."""
    return target_date.isoweekday() % 7


async def get_day_slots(
    db: AsyncSession, doctor_id: int, target_date: date, mode=None
) -> DaySlots:
    """
    Bookable slots of a doctor on a date.

    Raises:
        NotFoundError: unknown doctor
    """
    doctor = await get_doctor(db, doctor_id)
    if doctor is None:
        raise NotFoundError("Doctor not found")

    rule = await availability_crud.get_rule_for_day(db, doctor_id, day_of_week(target_date))
    if rule is None:
        logger.info(f"No availability configured for doctor {doctor_id} on {target_date}")
        return DaySlots.not_configured()

    bookings = await get_active_appointments_for_doctor_on_date(db, doctor_id, target_date)
    day = slots_for_rule(rule, bookings, mode)
    logger.debug(
        f"Doctor {doctor_id} on {target_date}: {len(day.slots)} slots, "
        f"{sum(1 for s in day.slots if s.available)} available"
    )
    return day


async def replace_weekly_availability(
    db: AsyncSession, doctor_id: int, rules: Sequence[Mapping[str, Any]]
) -> List[AvailabilityRuleModel]:
    """
    Validate every rule, then swap the doctor's schedule in one transaction.
    Any invalid rule rejects the batch and leaves the stored set untouched.

    Raises:
        ValidationError: one or more rules are invalid
        NotFoundError: the caller has no doctor profile
    """
    raise_for_errors(validate_rules(rules), "Invalid availability")

    doctor = await get_doctor(db, doctor_id)
    if doctor is None:
        raise NotFoundError("Doctor profile not found")

    normalized = [
        {
            "day_of_week": rule["day_of_week"],
            "start_time": normalize(rule["start_time"]),
            "end_time": normalize(rule["end_time"]),
            "slot_duration_minutes": rule["slot_duration_minutes"],
            "is_active": rule.get("is_active", True),
        }
        for rule in rules
    ]
    new_rules = await availability_crud.replace_all(db, doctor_id, normalized)
    logger.info(f"Availability updated for doctor {doctor_id}: {len(new_rules)} rules")
    return new_rules


async def get_weekly_availability(
    db: AsyncSession, doctor_id: int
) -> List[AvailabilityRuleModel]:
    return await availability_crud.get_rules_for_doctor(db, doctor_id)

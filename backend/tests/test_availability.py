from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from medbook.config.constants import NO_AVAILABILITY_MESSAGE, AppointmentStatus
from medbook.core.errors import NotFoundError, ValidationError
from medbook.db.models import AppointmentModel, AvailabilityRuleModel
from medbook.scheduling.availability import (
    day_of_week,
    get_day_slots,
    get_weekly_availability,
    replace_weekly_availability,
)
from tests._helpers import next_weekday


def test_day_of_week_starts_on_sunday():
    sunday = next_weekday(0)

    assert day_of_week(sunday) == 0
    assert day_of_week(sunday + timedelta(days=1)) == 1
    assert day_of_week(sunday + timedelta(days=6)) == 6


async def test_day_slots_from_weekly_rule(db, doctor, weekday_rules, monday):
    day = await get_day_slots(db, doctor.id, monday)

    assert day.configured is True
    assert day.slot_duration_minutes == 30
    assert len(day.slots) == 16
    assert all(s.available for s in day.slots)


async def test_day_without_rule_is_empty_with_message(db, doctor, weekday_rules):
    sunday = next_weekday(0)

    day = await get_day_slots(db, doctor.id, sunday)

    assert day.configured is False
    assert day.slots == []
    assert day.message == NO_AVAILABILITY_MESSAGE


async def test_inactive_rule_is_ignored(db, doctor):
    db.add(
        AvailabilityRuleModel(
            doctor_id=doctor.id,
            day_of_week=3,
            start_time="09:00",
            end_time="12:00",
            slot_duration_minutes=30,
            is_active=False,
        )
    )
    await db.commit()

    day = await get_day_slots(db, doctor.id, next_weekday(3))
    assert day.configured is False


async def test_booked_and_cancelled_slots(db, patient, doctor, weekday_rules, monday):
    for start, end, status in [
        ("10:00", "10:30", AppointmentStatus.scheduled.value),
        ("11:00", "11:30", AppointmentStatus.cancelled.value),
    ]:
        db.add(
            AppointmentModel(
                patient_id=patient.id,
                doctor_id=doctor.id,
                appointment_date=monday,
                start_time=start,
                end_time=end,
                status=status,
                consultation_fee=Decimal("100.00"),
                follow_up_required=False,
            )
        )
    await db.commit()

    day = await get_day_slots(db, doctor.id, monday)

    unavailable = [s.start_time for s in day.slots if not s.available]
    assert unavailable == ["10:00"]


async def test_unknown_doctor_is_not_found(db):
    with pytest.raises(NotFoundError):
        await get_day_slots(db, 999, next_weekday(1))


async def test_replace_swaps_whole_schedule(db, doctor, weekday_rules):
    new_rules = await replace_weekly_availability(
        db,
        doctor.id,
        [
            {"day_of_week": 2, "start_time": "8:00", "end_time": "12:00", "slot_duration_minutes": 20},
            {"day_of_week": 4, "start_time": "13:00", "end_time": "18:00", "slot_duration_minutes": 60},
        ],
    )

    assert [r.day_of_week for r in new_rules] == [2, 4]
    assert new_rules[0].start_time == "08:00"

    stored = await get_weekly_availability(db, doctor.id)
    assert [(r.day_of_week, r.start_time, r.end_time) for r in stored] == [
        (2, "08:00", "12:00"),
        (4, "13:00", "18:00"),
    ]


async def test_invalid_rule_leaves_schedule_untouched(db, session_factory, doctor, weekday_rules):
    with pytest.raises(ValidationError) as exc_info:
        await replace_weekly_availability(
            db,
            doctor.id,
            [
                {"day_of_week": 2, "start_time": "09:00", "end_time": "12:00", "slot_duration_minutes": 30},
                {"day_of_week": 3, "start_time": "12:00", "end_time": "11:00", "slot_duration_minutes": 30},
            ],
        )
    assert exc_info.value.errors[0].field == "availability[1].end_time"

    async with session_factory() as fresh:
        result = await fresh.execute(
            select(AvailabilityRuleModel.day_of_week)
            .where(AvailabilityRuleModel.doctor_id == doctor.id)
            .order_by(AvailabilityRuleModel.day_of_week)
        )
        assert list(result.scalars().all()) == [1, 2, 3, 4, 5]


async def test_replace_for_missing_doctor_profile(db, patient):
    with pytest.raises(NotFoundError):
        await replace_weekly_availability(
            db,
            patient.id,
            [{"day_of_week": 1, "start_time": "09:00", "end_time": "12:00", "slot_duration_minutes": 30}],
        )

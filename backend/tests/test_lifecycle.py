from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from medbook.config.constants import AppointmentStatus, ConflictMode
from medbook.config.settings import settings
from medbook.core.errors import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from medbook.db.models import AppointmentModel, DoctorModel
from medbook.scheduling import lifecycle
from tests._helpers import caller_for, utc_today


def _payload(doctor, day, start="10:00", end="10:30", **extra):
    payload = {
        "doctor_id": doctor.id,
        "appointment_date": day,
        "start_time": start,
        "end_time": end,
    }
    payload.update(extra)
    return payload


async def _count(session_factory):
    async with session_factory() as fresh:
        return await fresh.scalar(select(func.count(AppointmentModel.id)))


async def test_create_snapshots_fee_and_schedules(db, patient, doctor, monday):
    appt = await lifecycle.create_appointment(
        db, caller_for(patient), _payload(doctor, monday, "9:30", "10:00", symptoms="cough")
    )

    assert appt.id is not None
    assert appt.status == AppointmentStatus.scheduled.value
    assert appt.start_time == "09:30"
    assert Decimal(appt.consultation_fee) == Decimal("100.00")
    assert appt.patient_id == patient.id

    doctor_profile = await db.get(DoctorModel, doctor.id)
    assert doctor_profile.total_appointments == 1


async def test_fee_is_not_recomputed_when_doctor_changes_price(db, patient, doctor, monday):
    appt = await lifecycle.create_appointment(db, caller_for(patient), _payload(doctor, monday))

    profile = await db.get(DoctorModel, doctor.id)
    profile.consultation_fee = Decimal("250.00")
    await db.commit()

    reloaded = await lifecycle.get_appointment_for_caller(db, caller_for(patient), appt.id)
    assert Decimal(reloaded.consultation_fee) == Decimal("100.00")


@pytest.mark.parametrize("days_ahead", [0, -1])
async def test_today_or_past_date_is_rejected_without_persisting(
    db, session_factory, patient, doctor, days_ahead
):
    day = utc_today() + timedelta(days=days_ahead)

    with pytest.raises(ValidationError) as exc_info:
        await lifecycle.create_appointment(db, caller_for(patient), _payload(doctor, day))

    assert exc_info.value.errors[0].field == "appointment_date"
    assert await _count(session_factory) == 0


async def test_now_is_injectable(db, patient, doctor, monday):
    the_day_before = datetime.combine(monday - timedelta(days=1), datetime.min.time(), timezone.utc)
    appt = await lifecycle.create_appointment(
        db, caller_for(patient), _payload(doctor, monday), now=the_day_before
    )
    assert appt.appointment_date == monday


async def test_only_patients_book(db, doctor, admin, monday):
    for caller in (caller_for(doctor), caller_for(admin)):
        with pytest.raises(AuthorizationError):
            await lifecycle.create_appointment(db, caller, _payload(doctor, monday))


async def test_unknown_doctor(db, patient, monday):
    payload = {"doctor_id": 4242, "appointment_date": monday, "start_time": "10:00", "end_time": "10:30"}
    with pytest.raises(NotFoundError):
        await lifecycle.create_appointment(db, caller_for(patient), payload)


async def test_invalid_times_are_rejected(db, patient, doctor, monday):
    with pytest.raises(ValidationError) as exc_info:
        await lifecycle.create_appointment(
            db, caller_for(patient), _payload(doctor, monday, "11:00", "10:00")
        )
    assert exc_info.value.errors[0].field == "end_time"


async def test_double_booking_is_rejected(db, session_factory, patient, other_patient, doctor, monday):
    await lifecycle.create_appointment(db, caller_for(patient), _payload(doctor, monday))

    with pytest.raises(ConflictError):
        await lifecycle.create_appointment(db, caller_for(other_patient), _payload(doctor, monday))
    assert await _count(session_factory) == 1


async def test_overlapping_booking_depends_on_mode(db, patient, other_patient, doctor, monday):
    await lifecycle.create_appointment(
        db, caller_for(patient), _payload(doctor, monday, "10:00", "11:00")
    )

    with pytest.raises(ConflictError):
        await lifecycle.create_appointment(
            db,
            caller_for(other_patient),
            _payload(doctor, monday, "10:30", "11:00"),
            mode=ConflictMode.OVERLAP,
        )

    appt = await lifecycle.create_appointment(
        db,
        caller_for(other_patient),
        _payload(doctor, monday, "10:30", "11:00"),
        mode=ConflictMode.EXACT,
    )
    assert appt.start_time == "10:30"


async def test_cancelled_slot_can_be_rebooked(db, patient, other_patient, doctor, monday):
    first = await lifecycle.create_appointment(db, caller_for(patient), _payload(doctor, monday))
    await lifecycle.cancel_appointment(db, caller_for(patient), first.id)

    second = await lifecycle.create_appointment(db, caller_for(other_patient), _payload(doctor, monday))
    assert second.id != first.id


async def test_cancel_stamps_reason_actor_and_time(db, patient, doctor, monday):
    appt = await lifecycle.create_appointment(db, caller_for(patient), _payload(doctor, monday))
    now = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)

    cancelled = await lifecycle.cancel_appointment(
        db, caller_for(doctor), appt.id, "Doctor unavailable", now=now
    )

    assert cancelled.status == AppointmentStatus.cancelled.value
    assert cancelled.cancelled_by == "doctor"
    assert cancelled.cancellation_reason == "Doctor unavailable"
    assert cancelled.cancelled_at.replace(tzinfo=timezone.utc) == now


async def test_cancel_twice_or_after_completion_is_invalid(db, patient, doctor, monday):
    appt = await lifecycle.create_appointment(db, caller_for(patient), _payload(doctor, monday))
    await lifecycle.cancel_appointment(db, caller_for(patient), appt.id)

    with pytest.raises(InvalidStateError, match="already cancelled"):
        await lifecycle.cancel_appointment(db, caller_for(patient), appt.id)

    other = await lifecycle.create_appointment(
        db, caller_for(patient), _payload(doctor, monday, "11:00", "11:30")
    )
    await lifecycle.update_appointment(db, caller_for(doctor), other.id, {"status": "completed"})
    with pytest.raises(InvalidStateError, match="completed"):
        await lifecycle.cancel_appointment(db, caller_for(patient), other.id)


async def test_stranger_cannot_cancel(db, patient, other_patient, doctor, other_doctor, monday):
    appt = await lifecycle.create_appointment(db, caller_for(patient), _payload(doctor, monday))

    for stranger in (other_patient, other_doctor):
        with pytest.raises(AuthorizationError):
            await lifecycle.cancel_appointment(db, caller_for(stranger), appt.id)


async def test_unowned_access_can_be_concealed(db, monkeypatch, patient, other_patient, doctor, monday):
    appt = await lifecycle.create_appointment(db, caller_for(patient), _payload(doctor, monday))
    monkeypatch.setattr(settings, "conceal_unowned_appointments", True)

    with pytest.raises(NotFoundError):
        await lifecycle.get_appointment_for_caller(db, caller_for(other_patient), appt.id)


async def test_admin_can_cancel_any(db, patient, doctor, admin, monday):
    appt = await lifecycle.create_appointment(db, caller_for(patient), _payload(doctor, monday))

    cancelled = await lifecycle.cancel_appointment(db, caller_for(admin), appt.id)
    assert cancelled.cancelled_by == "admin"


async def test_patient_status_change_is_ignored(db, patient, doctor, monday):
    appt = await lifecycle.create_appointment(db, caller_for(patient), _payload(doctor, monday))

    updated = await lifecycle.update_appointment(
        db,
        caller_for(patient),
        appt.id,
        {"status": "completed", "diagnosis": "self-diagnosed", "notes": "bring x-rays"},
    )

    assert updated.status == AppointmentStatus.scheduled.value
    assert updated.diagnosis is None
    assert updated.notes == "bring x-rays"


async def test_doctor_records_clinical_fields(db, patient, doctor, monday):
    appt = await lifecycle.create_appointment(db, caller_for(patient), _payload(doctor, monday))
    follow_up = monday + timedelta(days=14)

    updated = await lifecycle.update_appointment(
        db,
        caller_for(doctor),
        appt.id,
        {
            "status": "completed",
            "diagnosis": "Flu",
            "prescription": "Rest",
            "follow_up_required": True,
            "follow_up_date": follow_up,
            "symptoms": "rewritten",
        },
    )

    assert updated.status == AppointmentStatus.completed.value
    assert updated.diagnosis == "Flu"
    assert updated.follow_up_date == follow_up
    assert updated.symptoms is None


async def test_invalid_status_value(db, patient, doctor, monday):
    appt = await lifecycle.create_appointment(db, caller_for(patient), _payload(doctor, monday))

    with pytest.raises(ValidationError):
        await lifecycle.update_appointment(db, caller_for(doctor), appt.id, {"status": "archived"})


async def test_strict_transitions(db, patient, doctor, monday):
    appt = await lifecycle.create_appointment(db, caller_for(patient), _payload(doctor, monday))
    await lifecycle.update_appointment(
        db, caller_for(doctor), appt.id, {"status": "completed"}, strict=True
    )

    with pytest.raises(InvalidStateError):
        await lifecycle.update_appointment(
            db, caller_for(doctor), appt.id, {"status": "scheduled"}, strict=True
        )


async def test_lenient_transitions_by_default(db, patient, doctor, monday):
    appt = await lifecycle.create_appointment(db, caller_for(patient), _payload(doctor, monday))
    await lifecycle.update_appointment(db, caller_for(doctor), appt.id, {"status": "completed"})

    reopened = await lifecycle.update_appointment(
        db, caller_for(doctor), appt.id, {"status": "confirmed"}, strict=False
    )
    assert reopened.status == AppointmentStatus.confirmed.value


async def test_reactivation_clears_cancellation_details(db, patient, doctor, monday):
    appt = await lifecycle.create_appointment(db, caller_for(patient), _payload(doctor, monday))
    await lifecycle.cancel_appointment(db, caller_for(patient), appt.id, "Feeling better")

    restored = await lifecycle.update_appointment(
        db, caller_for(doctor), appt.id, {"status": "scheduled"}, strict=False
    )

    assert restored.status == AppointmentStatus.scheduled.value
    assert restored.cancelled_at is None
    assert restored.cancelled_by is None
    assert restored.cancellation_reason is None


async def test_reactivating_a_rebooked_slot_conflicts(db, patient, other_patient, doctor, monday):
    first = await lifecycle.create_appointment(db, caller_for(patient), _payload(doctor, monday))
    await lifecycle.cancel_appointment(db, caller_for(patient), first.id)
    await lifecycle.create_appointment(db, caller_for(other_patient), _payload(doctor, monday))

    with pytest.raises(ConflictError):
        await lifecycle.update_appointment(
            db, caller_for(doctor), first.id, {"status": "scheduled"}, strict=False
        )


async def test_list_is_scoped_by_role(db, patient, other_patient, doctor, other_doctor, admin, monday):
    await lifecycle.create_appointment(db, caller_for(patient), _payload(doctor, monday, "09:00", "09:30"))
    await lifecycle.create_appointment(db, caller_for(other_patient), _payload(doctor, monday, "10:00", "10:30"))
    await lifecycle.create_appointment(db, caller_for(patient), _payload(other_doctor, monday, "09:00", "09:30"))

    mine, total, pages = await lifecycle.list_appointments_for_caller(db, caller_for(patient))
    assert total == 2 and pages == 1
    assert {a.patient_id for a in mine} == {patient.id}

    schedule, total, _ = await lifecycle.list_appointments_for_caller(db, caller_for(doctor))
    assert total == 2
    assert {a.doctor_id for a in schedule} == {doctor.id}

    everything, total, _ = await lifecycle.list_appointments_for_caller(db, caller_for(admin), limit=2)
    assert total == 3
    assert len(everything) == 2


async def test_list_rejects_unknown_status_filter(db, patient):
    with pytest.raises(ValidationError):
        await lifecycle.list_appointments_for_caller(db, caller_for(patient), status="lost")

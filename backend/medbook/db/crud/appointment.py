import logging
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.config.constants import INACTIVE_STATUSES, ConflictMode
from medbook.core.errors import BookingError, ConflictError, ValidationError
from medbook.core.timeutils import normalize
from medbook.db.models.appointment import ACTIVE_SLOT_INDEX, AppointmentModel

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "This time slot is already booked"
INVALID_DATA_MESSAGE = "Appointment data violates a database constraint"


def _active():
    return AppointmentModel.status.notin_(INACTIVE_STATUSES)


def _is_slot_violation(error: IntegrityError) -> bool:
    # postgres names the index; sqlite lists the indexed columns instead
    message = str(error.orig)
    return ACTIVE_SLOT_INDEX in message or (
        "UNIQUE constraint failed" in message and "appointments.start_time" in message
    )


def _translate_integrity_error(error: IntegrityError) -> BookingError:
    if _is_slot_violation(error):
        return ConflictError(SLOT_TAKEN_MESSAGE)
    return ValidationError(INVALID_DATA_MESSAGE)


async def find_conflicting_appointment(
    db: AsyncSession,
    doctor_id: int,
    appointment_date: date,
    start_time: str,
    end_time: Optional[str] = None,
    mode: ConflictMode = ConflictMode.OVERLAP,
    exclude_id: Optional[int] = None,
) -> Optional[AppointmentModel]:
    """
    Return the first active appointment of the doctor on that date that
    collides with the requested slot, or None.

    Times are stored zero-padded, so string comparison orders them the same
    way as minute offsets.

    Args:
        db: Database session
        doctor_id: Doctor (user) id
        appointment_date: Calendar date of the request
        start_time: Requested start, HH:MM
        end_time: Requested end, HH:MM (only used in overlap mode)
        mode: ConflictMode.EXACT or ConflictMode.OVERLAP
        exclude_id: Appointment id to ignore (edits)
    """
    start = normalize(start_time)
    conditions = [
        AppointmentModel.doctor_id == doctor_id,
        AppointmentModel.appointment_date == appointment_date,
        _active(),
    ]

    if mode is ConflictMode.EXACT:
        conditions.append(AppointmentModel.start_time == start)
    elif end_time is None:
        conditions.append(AppointmentModel.start_time <= start)
        conditions.append(AppointmentModel.end_time > start)
    else:
        # New slot starts before an existing one ends and ends after it starts
        conditions.append(AppointmentModel.start_time < normalize(end_time))
        conditions.append(AppointmentModel.end_time > start)

    if exclude_id is not None:
        conditions.append(AppointmentModel.id != exclude_id)

    stmt = (
        select(AppointmentModel)
        .where(and_(*conditions))
        .order_by(AppointmentModel.start_time)
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalars().first()


async def get_active_appointments_for_doctor_on_date(
    db: AsyncSession, doctor_id: int, target_date: date
) -> List[AppointmentModel]:
    """Appointments that still occupy a slot (not cancelled / no-show)."""
    stmt = (
        select(AppointmentModel)
        .where(
            AppointmentModel.doctor_id == doctor_id,
            AppointmentModel.appointment_date == target_date,
            _active(),
        )
        .order_by(AppointmentModel.start_time)
    )
    result = await db.execute(stmt)
    appointments = list(result.scalars().all())
    logger.debug(
        f"CRUD: {len(appointments)} active appointments for doctor {doctor_id} on {target_date}"
    )
    return appointments


async def get_appointment_by_id(
    db: AsyncSession, appointment_id: int
) -> Optional[AppointmentModel]:
    result = await db.execute(
        select(AppointmentModel).where(AppointmentModel.id == appointment_id)
    )
    return result.scalars().first()


async def list_appointments(
    db: AsyncSession,
    patient_id: Optional[int] = None,
    doctor_id: Optional[int] = None,
    status: Optional[str] = None,
    skip: int = 0,
    limit: int = 10,
) -> Tuple[List[AppointmentModel], int]:
    """
    List appointments, newest date first, with the unpaginated total.

    Returns:
        (appointments, total)
    """
    conditions = []
    if patient_id is not None:
        conditions.append(AppointmentModel.patient_id == patient_id)
    if doctor_id is not None:
        conditions.append(AppointmentModel.doctor_id == doctor_id)
    if status:
        conditions.append(AppointmentModel.status == status)

    query = (
        select(AppointmentModel)
        .where(*conditions)
        .order_by(
            AppointmentModel.appointment_date.desc(),
            AppointmentModel.start_time.desc(),
        )
        .offset(skip)
        .limit(limit)
    )
    result = await db.execute(query)
    appointments = list(result.scalars().all())

    total = await db.scalar(
        select(func.count(AppointmentModel.id)).where(*conditions)
    )
    logger.debug(
        f"CRUD list_appointments: patient_id={patient_id}, doctor_id={doctor_id}, "
        f"status={status}, skip={skip}, limit={limit} -> {len(appointments)}/{total}"
    )
    return appointments, total or 0


async def get_doctor_appointments_between(
    db: AsyncSession,
    doctor_id: int,
    date_from: date,
    date_to: date,
    statuses: Optional[Sequence[str]] = None,
) -> List[AppointmentModel]:
    """Appointments of a doctor with date_from <= appointment_date < date_to."""
    stmt = select(AppointmentModel).where(
        AppointmentModel.doctor_id == doctor_id,
        AppointmentModel.appointment_date >= date_from,
        AppointmentModel.appointment_date < date_to,
    )
    if statuses:
        stmt = stmt.where(AppointmentModel.status.in_(list(statuses)))
    stmt = stmt.order_by(AppointmentModel.appointment_date, AppointmentModel.start_time)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def count_doctor_appointments_by_status(
    db: AsyncSession, doctor_id: int, date_from: date, date_to: date
) -> Dict[str, int]:
    """Status -> count for a doctor with date_from <= appointment_date <= date_to."""
    stmt = (
        select(AppointmentModel.status, func.count(AppointmentModel.id))
        .where(
            AppointmentModel.doctor_id == doctor_id,
            AppointmentModel.appointment_date >= date_from,
            AppointmentModel.appointment_date <= date_to,
        )
        .group_by(AppointmentModel.status)
    )
    result = await db.execute(stmt)
    return {status: count for status, count in result.all()}


async def insert_appointment(db: AsyncSession, appointment: AppointmentModel) -> AppointmentModel:
    """
    Persist a new appointment. A unique-index violation on the active slot
    is reported as a ConflictError, any other integrity error as a
    ValidationError.
    """
    db.add(appointment)
    try:
        await db.commit()
    except IntegrityError as e:  # Catches DB-level constraint violations
        logger.warning(
            f"CRUD: Integrity error booking doctor_id={appointment.doctor_id} on "
            f"{appointment.appointment_date} at {appointment.start_time}: {e.orig}"
        )
        await db.rollback()
        raise _translate_integrity_error(e) from e

    await db.refresh(appointment)  # To get DB-generated values like ID and created_at
    logger.info(
        f"CRUD: Created appointment_id={appointment.id} with status='{appointment.status}'."
    )
    return appointment


async def save_appointment(db: AsyncSession, appointment: AppointmentModel) -> AppointmentModel:
    """Commit pending changes on an existing appointment and reload it."""
    appointment_id = appointment.id
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.warning(f"CRUD: Integrity error updating appointment {appointment_id}: {e.orig}")
        raise _translate_integrity_error(e) from e
    await db.refresh(appointment)
    return appointment

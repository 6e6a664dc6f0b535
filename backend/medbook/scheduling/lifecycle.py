"""
Appointment Lifecycle

Create, update and cancel appointments with role checks and status rules.

    scheduled -> confirmed -> completed
        |            |
        +------------+--> cancelled | no-show

completed, cancelled and no-show are terminal. Transitions are only enforced
when strict mode is on (``STRICT_STATUS_TRANSITIONS``); otherwise any status
from the enum is accepted, matching the legacy behaviour.
"""
import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from medbook.config.constants import (
    INACTIVE_STATUSES,
    NON_CANCELLABLE_STATUSES,
    AppointmentStatus,
    Role,
)
from medbook.config.settings import settings
from medbook.core.errors import (
    AuthorizationError,
    ConflictError,
    FieldError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from medbook.core.timeutils import normalize
from medbook.db.crud import appointment as appointment_crud
from medbook.db.crud.appointment import SLOT_TAKEN_MESSAGE
from medbook.db.crud.doctor import get_doctor
from medbook.db.models import AppointmentModel
from medbook.scheduling.conflicts import has_conflict
from medbook.scheduling.validation import (
    STATUS_VALUES,
    raise_for_errors,
    validate_booking,
    validate_cancellation,
    validate_changes,
)
from medbook.schemas.shared import Caller

logger = logging.getLogger(__name__)

_CLINICAL_FIELDS = frozenset(
    {"status", "prescription", "diagnosis", "follow_up_required", "follow_up_date", "notes"}
)

ROLE_UPDATABLE_FIELDS: Dict[Role, FrozenSet[str]] = {
    Role.doctor: _CLINICAL_FIELDS,
    Role.admin: _CLINICAL_FIELDS,
    Role.patient: frozenset({"symptoms", "notes"}),
}

S = AppointmentStatus
ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    S.scheduled.value: frozenset({S.confirmed.value, S.completed.value, S.cancelled.value, S.no_show.value}),
    S.confirmed.value: frozenset({S.completed.value, S.cancelled.value, S.no_show.value}),
    S.completed.value: frozenset(),
    S.cancelled.value: frozenset(),
    S.no_show.value: frozenset(),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def can_access(caller: Caller, appointment: AppointmentModel) -> bool:
    if caller.is_admin:
        return True
    if caller.role is Role.patient:
        return appointment.patient_id == caller.id
    if caller.role is Role.doctor:
        return appointment.doctor_id == caller.id
    return False


def _deny() -> None:
    if settings.conceal_unowned_appointments:
        raise NotFoundError("Appointment not found")
    raise AuthorizationError("Access denied")


async def _load_for_caller(
    db: AsyncSession, caller: Caller, appointment_id: int
) -> AppointmentModel:
    appointment = await appointment_crud.get_appointment_by_id(db, appointment_id)
    if appointment is None:
        raise NotFoundError("Appointment not found")
    if not can_access(caller, appointment):
        logger.warning(
            f"User {caller.id} ({caller.role.value}) denied access to appointment {appointment_id}"
        )
        _deny()
    return appointment


async def get_appointment_for_caller(
    db: AsyncSession, caller: Caller, appointment_id: int
) -> AppointmentModel:
    return await _load_for_caller(db, caller, appointment_id)


async def list_appointments_for_caller(
    db: AsyncSession,
    caller: Caller,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[AppointmentModel], int, int]:
    """
    Appointments visible to the caller: patients see their own, doctors their
    schedule, admins everything.

    Returns:
        (appointments, total, pages)
    """
    if status is not None and status not in STATUS_VALUES:
        raise ValidationError("Invalid filter", [FieldError("status", "Invalid status")])
    if page < 1 or limit < 1:
        raise ValidationError(
            "Invalid pagination", [FieldError("page", "page and limit must be positive")]
        )

    filters: Dict[str, Any] = {}
    if caller.role is Role.patient:
        filters["patient_id"] = caller.id
    elif caller.role is Role.doctor:
        filters["doctor_id"] = caller.id

    appointments, total = await appointment_crud.list_appointments(
        db, status=status, skip=(page - 1) * limit, limit=limit, **filters
    )
    return appointments, total, math.ceil(total / limit)


async def create_appointment(
    db: AsyncSession,
    caller: Caller,
    payload: Mapping[str, Any],
    now: Optional[datetime] = None,
    mode=None,
) -> AppointmentModel:
    """
    Book a slot for the calling patient.

    The fee is copied from the doctor at booking time and never recomputed.

    Raises:
        AuthorizationError: caller is not a patient
        ValidationError: malformed payload or a date that is not in the future
        NotFoundError: unknown doctor
        ConflictError: slot already taken (pre-check or unique index)
    """
    if caller.role is not Role.patient:
        raise AuthorizationError("Only patients can book appointments")

    raise_for_errors(validate_booking(payload))

    doctor_id = payload["doctor_id"]
    appointment_date = payload["appointment_date"]
    start_time = normalize(payload["start_time"])
    end_time = normalize(payload["end_time"])

    logger.info(
        f"Patient {caller.id} booking doctor {doctor_id} on {appointment_date} "
        f"{start_time}-{end_time}"
    )

    doctor = await get_doctor(db, doctor_id)
    if doctor is None:
        raise NotFoundError("Doctor not found")

    now = now or _utcnow()
    if appointment_date <= now.date():
        raise ValidationError(
            "Appointment date must be in the future",
            [FieldError("appointment_date", "Appointment date must be in the future")],
        )

    if await has_conflict(db, doctor_id, appointment_date, start_time, end_time, mode=mode):
        raise ConflictError(SLOT_TAKEN_MESSAGE)

    appointment = AppointmentModel(
        patient_id=caller.id,
        doctor_id=doctor_id,
        appointment_date=appointment_date,
        start_time=start_time,
        end_time=end_time,
        status=AppointmentStatus.scheduled.value,
        consultation_fee=doctor.consultation_fee,
        symptoms=payload.get("symptoms"),
        notes=payload.get("notes"),
        follow_up_required=False,
    )
    doctor.total_appointments = (doctor.total_appointments or 0) + 1
    return await appointment_crud.insert_appointment(db, appointment)


def project_changes(role: Role, changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Keep only the fields the role may write; everything else is dropped silently."""
    allowed = ROLE_UPDATABLE_FIELDS.get(role, frozenset())
    return {k: v for k, v in changes.items() if k in allowed}


def _stamp_cancellation(appointment: AppointmentModel, role: Role, now: datetime) -> None:
    appointment.status = AppointmentStatus.cancelled.value
    appointment.cancelled_at = now
    appointment.cancelled_by = role.value


def _clear_cancellation(appointment: AppointmentModel) -> None:
    appointment.cancelled_at = None
    appointment.cancelled_by = None
    appointment.cancellation_reason = None


async def update_appointment(
    db: AsyncSession,
    caller: Caller,
    appointment_id: int,
    changes: Mapping[str, Any],
    now: Optional[datetime] = None,
    strict: Optional[bool] = None,
) -> AppointmentModel:
    """
    Apply the caller's role-projected changes.

    Raises:
        NotFoundError / AuthorizationError: unknown or inaccessible appointment
        ValidationError: invalid status value or oversized text
        InvalidStateError: illegal transition (strict mode only)
        ConflictError: reactivating an appointment whose slot was rebooked
    """
    appointment = await _load_for_caller(db, caller, appointment_id)

    projected = project_changes(caller.role, changes)
    dropped = set(changes) - set(projected)
    if dropped:
        logger.info(
            f"Ignoring fields {sorted(dropped)} from {caller.role.value} {caller.id} "
            f"on appointment {appointment_id}"
        )
    raise_for_errors(validate_changes(projected))

    strict = settings.strict_status_transitions if strict is None else strict
    new_status = projected.pop("status", None)
    old_status = appointment.status

    if new_status is not None and new_status != old_status:
        if strict and new_status not in ALLOWED_TRANSITIONS.get(old_status, frozenset()):
            raise InvalidStateError(
                f"Cannot change status from {old_status} to {new_status}"
            )
        if old_status in INACTIVE_STATUSES and new_status not in INACTIVE_STATUSES:
            if await has_conflict(
                db,
                appointment.doctor_id,
                appointment.appointment_date,
                appointment.start_time,
                appointment.end_time,
                exclude_id=appointment.id,
            ):
                raise ConflictError(SLOT_TAKEN_MESSAGE)

        if new_status == AppointmentStatus.cancelled.value:
            _stamp_cancellation(appointment, caller.role, now or _utcnow())
        else:
            appointment.status = new_status
            if new_status not in INACTIVE_STATUSES:
                _clear_cancellation(appointment)
        logger.info(
            f"Appointment {appointment_id} status {old_status} -> {new_status} "
            f"by {caller.role.value} {caller.id}"
        )

    for key, value in projected.items():
        setattr(appointment, key, value)

    return await appointment_crud.save_appointment(db, appointment)


async def cancel_appointment(
    db: AsyncSession,
    caller: Caller,
    appointment_id: int,
    cancellation_reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> AppointmentModel:
    """
    Cancel an appointment on behalf of its patient, its doctor or an admin.

    Raises:
        NotFoundError / AuthorizationError: unknown or inaccessible appointment
        InvalidStateError: already cancelled or completed
    """
    raise_for_errors(validate_cancellation(cancellation_reason))
    appointment = await _load_for_caller(db, caller, appointment_id)

    if appointment.status in NON_CANCELLABLE_STATUSES:
        if appointment.status == AppointmentStatus.cancelled.value:
            raise InvalidStateError("Appointment is already cancelled")
        raise InvalidStateError("Cannot cancel completed appointment")

    _stamp_cancellation(appointment, caller.role, now or _utcnow())
    appointment.cancellation_reason = cancellation_reason
    saved = await appointment_crud.save_appointment(db, appointment)
    logger.info(
        f"Appointment {appointment_id} cancelled by {caller.role.value} {caller.id}"
    )
    return saved

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.config.constants import Role
from medbook.core.middleware import get_current_user, get_db, require_roles
from medbook.routes.composition import present_appointment, present_appointments
from medbook.scheduling import lifecycle
from medbook.schemas.appointment import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentOut,
    AppointmentPage,
    AppointmentUpdate,
)
from medbook.schemas.shared import Caller, Pagination

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.get("/", response_model=AppointmentPage)
async def list_appointments_route(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: Caller = Depends(get_current_user)
):
    """List the caller's appointments, newest first"""
    appointments, total, pages = await lifecycle.list_appointments_for_caller(
        db, current_user, status=status, page=page, limit=limit
    )
    return AppointmentPage(
        count=len(appointments),
        total=total,
        pagination=Pagination(page=page, pages=pages, limit=limit),
        appointments=await present_appointments(db, appointments),
    )


@router.get("/{appointment_id}", response_model=AppointmentOut)
async def get_appointment_route(
    appointment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Caller = Depends(get_current_user)
):
    appointment = await lifecycle.get_appointment_for_caller(db, current_user, appointment_id)
    return await present_appointment(db, appointment)


@router.post("/", response_model=AppointmentOut, status_code=201)
async def create_appointment_route(
    appointment: AppointmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Caller = Depends(require_roles([Role.patient]))
):
    """Book an appointment for the current patient"""
    created = await lifecycle.create_appointment(db, current_user, appointment.model_dump())
    return await present_appointment(db, created)


@router.put("/{appointment_id}", response_model=AppointmentOut)
async def update_appointment_route(
    appointment_id: int,
    changes: AppointmentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Caller = Depends(get_current_user)
):
    """Update the fields the caller's role may change; other fields are ignored"""
    updated = await lifecycle.update_appointment(
        db, current_user, appointment_id, changes.model_dump(exclude_unset=True)
    )
    return await present_appointment(db, updated)


@router.delete("/{appointment_id}", response_model=AppointmentOut)
async def cancel_appointment_route(
    appointment_id: int,
    payload: Optional[AppointmentCancel] = None,
    db: AsyncSession = Depends(get_db),
    current_user: Caller = Depends(get_current_user)
):
    """Cancel an appointment. The row is kept with its cancellation stamp."""
    reason = payload.cancellation_reason if payload else None
    cancelled = await lifecycle.cancel_appointment(db, current_user, appointment_id, reason)
    return await present_appointment(db, cancelled)

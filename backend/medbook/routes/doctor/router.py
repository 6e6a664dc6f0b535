import logging
import math
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.config.constants import AppointmentStatus, Role
from medbook.core.middleware import get_db, require_roles
from medbook.db.crud.appointment import (
    count_doctor_appointments_by_status,
    get_doctor_appointments_between,
)
from medbook.db.crud.doctor import find_doctors, get_doctor, get_verification_stats, set_verified
from medbook.routes.composition import doctor_out, doctor_summary, present_appointments
from medbook.scheduling.availability import (
    day_of_week,
    get_day_slots,
    get_weekly_availability,
    replace_weekly_availability,
)
from medbook.schemas.availability import (
    AvailabilityReplace,
    AvailabilityRuleOut,
    DayAvailabilityOut,
    SlotOut,
    WeeklyAvailabilityOut,
)
from medbook.schemas.doctor import DoctorDashboard, DoctorOut, DoctorPage, DoctorStats, VerifyRequest
from medbook.schemas.shared import Caller, Pagination

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/doctors", tags=["doctors"])

UPCOMING_DAYS = 7


def _page(doctors, total: int, page: int, limit: int) -> DoctorPage:
    return DoctorPage(
        count=len(doctors),
        total=total,
        pagination=Pagination(page=page, pages=math.ceil(total / limit), limit=limit),
        doctors=[doctor_out(d) for d in doctors],
    )


@router.get("/", response_model=DoctorPage)
async def list_doctors_route(
    specialization: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """Verified doctors, best rated first"""
    doctors, total = await find_doctors(
        db,
        verified_only=True,
        specialization=specialization,
        search=search,
        skip=(page - 1) * limit,
        limit=limit,
    )
    return _page(doctors, total, page, limit)


# ----- doctor-only routes (declared before /{doctor_id}) -----

@router.put("/availability", response_model=WeeklyAvailabilityOut)
async def replace_availability_route(
    payload: AvailabilityReplace,
    db: AsyncSession = Depends(get_db),
    current_user: Caller = Depends(require_roles([Role.doctor]))
):
    """Replace the whole weekly schedule of the calling doctor"""
    rules = await replace_weekly_availability(
        db, current_user.id, [rule.model_dump() for rule in payload.availability]
    )
    return WeeklyAvailabilityOut(
        doctor_id=current_user.id,
        availability=[AvailabilityRuleOut.model_validate(r) for r in rules],
    )


@router.get("/availability", response_model=WeeklyAvailabilityOut)
async def get_own_availability_route(
    db: AsyncSession = Depends(get_db),
    current_user: Caller = Depends(require_roles([Role.doctor]))
):
    rules = await get_weekly_availability(db, current_user.id)
    return WeeklyAvailabilityOut(
        doctor_id=current_user.id,
        availability=[AvailabilityRuleOut.model_validate(r) for r in rules],
    )


@router.get("/dashboard", response_model=DoctorDashboard)
async def dashboard_route(
    db: AsyncSession = Depends(get_db),
    current_user: Caller = Depends(require_roles([Role.doctor]))
):
    """Today's schedule, the next week's open appointments and this month's counts"""
    doctor = await get_doctor(db, current_user.id)
    if doctor is None:
        raise HTTPException(status_code=404, detail="Doctor profile not found")

    today = datetime.now(timezone.utc).date()
    tomorrow = today + timedelta(days=1)
    week_end = today + timedelta(days=UPCOMING_DAYS)
    month_start = today.replace(day=1)
    next_month = (month_start + timedelta(days=32)).replace(day=1)

    today_appointments = await get_doctor_appointments_between(db, doctor.user_id, today, tomorrow)
    upcoming = await get_doctor_appointments_between(
        db,
        doctor.user_id,
        tomorrow,
        week_end,
        statuses=[AppointmentStatus.scheduled.value, AppointmentStatus.confirmed.value],
    )
    monthly_stats = await count_doctor_appointments_by_status(
        db, doctor.user_id, month_start, next_month - timedelta(days=1)
    )

    return DoctorDashboard(
        today_appointments=await present_appointments(db, today_appointments),
        upcoming_appointments=await present_appointments(db, upcoming),
        monthly_stats=monthly_stats,
        total_appointments=doctor.total_appointments or 0,
        rating_average=doctor.rating_average or 0,
        rating_count=doctor.rating_count or 0,
    )


# ----- admin routes -----

@router.get("/admin/all", response_model=DoctorPage)
async def list_all_doctors_route(
    is_verified: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: Caller = Depends(require_roles([Role.admin]))
):
    doctors, total = await find_doctors(
        db,
        verified_only=False,
        is_verified=is_verified,
        search=search,
        skip=(page - 1) * limit,
        limit=limit,
    )
    return _page(doctors, total, page, limit)


@router.put("/admin/{doctor_id}/verify", response_model=DoctorOut)
async def verify_doctor_route(
    doctor_id: int,
    payload: VerifyRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Caller = Depends(require_roles([Role.admin]))
):
    doctor = await set_verified(db, doctor_id, payload.is_verified)
    if doctor is None:
        raise HTTPException(status_code=404, detail="Doctor not found")
    logger.info(f"Admin {current_user.id} set doctor {doctor_id} verified={payload.is_verified}")
    return doctor_out(doctor)


@router.get("/admin/stats", response_model=DoctorStats)
async def doctor_stats_route(
    db: AsyncSession = Depends(get_db),
    current_user: Caller = Depends(require_roles([Role.admin]))
):
    return DoctorStats(**await get_verification_stats(db))


# ----- public routes by id -----

@router.get("/{doctor_id}", response_model=DoctorOut)
async def get_doctor_route(
    doctor_id: int,
    db: AsyncSession = Depends(get_db)
):
    doctor = await get_doctor(db, doctor_id)
    if doctor is None:
        raise HTTPException(status_code=404, detail="Doctor not found")
    return doctor_out(doctor)


@router.get("/{doctor_id}/availability", response_model=DayAvailabilityOut)
async def get_day_availability_route(
    doctor_id: int,
    target_date: date = Query(..., alias="date", description="Date to list slots for (YYYY-MM-DD)"),
    db: AsyncSession = Depends(get_db)
):
    """Bookable slots of a doctor on one date"""
    day = await get_day_slots(db, doctor_id, target_date)
    doctor = await get_doctor(db, doctor_id)
    return DayAvailabilityOut(
        doctor_id=doctor_id,
        date=target_date,
        day_of_week=day_of_week(target_date),
        configured=day.configured,
        message=day.message,
        slot_duration_minutes=day.slot_duration_minutes,
        availability=[SlotOut(**slot.as_dict()) for slot in day.slots],
        doctor=doctor_summary(doctor),
    )

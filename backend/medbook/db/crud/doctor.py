import logging
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from medbook.db.models import DoctorModel, UserModel

logger = logging.getLogger(__name__)


async def get_doctor(db: AsyncSession, doctor_id: int) -> Optional[DoctorModel]:
    """Fetch a doctor profile (with its user) by the doctor's user id."""
    result = await db.execute(
        select(DoctorModel)
        .options(joinedload(DoctorModel.user))
        .where(DoctorModel.user_id == doctor_id)
    )
    return result.scalars().first()


async def find_doctors(
    db: AsyncSession,
    verified_only: bool = True,
    is_verified: Optional[bool] = None,
    specialization: Optional[str] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 10,
) -> Tuple[List[DoctorModel], int]:
    """
    Search doctors by specialization or free text, best rated first.

    Args:
        db: Database session
        verified_only: Restrict to verified doctors (public listing)
        is_verified: Explicit verification filter (admin listing); ignored when verified_only
        specialization: Case-insensitive substring of the specialization
        search: Case-insensitive substring of specialization, bio or name
        skip: Number of records to skip
        limit: Maximum number of records to return

    Returns:
        (doctors, total)
    """
    logger.debug(
        f"Searching doctors: verified_only={verified_only}, is_verified={is_verified}, "
        f"specialization='{specialization}', search='{search}', skip={skip}, limit={limit}"
    )
    conditions = []
    if verified_only:
        conditions.append(DoctorModel.is_verified.is_(True))
    elif is_verified is not None:
        conditions.append(DoctorModel.is_verified.is_(is_verified))

    if specialization:
        conditions.append(DoctorModel.specialization.ilike(f"%{specialization.strip()}%"))

    if search:
        pattern = f"%{search.strip()}%"
        conditions.append(
            or_(
                DoctorModel.specialization.ilike(pattern),
                DoctorModel.bio.ilike(pattern),
                UserModel.first_name.ilike(pattern),
                UserModel.last_name.ilike(pattern),
            )
        )

    query = (
        select(DoctorModel)
        .join(DoctorModel.user)
        .options(joinedload(DoctorModel.user))
        .where(*conditions)
        .order_by(
            DoctorModel.rating_average.desc(),
            DoctorModel.total_appointments.desc(),
            DoctorModel.user_id,
        )
        .offset(skip)
        .limit(limit)
    )
    result = await db.execute(query)
    doctors = list(result.scalars().all())

    total = await db.scalar(
        select(func.count(DoctorModel.user_id)).join(DoctorModel.user).where(*conditions)
    )
    logger.info(f"Found {len(doctors)} of {total} doctors matching criteria")
    return doctors, total or 0


async def set_verified(
    db: AsyncSession, doctor_id: int, is_verified: bool
) -> Optional[DoctorModel]:
    doctor = await get_doctor(db, doctor_id)
    if doctor is None:
        return None
    doctor.is_verified = is_verified
    await db.commit()
    logger.info(f"CRUD: Doctor {doctor_id} verification set to {is_verified}")
    return doctor


async def get_verification_stats(db: AsyncSession) -> Dict[str, int]:
    result = await db.execute(
        select(DoctorModel.is_verified, func.count(DoctorModel.user_id)).group_by(
            DoctorModel.is_verified
        )
    )
    counts = {bool(verified): count for verified, count in result.all()}
    verified = counts.get(True, 0)
    pending = counts.get(False, 0)
    return {"total": verified + pending, "verified": verified, "pending": pending}


async def get_doctors_by_ids(
    db: AsyncSession, doctor_ids: Iterable[int]
) -> Dict[int, DoctorModel]:
    ids = set(doctor_ids)
    if not ids:
        return {}
    result = await db.execute(
        select(DoctorModel)
        .options(joinedload(DoctorModel.user))
        .where(DoctorModel.user_id.in_(ids))
    )
    return {d.user_id: d for d in result.scalars().all()}

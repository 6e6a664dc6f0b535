# medbook/db/crud/user.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from typing import Dict, Iterable, Optional

from medbook.db.models.user import UserModel


async def get_user(db: AsyncSession, user_id: int) -> Optional[UserModel]:
    """
    Get a user by ID with the doctor profile loaded.

    Args:
        db: Database session
        user_id: User ID

    Returns:
        UserModel or None if not found
    """
    query = select(UserModel).options(
        selectinload(UserModel.doctor_profile)
    ).where(UserModel.id == user_id)

    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[UserModel]:
    query = select(UserModel).options(
        selectinload(UserModel.doctor_profile)
    ).where(UserModel.email == email.lower())

    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_users_by_ids(db: AsyncSession, user_ids: Iterable[int]) -> Dict[int, UserModel]:
    """Batch lookup used to attach patient summaries to appointment listings."""
    ids = set(user_ids)
    if not ids:
        return {}
    result = await db.execute(select(UserModel).where(UserModel.id.in_(ids)))
    return {u.id: u for u in result.scalars().all()}

import logging
from typing import Optional

from fastapi import HTTPException, status
from jose import JWTError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.config.constants import Role
from medbook.core.auth import (
    create_tokens_for_user,
    decode_access_token,
    get_password_hash,
    verify_password,
)
from medbook.db.crud.user import get_user, get_user_by_email
from medbook.db.models.doctor import DoctorModel
from medbook.db.models.user import UserModel
from medbook.schemas.auth import AuthResponse, LoginRequest, RegisterRequest

logger = logging.getLogger(__name__)


async def create_user(db: AsyncSession, data: RegisterRequest) -> UserModel:
    """Insert the user and, for doctors, the unverified profile in one transaction."""
    user = UserModel(
        email=data.email.lower(),
        password_hash=get_password_hash(data.password),
        role=data.role.value,
        first_name=data.first_name,
        last_name=data.last_name,
        phone=data.phone,
    )
    db.add(user)

    if data.role is Role.doctor:
        db.add(DoctorModel(user=user, is_verified=False, **data.doctor_profile.model_dump()))

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info(f"Registration rejected for {data.email}: email or license already registered")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email or license number already registered",
        )

    logger.info(f"Registered {user.role} user {user.id}")
    return user


async def authenticate_user(db: AsyncSession, login_data: LoginRequest) -> Optional[UserModel]:
    user = await get_user_by_email(db, login_data.email)
    if not user:
        return None
    if not verify_password(login_data.password, user.password_hash):
        return None
    return user


async def refresh_user_token(db: AsyncSession, refresh_token: Optional[str]) -> AuthResponse:
    """Issue a new token pair from a valid refresh token."""
    if not refresh_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing refresh token")
    try:
        payload = decode_access_token(refresh_token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")

    if payload.get("type") != "refresh":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")

    user = await get_user(db, int(payload.get("sub")))
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    return create_tokens_for_user(user.id, user.role)

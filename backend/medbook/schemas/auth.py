# medbook/schemas/auth.py
from __future__ import annotations
from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from medbook.config.constants import MAX_BIO_LENGTH, Role


class TokenType(Enum):
    bearer = 'bearer'


class AuthResponse(BaseModel):
    model_config = ConfigDict(
        extra='forbid',
    )
    access_token: str
    refresh_token: str
    token_type: TokenType
    expires_in: int


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra='forbid')

    email: EmailStr
    password: Annotated[str, Field(min_length=8, max_length=128)]


class DoctorProfileIn(BaseModel):
    specialization: Annotated[str, Field(min_length=1, max_length=100)]
    license_number: Annotated[str, Field(min_length=1, max_length=50)]
    experience_years: Annotated[int, Field(ge=0)]
    consultation_fee: Annotated[float, Field(ge=0)]
    bio: Annotated[Optional[str], Field(max_length=MAX_BIO_LENGTH)] = None


class RegisterRequest(BaseModel):
    email: EmailStr
    password: Annotated[str, Field(min_length=8, max_length=128)]
    first_name: Annotated[str, Field(min_length=1, max_length=50)]
    last_name: Annotated[str, Field(min_length=1, max_length=50)]
    phone: Optional[str] = None
    role: Role = Role.patient
    doctor_profile: Optional[DoctorProfileIn] = None

    @model_validator(mode="after")
    def _profile_matches_role(self):
        # admins are provisioned out of band, never through self-registration
        if self.role is Role.admin:
            raise ValueError("Admin accounts cannot be self-registered")
        if (self.role is Role.doctor) != (self.doctor_profile is not None):
            raise ValueError("doctor_profile is required for doctors and only for doctors")
        return self

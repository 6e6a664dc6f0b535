# medbook/schemas/shared.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr

from medbook.config.constants import Role


class Caller(BaseModel):
    """Verified identity attached to a request by the auth middleware."""
    id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.admin


class Pagination(BaseModel):
    page: int
    pages: int
    limit: int


class PatientSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    email: EmailStr
    phone: Optional[str] = None


class DoctorSummary(BaseModel):
    id: int
    first_name: str
    last_name: str
    specialization: str
    consultation_fee: float


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: EmailStr
    role: Role
    first_name: str
    last_name: str
    phone: Optional[str] = None
    created_at: Optional[datetime] = None

# medbook/schemas/doctor.py
from typing import Dict, List, Optional

from pydantic import BaseModel, EmailStr

from medbook.schemas.appointment import AppointmentOut
from medbook.schemas.shared import Pagination


class DoctorOut(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: EmailStr
    phone: Optional[str] = None
    specialization: str
    license_number: str
    experience_years: int
    consultation_fee: float
    bio: Optional[str] = None
    is_verified: bool
    rating_average: float
    rating_count: int
    total_appointments: int


class DoctorPage(BaseModel):
    count: int
    total: int
    pagination: Pagination
    doctors: List[DoctorOut]


class VerifyRequest(BaseModel):
    is_verified: bool


class DoctorStats(BaseModel):
    total: int
    verified: int
    pending: int


class DoctorDashboard(BaseModel):
    today_appointments: List[AppointmentOut]
    upcoming_appointments: List[AppointmentOut]
    monthly_stats: Dict[str, int]
    total_appointments: int
    rating_average: float
    rating_count: int

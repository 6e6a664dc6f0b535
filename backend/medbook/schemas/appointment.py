# medbook/schemas/appointment.py
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from medbook.schemas.shared import DoctorSummary, Pagination, PatientSummary


class AppointmentCreate(BaseModel):
    doctor_id: int
    appointment_date: date
    start_time: str
    end_time: str
    symptoms: Optional[str] = None
    notes: Optional[str] = None


class AppointmentUpdate(BaseModel):
    # Every field is optional; which ones apply depends on the caller's role
    status: Optional[str] = None
    prescription: Optional[str] = None
    diagnosis: Optional[str] = None
    follow_up_required: Optional[bool] = None
    follow_up_date: Optional[date] = None
    notes: Optional[str] = None
    symptoms: Optional[str] = None


class AppointmentCancel(BaseModel):
    cancellation_reason: Optional[str] = None


class AppointmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    doctor_id: int
    appointment_date: date
    start_time: str
    end_time: str
    status: str
    consultation_fee: float
    symptoms: Optional[str] = None
    notes: Optional[str] = None
    prescription: Optional[str] = None
    diagnosis: Optional[str] = None
    follow_up_required: bool = False
    follow_up_date: Optional[date] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Attached by the API layer, not stored on the row
    patient: Optional[PatientSummary] = None
    doctor: Optional[DoctorSummary] = None


class AppointmentPage(BaseModel):
    count: int
    total: int
    pagination: Pagination
    appointments: List[AppointmentOut]

# medbook/schemas/availability.py
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from medbook.config.constants import DEFAULT_SLOT_DURATION
from medbook.schemas.shared import DoctorSummary


class AvailabilityRuleIn(BaseModel):
    day_of_week: int  # 0 = Sunday .. 6 = Saturday
    start_time: str
    end_time: str
    slot_duration_minutes: int = DEFAULT_SLOT_DURATION
    is_active: bool = True


class AvailabilityReplace(BaseModel):
    availability: List[AvailabilityRuleIn]


class AvailabilityRuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    doctor_id: int
    day_of_week: int
    start_time: str
    end_time: str
    slot_duration_minutes: int
    is_active: bool


class WeeklyAvailabilityOut(BaseModel):
    doctor_id: int
    availability: List[AvailabilityRuleOut]


class SlotOut(BaseModel):
    start_time: str
    end_time: str
    available: bool


class DayAvailabilityOut(BaseModel):
    doctor_id: int
    date: date
    day_of_week: int
    configured: bool
    message: Optional[str] = None
    slot_duration_minutes: Optional[int] = None
    availability: List[SlotOut]
    doctor: Optional[DoctorSummary] = None

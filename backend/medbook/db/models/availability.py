# medbook/db/models/availability.py
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from medbook.db.base import Base


class AvailabilityRuleModel(Base):
    __tablename__ = "availability_rules"

    id = Column(Integer, primary_key=True)
    doctor_id = Column(
        Integer, ForeignKey("doctors.user_id", ondelete="CASCADE"), nullable=False
    )
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday .. 6 = Saturday
    start_time = Column(String(5), nullable=False)  # zero-padded HH:MM
    end_time = Column(String(5), nullable=False)
    slot_duration_minutes = Column(Integer, nullable=False, default=30)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_availability_day"),
        CheckConstraint(
            "slot_duration_minutes BETWEEN 15 AND 120", name="ck_availability_duration"
        ),
        CheckConstraint("end_time > start_time", name="ck_availability_range"),
        Index("ix_availability_doctor_day", "doctor_id", "day_of_week"),
    )

    doctor = relationship("DoctorModel", back_populates="availability_rules")

# medbook/db/models/appointment.py
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from medbook.db.base import Base
from sqlalchemy.sql import func

# Only active appointments hold a slot; cancelled/no-show rows may repeat it.
ACTIVE_SLOT_PREDICATE = text("status NOT IN ('cancelled', 'no-show')")
ACTIVE_SLOT_INDEX = "uq_appointments_active_slot"


class AppointmentModel(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.user_id"), nullable=False)
    appointment_date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)  # zero-padded HH:MM
    end_time = Column(String(5), nullable=False)

    status = Column(
        String(20), default="scheduled", nullable=False, index=True
    )  # scheduled, confirmed, completed, cancelled, no-show
    consultation_fee = Column(Numeric(10, 2), nullable=False)

    symptoms = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    prescription = Column(Text, nullable=True)
    diagnosis = Column(Text, nullable=True)
    follow_up_required = Column(Boolean, nullable=False, default=False)
    follow_up_date = Column(Date, nullable=True)

    cancellation_reason = Column(Text, nullable=True)
    cancelled_by = Column(String(20), nullable=True)  # patient, doctor, admin
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_appointments_range"),
        # Authoritative double-booking guard; the application check is only a fast path
        Index(
            ACTIVE_SLOT_INDEX,
            "doctor_id",
            "appointment_date",
            "start_time",
            unique=True,
            postgresql_where=ACTIVE_SLOT_PREDICATE,
            sqlite_where=ACTIVE_SLOT_PREDICATE,
        ),
        Index("ix_appointments_patient_date", "patient_id", "appointment_date"),
        Index("ix_appointments_doctor_date", "doctor_id", "appointment_date"),
    )

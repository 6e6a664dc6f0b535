# medbook/db/models/doctor.py
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from medbook.db.base import Base


class DoctorModel(Base):
    __tablename__ = "doctors"

    # the doctor's id *is* the user id, so caller identities compare directly
    user_id = Column(Integer,
                     ForeignKey("users.id", ondelete="CASCADE"),
                     primary_key=True)

    specialization = Column(String(100), nullable=False, index=True)
    license_number = Column(String(50), nullable=False, unique=True)
    experience_years = Column(Integer, nullable=False, default=0)
    consultation_fee = Column(Numeric(10, 2), nullable=False)
    bio = Column(Text)
    is_verified = Column(Boolean, nullable=False, default=False, index=True)
    rating_average = Column(Float, nullable=False, default=0)
    rating_count = Column(Integer, nullable=False, default=0)
    total_appointments = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("experience_years >= 0", name="ck_doctors_experience"),
        CheckConstraint("consultation_fee >= 0", name="ck_doctors_fee"),
    )

    user = relationship("UserModel", back_populates="doctor_profile")
    availability_rules = relationship(
        "AvailabilityRuleModel",
        back_populates="doctor",
        cascade="all, delete-orphan",
    )

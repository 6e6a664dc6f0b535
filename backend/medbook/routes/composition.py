"""
Read-side composition: attach patient and doctor summaries to appointments.

The core returns plain rows; the API layer joins in the people involved
with one batched lookup per side instead of per-row population.
"""
from typing import List, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from medbook.db.crud.doctor import get_doctors_by_ids
from medbook.db.crud.user import get_users_by_ids
from medbook.db.models import AppointmentModel, DoctorModel
from medbook.schemas.appointment import AppointmentOut
from medbook.schemas.doctor import DoctorOut
from medbook.schemas.shared import DoctorSummary, PatientSummary


def doctor_summary(doctor: DoctorModel) -> DoctorSummary:
    return DoctorSummary(
        id=doctor.user_id,
        first_name=doctor.user.first_name,
        last_name=doctor.user.last_name,
        specialization=doctor.specialization,
        consultation_fee=float(doctor.consultation_fee),
    )


def doctor_out(doctor: DoctorModel) -> DoctorOut:
    """Flatten a doctor profile and its user into the public representation."""
    return DoctorOut(
        id=doctor.user_id,
        first_name=doctor.user.first_name,
        last_name=doctor.user.last_name,
        email=doctor.user.email,
        phone=doctor.user.phone,
        specialization=doctor.specialization,
        license_number=doctor.license_number,
        experience_years=doctor.experience_years,
        consultation_fee=float(doctor.consultation_fee),
        bio=doctor.bio,
        is_verified=doctor.is_verified,
        rating_average=doctor.rating_average or 0,
        rating_count=doctor.rating_count or 0,
        total_appointments=doctor.total_appointments or 0,
    )


async def present_appointments(
    db: AsyncSession, appointments: Sequence[AppointmentModel]
) -> List[AppointmentOut]:
    patients = await get_users_by_ids(db, (a.patient_id for a in appointments))
    doctors = await get_doctors_by_ids(db, (a.doctor_id for a in appointments))

    presented = []
    for appt in appointments:
        out = AppointmentOut.model_validate(appt, from_attributes=True)
        if (patient := patients.get(appt.patient_id)) is not None:
            out.patient = PatientSummary.model_validate(patient, from_attributes=True)
        if (doctor := doctors.get(appt.doctor_id)) is not None:
            out.doctor = doctor_summary(doctor)
        presented.append(out)
    return presented


async def present_appointment(db: AsyncSession, appointment: AppointmentModel) -> AppointmentOut:
    return (await present_appointments(db, [appointment]))[0]

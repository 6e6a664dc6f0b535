import asyncio
import logging
import sys
from pathlib import Path

# Add the parent directory to sys.path to allow importing from medbook
backend_dir = Path(__file__).parent.parent
sys.path.append(str(backend_dir))

from medbook.config.constants import Role
from medbook.config.settings import settings
from medbook.core.auth import get_password_hash
from medbook.db.base import get_engine, get_session_factory
from medbook.db.crud.user import get_user_by_email
from medbook.db.models.availability import AvailabilityRuleModel
from medbook.db.models.doctor import DoctorModel
from medbook.db.models.user import UserModel
from medbook.db.session import script_db_session, set_global_session_factory

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("seed_doctors")

DEFAULT_PASSWORD = "TestPassword1!"

# email, first name, last name, specialization, license, years, fee
DOCTORS = [
    ("dr.smith@example.com", "John", "Smith", "Cardiology", "LIC-1001", 18, 150),
    ("dr.johnson@example.com", "Alice", "Johnson", "Cardiology", "LIC-1002", 9, 120),
    ("dr.house@example.com", "Gregory", "House", "Diagnostic Medicine", "LIC-1003", 25, 300),
    ("dr.chen@example.com", "Mei", "Chen", "Neurology", "LIC-1004", 12, 180),
    ("dr.brown@example.com", "Sarah", "Brown", "Pediatrics", "LIC-1005", 15, 90),
    ("dr.taylor@example.com", "Emily", "Taylor", "Dermatology", "LIC-1006", 4, 110),
]

# Monday to Friday 09:00-17:00, Saturday morning; 0 = Sunday
WEEKLY_RULES = [(day, "09:00", "17:00", 30) for day in range(1, 6)] + [(6, "09:00", "12:00", 20)]

ACCOUNTS = [
    ("admin@example.com", "Site", "Admin", Role.admin),
    ("patient@example.com", "Pat", "Doe", Role.patient),
]


async def seed(db) -> None:
    for email, first_name, last_name, role in ACCOUNTS:
        if await get_user_by_email(db, email):
            logger.info(f"User {email} already exists. Skipping.")
            continue
        db.add(UserModel(
            email=email,
            password_hash=get_password_hash(DEFAULT_PASSWORD),
            role=role.value,
            first_name=first_name,
            last_name=last_name,
        ))
        logger.info(f"Added {role.value}: {email}")

    for email, first_name, last_name, specialization, license_number, years, fee in DOCTORS:
        if await get_user_by_email(db, email):
            logger.info(f"Doctor with email {email} already exists. Skipping.")
            continue

        user = UserModel(
            email=email,
            password_hash=get_password_hash(DEFAULT_PASSWORD),
            role=Role.doctor.value,
            first_name=first_name,
            last_name=last_name,
        )
        user.doctor_profile = DoctorModel(
            specialization=specialization,
            license_number=license_number,
            experience_years=years,
            consultation_fee=fee,
            is_verified=True,
            availability_rules=[
                AvailabilityRuleModel(
                    day_of_week=day,
                    start_time=start,
                    end_time=end,
                    slot_duration_minutes=duration,
                    is_active=True,
                )
                for day, start, end, duration in WEEKLY_RULES
            ],
        )
        db.add(user)
        logger.info(f"Added doctor: {first_name} {last_name} ({email}), {specialization}")

    await db.commit()


async def main() -> None:
    logger.info(f"Connecting to database at: {settings.database_url}")
    engine = await get_engine(str(settings.database_url))
    set_global_session_factory(await get_session_factory(engine))
    try:
        async with script_db_session() as db:
            await seed(db)
        logger.info(f"Seed complete. Every account uses the password {DEFAULT_PASSWORD!r}")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())

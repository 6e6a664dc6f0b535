# tests/conftest.py
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from medbook.config.constants import Role
from medbook.db.base import Base, get_session_factory
from medbook.db.models import AvailabilityRuleModel, DoctorModel, UserModel
from medbook.main import app
from tests._helpers import PASSWORD_HASH, next_weekday


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session_factory(engine):
    return await get_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    app.state.session_factory = session_factory
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _add_user(db, email, role, first_name="Test", last_name="User") -> UserModel:
    user = UserModel(
        email=email,
        password_hash=PASSWORD_HASH,
        role=role.value,
        first_name=first_name,
        last_name=last_name,
        phone="555-0100",
    )
    db.add(user)
    await db.commit()
    return user


async def _add_doctor(db, email, license_number, fee="100.00", verified=True, **profile) -> UserModel:
    user = await _add_user(db, email, Role.doctor, first_name="Gregory", last_name="House")
    db.add(
        DoctorModel(
            user_id=user.id,
            specialization=profile.get("specialization", "Cardiology"),
            license_number=license_number,
            experience_years=profile.get("experience_years", 10),
            consultation_fee=Decimal(fee),
            bio=profile.get("bio"),
            is_verified=verified,
            rating_average=profile.get("rating_average", 0),
            rating_count=0,
            total_appointments=0,
        )
    )
    await db.commit()
    return user


@pytest.fixture
async def patient(db):
    return await _add_user(db, "patient@example.com", Role.patient, first_name="Pat", last_name="Doe")


@pytest.fixture
async def other_patient(db):
    return await _add_user(db, "other.patient@example.com", Role.patient, first_name="Sam", last_name="Roe")


@pytest.fixture
async def admin(db):
    return await _add_user(db, "admin@example.com", Role.admin, first_name="Ada", last_name="Admin")


@pytest.fixture
async def doctor(db):
    return await _add_doctor(db, "dr.house@example.com", "LIC-1", fee="100.00")


@pytest.fixture
async def other_doctor(db):
    return await _add_doctor(
        db, "dr.chen@example.com", "LIC-2", fee="80.00", specialization="Neurology"
    )


@pytest.fixture
async def weekday_rules(db, doctor):
    """Monday to Friday, 09:00-17:00, 30 minute slots."""
    rules = [
        AvailabilityRuleModel(
            doctor_id=doctor.id,
            day_of_week=day,
            start_time="09:00",
            end_time="17:00",
            slot_duration_minutes=30,
            is_active=True,
        )
        for day in range(1, 6)
    ]
    db.add_all(rules)
    await db.commit()
    return rules


@pytest.fixture
def monday():
    return next_weekday(1)

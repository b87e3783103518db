import os
from datetime import time, timedelta
from decimal import Decimal
from typing import AsyncGenerator
from unittest.mock import MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

# Ensure critical settings exist before the app/config modules import.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key-change-me-please-0123456789")
os.environ.setdefault("SITE_TIMEZONE", "UTC")

from app.models.catalog import ExerciseType, Instructor, Venue
from app.models.class_session import ClassSession, Weekday
from app.models.customer import Customer
from app.models.term import Term
from app.models.user import Role, User
from app.utils.dates import today_local
from app.utils.security import create_access_token, hash_password
from core.db import get_db
from core.db.base import Base
from main import app

# Use SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@pytest.fixture
def past_monday():
    """Most recent Monday strictly before today."""
    today = today_local()
    return today - timedelta(days=(today.weekday() or 7))


@pytest.fixture
def next_monday():
    """First Monday strictly after today."""
    today = today_local()
    return today + timedelta(days=(7 - today.weekday()) or 7)


@pytest.fixture(autouse=True)
async def setup_db():
    """Create and drop all tables for each test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def mock_email_tasks():
    """Replace Celery dispatch so no broker is needed."""
    from app.tasks import email_tasks

    with patch.object(
        email_tasks.send_payment_receipt_email, "delay", MagicMock()
    ) as receipt, patch.object(
        email_tasks.send_admin_enrollment_notification, "delay", MagicMock()
    ) as admin, patch.object(
        email_tasks.send_cancellation_decision_email, "delay", MagicMock()
    ) as decision:
        yield {"receipt": receipt, "admin": admin, "decision": decision}


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for testing."""
    async with TestSessionLocal() as session:
        yield session


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client for testing."""

    async def override_get_db():
        async with TestSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


async def _create_user(
    db_session: AsyncSession, email: str, role: Role, first_name: str, last_name: str
) -> User:
    user = User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        hashed_password=hash_password("TestPass123"),
        role=role,
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    return user


def _headers(user: User) -> dict:
    token = create_access_token(user.id, user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "admin@example.com", Role.ADMIN, "Admin", "User")


@pytest.fixture
async def instructor_user(db_session: AsyncSession) -> User:
    return await _create_user(
        db_session, "coach@example.com", Role.INSTRUCTOR, "Casey", "Coach"
    )


@pytest.fixture
async def customer_user(db_session: AsyncSession) -> User:
    return await _create_user(
        db_session, "test@example.com", Role.CUSTOMER, "Test", "Customer"
    )


@pytest.fixture
async def test_customer(db_session: AsyncSession, customer_user: User) -> Customer:
    """Customer profile linked to ``customer_user``."""
    customer = Customer(
        user_id=customer_user.id,
        first_name="Test",
        surname="Customer",
        email=customer_user.email,
        contact_no="0400 000 000",
    )
    db_session.add(customer)
    await db_session.commit()
    return customer


@pytest.fixture
async def other_customer(db_session: AsyncSession) -> Customer:
    """Walk-in customer without a login."""
    customer = Customer(
        first_name="Alex",
        surname="Adams",
        email="alex@example.com",
    )
    db_session.add(customer)
    await db_session.commit()
    return customer


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return _headers(admin_user)


@pytest.fixture
def instructor_headers(instructor_user: User) -> dict:
    return _headers(instructor_user)


@pytest.fixture
def auth_headers(customer_user: User, test_customer: Customer) -> dict:
    """Headers for the logged-in customer."""
    return _headers(customer_user)


@pytest.fixture
async def test_venue(db_session: AsyncSession) -> Venue:
    venue = Venue(name="Community Hall", address="1 Main St")
    db_session.add(venue)
    await db_session.commit()
    return venue


@pytest.fixture
async def test_instructor(db_session: AsyncSession, instructor_user: User) -> Instructor:
    instructor = Instructor(
        name="Casey Coach", email=instructor_user.email, user_id=instructor_user.id
    )
    db_session.add(instructor)
    await db_session.commit()
    return instructor


@pytest.fixture
async def test_exercise_type(db_session: AsyncSession) -> ExerciseType:
    exercise_type = ExerciseType(name="Strength and Balance")
    db_session.add(exercise_type)
    await db_session.commit()
    return exercise_type


@pytest.fixture
async def test_term(db_session: AsyncSession) -> Term:
    """Current term: five weeks back, nine weeks ahead."""
    today = today_local()
    term = Term(
        fiscal_year=today.year,
        term_number=1,
        start_date=today - timedelta(days=35),
        end_date=today + timedelta(days=63),
    )
    db_session.add(term)
    await db_session.commit()
    return term


@pytest.fixture
async def make_session(
    db_session: AsyncSession,
    test_term: Term,
    test_venue: Venue,
    test_instructor: Instructor,
    test_exercise_type: ExerciseType,
):
    """Factory for sessions in the current term."""

    async def _make(
        day_of_week: Weekday = Weekday.MONDAY,
        fee_amount: Decimal = Decimal("100.00"),
        name: str = "Monday Strength",
        is_subsidised: bool = False,
        instructor_id: str = None,
    ) -> ClassSession:
        session = ClassSession(
            name=name,
            term_id=test_term.id,
            day_of_week=day_of_week,
            start_time=time(10, 0),
            end_time=time(11, 0),
            fee_amount=fee_amount,
            venue_id=test_venue.id,
            instructor_id=instructor_id or test_instructor.id,
            exercise_type_id=test_exercise_type.id,
            is_subsidised=is_subsidised,
        )
        db_session.add(session)
        await db_session.commit()
        return await ClassSession.get_by_id(db_session, session.id)

    return _make


@pytest.fixture
async def monday_session(make_session) -> ClassSession:
    return await make_session()


@pytest.fixture
async def enroll(db_session: AsyncSession):
    """Factory creating a paid enrollment directly through the intake service."""
    from app.models.payment import PaymentMethod
    from app.services.checkout_service import DraftItem
    from app.services.payment_intake_service import PaymentIntakeService

    async def _enroll(customer: Customer, *items: DraftItem, method=PaymentMethod.CASH):
        result = await PaymentIntakeService(db_session).create_manual_enrollment(
            customer_id=customer.id,
            items=list(items),
            method=method,
        )
        return result.enrollment

    return _enroll

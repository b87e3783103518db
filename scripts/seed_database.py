"""
Database seeding script: creates the schema and a small demo studio.

Usage:
    python -m scripts.seed_database [--reset]

Deployed databases are built with ``alembic upgrade head`` instead; pass
``--no-schema`` there to seed demo data only.
"""

import argparse
import asyncio
from datetime import time, timedelta
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

# Registers every table on Base.metadata
import app.models  # noqa: F401
from app.models.catalog import ExerciseType, Instructor, Venue
from app.models.class_session import ClassSession, Weekday
from app.models.customer import Customer
from app.models.enrollment import EnrollmentType
from app.models.payment import PaymentMethod
from app.models.term import Term
from app.models.user import Role, User
from app.services.checkout_service import DraftItem
from app.services.payment_intake_service import PaymentIntakeService
from app.utils.dates import today_local
from app.utils.security import hash_password
from core.db import Base, async_session_factory, engine
from core.logging import get_logger, setup_logging

logger = get_logger(__name__)


class DatabaseSeeder:
    """Database seeding utility."""

    def __init__(self):
        self.users = []
        self.customers = []
        self.instructors = []
        self.sessions = []
        self.term = None

    async def create_schema(self, reset: bool = False):
        async with engine.begin() as conn:
            if reset:
                logger.info("Dropping existing tables...")
                await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Schema ready")

    async def seed_all(self):
        """Seed all tables with demo data."""
        async with async_session_factory() as session:
            logger.info("Starting database seeding...")

            await self.seed_users(session)
            await self.seed_catalog(session)
            await session.commit()

            await self.seed_enrollments(session)
            logger.info("Database seeding completed successfully!")

    async def seed_users(self, session: AsyncSession):
        logger.info("Seeding users...")

        staff = [
            ("admin@share.example", "Morgan", "Reid", Role.ADMIN, "Admin1234"),
            ("office@share.example", "Jordan", "Lee", Role.STAFF, "Staff1234"),
            ("robin@share.example", "Robin", "Hart", Role.INSTRUCTOR, "Coach1234"),
            ("sam@share.example", "Sam", "Ng", Role.INSTRUCTOR, "Coach1234"),
        ]
        for email, first, last, role, password in staff:
            user = User(
                email=email,
                hashed_password=hash_password(password),
                first_name=first,
                last_name=last,
                role=role,
            )
            session.add(user)
            self.users.append(user)

        customers = [
            ("pat.walker@example.com", "Pat", "Walker", "0400 111 222"),
            ("chris.nguyen@example.com", "Chris", "Nguyen", "0400 333 444"),
            ("dana.okafor@example.com", "Dana", "Okafor", None),
        ]
        for email, first, last, phone in customers:
            user = User(
                email=email,
                hashed_password=hash_password("Customer123"),
                first_name=first,
                last_name=last,
                role=Role.CUSTOMER,
            )
            session.add(user)
            await session.flush()
            customer = Customer(
                user_id=user.id,
                first_name=first,
                surname=last,
                email=email,
                contact_no=phone,
            )
            session.add(customer)
            self.customers.append(customer)

        await session.flush()
        logger.info(f"Created {len(self.users)} staff and {len(self.customers)} customers")

    async def seed_catalog(self, session: AsyncSession):
        logger.info("Seeding term, venues and sessions...")

        today = today_local()
        # Current term started four weeks ago and runs ten weeks
        start = today - timedelta(days=today.weekday() + 28)
        self.term = Term(
            fiscal_year=today.year,
            term_number=1,
            start_date=start,
            end_date=start + timedelta(weeks=10, days=-1),
        )
        session.add(self.term)

        hall = Venue(name="Community Hall", address="12 Station St")
        pool = Venue(name="Aquatic Centre", address="1 Beach Rd")
        strength = ExerciseType(name="Strength", description="Seated and standing strength work")
        aqua = ExerciseType(name="Aqua", description="Low impact water exercise")
        session.add_all([hall, pool, strength, aqua])

        for user in self.users:
            if user.role == Role.INSTRUCTOR:
                instructor = Instructor(
                    user_id=user.id, name=f"{user.first_name} {user.last_name}", email=user.email
                )
                session.add(instructor)
                self.instructors.append(instructor)
        await session.flush()

        slots = [
            ("Monday Strength", Weekday.MONDAY, time(9, 30), Decimal("100.00"), hall, strength, False),
            ("Wednesday Aqua", Weekday.WEDNESDAY, time(11, 0), Decimal("120.00"), pool, aqua, False),
            ("Friday Gentle Strength", Weekday.FRIDAY, time(10, 0), Decimal("40.00"), hall, strength, True),
        ]
        for index, (name, day, start_time, fee, venue, kind, subsidised) in enumerate(slots):
            class_session = ClassSession(
                name=name,
                term_id=self.term.id,
                day_of_week=day,
                start_time=start_time,
                end_time=time(start_time.hour + 1, start_time.minute),
                fee_amount=fee,
                venue_id=venue.id,
                instructor_id=self.instructors[index % len(self.instructors)].id,
                exercise_type_id=kind.id,
                is_subsidised=subsidised,
            )
            session.add(class_session)
            self.sessions.append(class_session)

        await session.flush()
        logger.info(f"Created term {self.term.label} with {len(self.sessions)} sessions")

    async def seed_enrollments(self, session: AsyncSession):
        logger.info("Seeding enrollments...")
        intake = PaymentIntakeService(session)

        monday, wednesday, _ = self.sessions
        await intake.create_manual_enrollment(
            customer_id=self.customers[0].id,
            items=[
                DraftItem(session_id=monday.id, enrollment_type=EnrollmentType.FULL),
                DraftItem(session_id=wednesday.id, enrollment_type=EnrollmentType.FULL),
            ],
            method=PaymentMethod.BANK_TRANSFER,
            notes="Seed data",
        )
        await intake.create_manual_enrollment(
            customer_id=self.customers[1].id,
            items=[DraftItem(session_id=monday.id, enrollment_type=EnrollmentType.FULL)],
            method=PaymentMethod.CASH,
            notes="Seed data",
        )
        logger.info("Created 2 enrollments")


async def main(reset: bool = False, create_schema: bool = True):
    """Main entry point for seeding."""
    setup_logging()
    seeder = DatabaseSeeder()
    if create_schema:
        await seeder.create_schema(reset=reset)
    await seeder.seed_all()
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--reset", action="store_true", help="drop all tables first")
    parser.add_argument(
        "--no-schema", action="store_true", help="seed an already-migrated database"
    )
    args = parser.parse_args()
    asyncio.run(main(reset=args.reset, create_schema=not args.no_schema))

"""Reference data a session is scheduled against: venues, instructors, exercise types."""

from typing import Optional, Sequence
from uuid import uuid4

from sqlalchemy import Boolean, ForeignKey, String, Text, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base, TimestampMixin


class Venue(Base, TimestampMixin):
    """Physical location where sessions run."""

    __tablename__ = "venues"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @classmethod
    async def get_all(cls, db_session: AsyncSession) -> Sequence["Venue"]:
        result = await db_session.execute(
            select(cls).where(cls.is_active.is_(True)).order_by(cls.name)
        )
        return result.scalars().all()


class Instructor(Base, TimestampMixin):
    """Instructor taking sessions; optionally linked to a login."""

    __tablename__ = "instructors"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id"), unique=True, nullable=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @classmethod
    async def get_by_user_id(
        cls, db_session: AsyncSession, user_id: str
    ) -> Optional["Instructor"]:
        result = await db_session.execute(select(cls).where(cls.user_id == user_id))
        return result.scalars().first()

    @classmethod
    async def get_all(cls, db_session: AsyncSession) -> Sequence["Instructor"]:
        result = await db_session.execute(
            select(cls).where(cls.is_active.is_(True)).order_by(cls.name)
        )
        return result.scalars().all()


class ExerciseType(Base, TimestampMixin):
    """Kind of class offered (e.g. strength, balance, aqua)."""

    __tablename__ = "exercise_types"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    @classmethod
    async def get_all(cls, db_session: AsyncSession) -> Sequence["ExerciseType"]:
        result = await db_session.execute(select(cls).order_by(cls.name))
        return result.scalars().all()

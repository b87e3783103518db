"""Term model: the date window a session's weekly occurrences are bounded by."""

from datetime import date
from typing import Optional, Sequence
from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    Integer,
    String,
    UniqueConstraint,
    func,
    select,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base, TimestampMixin


class Term(Base, TimestampMixin):
    """A numbered term within a fiscal year."""

    __tablename__ = "terms"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)
    term_number: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        UniqueConstraint("fiscal_year", "term_number", name="uq_term_year_number"),
        CheckConstraint("start_date <= end_date", name="term_dates_ordered"),
    )

    @property
    def label(self) -> str:
        return f"FY{self.fiscal_year} Term {self.term_number}"

    @classmethod
    async def get_by_id(cls, db_session: AsyncSession, id: str) -> Optional["Term"]:
        result = await db_session.execute(select(cls).where(cls.id == id))
        return result.scalars().first()

    @classmethod
    async def get_by_year_and_number(
        cls, db_session: AsyncSession, fiscal_year: int, term_number: int
    ) -> Optional["Term"]:
        result = await db_session.execute(
            select(cls).where(
                cls.fiscal_year == fiscal_year, cls.term_number == term_number
            )
        )
        return result.scalars().first()

    @classmethod
    async def get_all(cls, db_session: AsyncSession) -> Sequence["Term"]:
        result = await db_session.execute(
            select(cls).order_by(cls.start_date.desc())
        )
        return result.scalars().all()

    async def has_sessions(self, db_session: AsyncSession) -> bool:
        """Whether any session is scheduled against this term."""
        from app.models.class_session import ClassSession

        result = await db_session.execute(
            select(func.count(ClassSession.id)).where(ClassSession.term_id == self.id)
        )
        return (result.scalar() or 0) > 0

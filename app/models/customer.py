"""Customer profile carrying contact details and the class credit balance."""

from typing import TYPE_CHECKING, Optional
from uuid import uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.db import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.user import User


class Customer(Base, TimestampMixin):
    """A person who enrolls in sessions."""

    __tablename__ = "customers"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id"), unique=True, nullable=True
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    surname: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    contact_no: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    # Whole classes owed to the customer; only accepted cancellations add to it
    credit_balance: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )

    user: Mapped[Optional["User"]] = relationship("User", back_populates="customer")

    __table_args__ = (
        CheckConstraint("credit_balance >= 0", name="credit_balance_non_negative"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.surname}"

    @classmethod
    async def get_by_id(
        cls, db_session: AsyncSession, id: str
    ) -> Optional["Customer"]:
        result = await db_session.execute(select(cls).where(cls.id == id))
        return result.scalars().first()

    @classmethod
    async def get_by_user_id(
        cls, db_session: AsyncSession, user_id: str
    ) -> Optional["Customer"]:
        result = await db_session.execute(select(cls).where(cls.user_id == user_id))
        return result.scalars().first()

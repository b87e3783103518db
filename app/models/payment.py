"""Payment record created once per enrollment at checkout completion."""

import enum
import random
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, Sequence
from uuid import uuid4

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Numeric,
    String,
    Text,
    select,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column, relationship, selectinload

from core.db import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.enrollment import Enrollment


class PaymentMethod(str, enum.Enum):
    """How the customer paid."""

    STRIPE = "stripe"
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    NO_CHARGE = "no_charge"  # Trial-only checkouts


class PaymentStatus(str, enum.Enum):
    """Status of a payment."""

    COMPLETED = "completed"
    PENDING = "pending"  # Awaiting manual reconciliation
    FAILED = "failed"
    REFUNDED = "refunded"


def generate_receipt_number() -> str:
    """Random 8-digit receipt number (never starts with 0)."""
    return str(random.randint(10_000_000, 99_999_999))


class Payment(Base, TimestampMixin):
    """Payment for an enrollment."""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    enrollment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("enrollments.id"), nullable=False, unique=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod, native_enum=False,
             values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, native_enum=False,
             values_callable=lambda x: [e.value for e in x]),
        default=PaymentStatus.PENDING,
        nullable=False,
    )
    # Processor transaction id (Stripe PaymentIntent id)
    transaction_ref: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True, nullable=True
    )
    receipt_number: Mapped[str] = mapped_column(
        String(8), unique=True, nullable=False
    )
    payment_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    enrollment: Mapped["Enrollment"] = relationship("Enrollment")

    @classmethod
    async def get_by_id(
        cls, db_session: AsyncSession, id: str
    ) -> Optional["Payment"]:
        result = await db_session.execute(select(cls).where(cls.id == id))
        return result.scalars().first()

    @classmethod
    async def get_by_enrollment_id(
        cls, db_session: AsyncSession, enrollment_id: str
    ) -> Optional["Payment"]:
        result = await db_session.execute(
            select(cls).where(cls.enrollment_id == enrollment_id)
        )
        return result.scalars().first()

    @classmethod
    async def receipt_number_taken(
        cls, db_session: AsyncSession, receipt_number: str
    ) -> bool:
        result = await db_session.execute(
            select(cls.id).where(cls.receipt_number == receipt_number)
        )
        return result.first() is not None

    @classmethod
    async def get_awaiting_reconciliation(
        cls, db_session: AsyncSession
    ) -> Sequence["Payment"]:
        result = await db_session.execute(
            select(cls)
            .options(selectinload(cls.enrollment))
            .where(cls.status == PaymentStatus.PENDING)
            .order_by(cls.payment_date)
        )
        return result.scalars().all()

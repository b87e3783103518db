"""Customer class-credit ledger."""

import enum
from typing import TYPE_CHECKING, Optional, Sequence
from uuid import uuid4

from sqlalchemy import (
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    select,
    update,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.db import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.cancellation import CancellationRequest
    from app.models.customer import Customer


class CreditTransactionType(str, enum.Enum):
    """Type of credit transaction."""

    CANCELLATION_CREDIT = "cancellation_credit"  # Accepted class cancellation


class CreditTransaction(Base, TimestampMixin):
    """One change to a customer's credit balance."""

    __tablename__ = "credit_transactions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    customer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False, index=True
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_type: Mapped[CreditTransactionType] = mapped_column(
        Enum(CreditTransactionType, native_enum=False,
             values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # A cancellation request earns credit at most once
    cancellation_request_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("cancellation_requests.id", ondelete="SET NULL"),
        unique=True, nullable=True
    )
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)

    customer: Mapped["Customer"] = relationship("Customer")
    cancellation_request: Mapped[Optional["CancellationRequest"]] = relationship(
        "CancellationRequest"
    )

    __table_args__ = (
        Index("ix_credit_transactions_created_at", "created_at"),
    )

    @classmethod
    async def issue_for_cancellation(
        cls,
        db_session: AsyncSession,
        customer_id: str,
        cancellation_request_id: str,
        description: str = None,
    ) -> "CreditTransaction":
        """Add one class credit to the customer; the caller commits."""
        from app.models.customer import Customer

        # Increment in SQL so concurrent credits cannot overwrite each other
        result = await db_session.execute(
            update(Customer)
            .where(Customer.id == customer_id)
            .values(credit_balance=Customer.credit_balance + 1)
        )
        if result.rowcount != 1:
            raise ValueError(f"Customer {customer_id} not found")

        balance = await db_session.execute(
            select(Customer.credit_balance).where(Customer.id == customer_id)
        )
        balance_after = balance.scalar_one()

        transaction = cls(
            customer_id=customer_id,
            amount=1,
            transaction_type=CreditTransactionType.CANCELLATION_CREDIT,
            description=description,
            cancellation_request_id=cancellation_request_id,
            balance_after=balance_after,
        )
        db_session.add(transaction)
        await db_session.flush()
        return transaction

    @classmethod
    async def get_customer_transactions(
        cls,
        db_session: AsyncSession,
        customer_id: str,
        limit: int = 50,
    ) -> Sequence["CreditTransaction"]:
        result = await db_session.execute(
            select(cls)
            .where(cls.customer_id == customer_id)
            .order_by(cls.created_at.desc())
            .limit(limit)
        )
        return result.scalars().all()

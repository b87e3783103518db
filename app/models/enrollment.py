"""Enrollment and per-session subscription models."""

import enum
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional, Sequence
from uuid import uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    select,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column, relationship, selectinload

from core.db import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.class_session import ClassSession
    from app.models.customer import Customer
    from app.services.eligibility import EnrollmentSelection


class EnrollmentStatus(str, enum.Enum):
    """Status of an enrollment."""

    ACTIVE = "active"
    CANCELLED = "cancelled"


class EnrollmentPaymentStatus(str, enum.Enum):
    """Whether the enrollment has been paid for."""

    PAID = "paid"
    PENDING = "pending"  # Includes amounts held for reconciliation
    CANCELLED = "cancelled"
    DISPUTED = "disputed"  # Customer opened a chargeback


class EnrollmentType(str, enum.Enum):
    """How much of a session's term the subscription covers."""

    FULL = "full"
    TRIAL = "trial"
    PARTIAL = "partial"


class Enrollment(Base, TimestampMixin):
    """One checkout: a customer's set of session subscriptions paid together."""

    __tablename__ = "enrollments"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    customer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("customers.id"), nullable=False, index=True
    )
    status: Mapped[EnrollmentStatus] = mapped_column(
        Enum(EnrollmentStatus, native_enum=False,
             values_callable=lambda x: [e.value for e in x]),
        default=EnrollmentStatus.ACTIVE,
        nullable=False,
    )
    payment_status: Mapped[EnrollmentPaymentStatus] = mapped_column(
        Enum(EnrollmentPaymentStatus, native_enum=False,
             values_callable=lambda x: [e.value for e in x]),
        default=EnrollmentPaymentStatus.PENDING,
        nullable=False,
    )
    # Processor transaction id; repeated payment events resolve to this row
    payment_intent_id: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True, nullable=True
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    customer: Mapped["Customer"] = relationship("Customer", lazy="selectin")
    sessions: Mapped[List["EnrollmentSession"]] = relationship(
        "EnrollmentSession",
        back_populates="enrollment",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @classmethod
    async def get_by_id(
        cls, db_session: AsyncSession, id: str
    ) -> Optional["Enrollment"]:
        result = await db_session.execute(
            select(cls)
            .options(selectinload(cls.sessions).selectinload(EnrollmentSession.session))
            .where(cls.id == id)
        )
        return result.scalars().first()

    @classmethod
    async def get_by_payment_intent(
        cls, db_session: AsyncSession, payment_intent_id: str
    ) -> Optional["Enrollment"]:
        result = await db_session.execute(
            select(cls).where(cls.payment_intent_id == payment_intent_id)
        )
        return result.scalars().first()

    @classmethod
    async def get_by_customer_id(
        cls,
        db_session: AsyncSession,
        customer_id: str,
        status: EnrollmentStatus = None,
    ) -> Sequence["Enrollment"]:
        conditions = [cls.customer_id == customer_id]
        if status:
            conditions.append(cls.status == status)

        result = await db_session.execute(
            select(cls)
            .options(selectinload(cls.sessions).selectinload(EnrollmentSession.session))
            .where(*conditions)
            .order_by(cls.created_at.desc())
        )
        return result.scalars().all()

    @property
    def is_cancellable(self) -> bool:
        return self.status == EnrollmentStatus.ACTIVE

    def cancel(self, reason: str = None) -> None:
        """Terminate the enrollment; the caller commits."""
        self.status = EnrollmentStatus.CANCELLED
        self.cancelled_at = datetime.now(timezone.utc)
        self.cancellation_reason = reason


class EnrollmentSession(Base, TimestampMixin):
    """An enrollment's subscription to one session.

    ``trial_date`` is set only for trials and ``partial_dates`` only for
    partial enrollments; ``selection`` exposes them as a tagged variant.
    """

    __tablename__ = "enrollment_sessions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    enrollment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("enrollments.id", ondelete="CASCADE"),
        nullable=False, index=True
    )
    session_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("sessions.id"), nullable=False, index=True
    )
    enrollment_type: Mapped[EnrollmentType] = mapped_column(
        Enum(EnrollmentType, native_enum=False,
             values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    trial_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    # ISO date strings, kept sorted
    partial_dates: Mapped[Optional[List[str]]] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )
    booking_date: Mapped[date] = mapped_column(Date, nullable=False)
    fee: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0.00")
    )

    enrollment: Mapped["Enrollment"] = relationship(
        "Enrollment", back_populates="sessions"
    )
    session: Mapped["ClassSession"] = relationship("ClassSession", lazy="selectin")

    __table_args__ = (
        UniqueConstraint(
            "enrollment_id", "session_id", name="uq_enrollment_session_once"
        ),
        CheckConstraint(
            "(enrollment_type = 'trial') = (trial_date IS NOT NULL)",
            name="trial_date_iff_trial",
        ),
        CheckConstraint(
            "(enrollment_type = 'partial') = (partial_dates IS NOT NULL)",
            name="partial_dates_iff_partial",
        ),
    )

    @property
    def partial_date_set(self) -> frozenset:
        return frozenset(date.fromisoformat(d) for d in (self.partial_dates or []))

    @property
    def selection(self) -> "EnrollmentSelection":
        from app.services.eligibility import (
            FullSelection,
            PartialSelection,
            TrialSelection,
        )

        if self.enrollment_type == EnrollmentType.TRIAL:
            return TrialSelection(trial_date=self.trial_date)
        if self.enrollment_type == EnrollmentType.PARTIAL:
            return PartialSelection(partial_dates=self.partial_date_set)
        return FullSelection()

    def apply_selection(self, selection: "EnrollmentSelection") -> None:
        """Store a tagged selection onto the type-specific columns."""
        from app.services.eligibility import PartialSelection, TrialSelection

        self.enrollment_type = selection.enrollment_type
        self.trial_date = (
            selection.trial_date if isinstance(selection, TrialSelection) else None
        )
        self.partial_dates = (
            [d.isoformat() for d in selection.dates]
            if isinstance(selection, PartialSelection)
            else None
        )

    def is_eligible_on(self, day: date) -> bool:
        """Eligibility against the session's current term calendar."""
        from app.services.eligibility import is_eligible

        return is_eligible(self.selection, self.session.occurrence_dates(), day)

    @classmethod
    async def get_by_id(
        cls, db_session: AsyncSession, id: str
    ) -> Optional["EnrollmentSession"]:
        result = await db_session.execute(
            select(cls)
            .options(selectinload(cls.session), selectinload(cls.enrollment))
            .where(cls.id == id)
        )
        return result.scalars().first()

    @classmethod
    async def get_active_by_session(
        cls, db_session: AsyncSession, session_id: str
    ) -> Sequence["EnrollmentSession"]:
        """Every subscription to a session whose enrollment is still active."""
        result = await db_session.execute(
            select(cls)
            .join(Enrollment, Enrollment.id == cls.enrollment_id)
            .options(
                selectinload(cls.session),
                selectinload(cls.enrollment).selectinload(Enrollment.customer),
            )
            .where(
                cls.session_id == session_id,
                Enrollment.status == EnrollmentStatus.ACTIVE,
            )
            .order_by(cls.created_at)
        )
        return result.scalars().all()

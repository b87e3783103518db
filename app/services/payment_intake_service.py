"""Materialises enrollments from confirmed payments.

One processor transaction id maps to at most one Enrollment: repeated
delivery of the same payment event returns the enrollment created the
first time.
"""

import json
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional, Sequence
from uuid import uuid4

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.customer import Customer
from app.models.enrollment import (
    Enrollment,
    EnrollmentPaymentStatus,
    EnrollmentSession,
    EnrollmentStatus,
    EnrollmentType,
)
from app.models.payment import (
    Payment,
    PaymentMethod,
    PaymentStatus,
    generate_receipt_number,
)
from app.services.checkout_service import CheckoutQuote, CheckoutService, DraftItem
from app.services.fee_calculator import to_money
from app.utils.dates import today_local
from core.config import config
from core.exceptions import (
    ConflictException,
    CustomException,
    NotFoundException,
    PaymentAmountMismatch,
    UnfulfillablePayment,
    ValidationException,
)
from core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class PaymentEventItem:
    """One session line as serialised into the payment's metadata."""

    session_id: str
    enrollment_type: EnrollmentType
    dates: List[date] = field(default_factory=list)
    fee: Optional[Decimal] = None


@dataclass
class PaymentSucceededEvent:
    transaction_id: str
    customer_id: str
    amount: Decimal
    items: List[PaymentEventItem]
    method: PaymentMethod = PaymentMethod.STRIPE
    occurred_on: Optional[date] = None
    notes: Optional[str] = None


@dataclass
class IntakeResult:
    enrollment: Enrollment
    payment: Optional[Payment]
    created: bool


class PaymentIntakeService:
    """Service turning confirmed payments into enrollment records."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def handle_payment_succeeded(
        self, event: PaymentSucceededEvent
    ) -> IntakeResult:
        """
        Create Enrollment + EnrollmentSessions + Payment for a confirmed payment.

        The fee calculator's total is authoritative. When the confirmed
        amount differs, the records are still written (so the money is
        traceable) with enrollment payment_status and payment status left
        pending, and PaymentAmountMismatch is raised after commit. When the
        selection can no longer be priced at all, the payment is held on an
        enrollment without sessions and UnfulfillablePayment is raised.
        """
        existing = await self._already_processed(event.transaction_id)
        if existing:
            return existing

        customer = await Customer.get_by_id(self.db_session, event.customer_id)
        if not customer:
            raise NotFoundException(
                message="Customer not found",
                data={"customer_id": event.customer_id},
            )

        # Dates are checked against the day the customer paid, not the day
        # the event arrives
        paid_on = event.occurred_on or today_local()
        try:
            quote = await CheckoutService(self.db_session).quote(
                [
                    DraftItem(
                        session_id=item.session_id,
                        enrollment_type=item.enrollment_type,
                        dates=item.dates,
                    )
                    for item in event.items
                ],
                today=paid_on,
            )
        except (ValidationException, NotFoundException) as e:
            if event.method != PaymentMethod.STRIPE:
                raise
            return await self._hold_unfulfillable(customer, event, e)
        self._log_line_differences(event, quote)

        received = to_money(event.amount)
        matched = received == quote.total

        enrollment_sessions = []
        for line in quote.lines:
            enrollment_session = EnrollmentSession(
                session_id=line.session_id,
                session=line.session,
                booking_date=paid_on,
                fee=line.fee,
            )
            enrollment_session.apply_selection(line.selection)
            enrollment_sessions.append(enrollment_session)

        enrollment = Enrollment(
            customer_id=customer.id,
            customer=customer,
            status=EnrollmentStatus.ACTIVE,
            payment_status=(
                EnrollmentPaymentStatus.PAID if matched
                else EnrollmentPaymentStatus.PENDING
            ),
            payment_intent_id=event.transaction_id,
            sessions=enrollment_sessions,
        )
        payment = Payment(
            enrollment=enrollment,
            amount=received,
            method=event.method,
            status=PaymentStatus.COMPLETED if matched else PaymentStatus.PENDING,
            transaction_ref=event.transaction_id,
            receipt_number=await self._unique_receipt_number(),
            payment_date=datetime.now(timezone.utc),
            notes=event.notes,
        )
        winner = await self._save(event.transaction_id, enrollment, payment)
        if winner:
            return winner

        logger.info(
            f"Enrollment {enrollment.id} created for customer {customer.id} "
            f"from payment {event.transaction_id} (receipt {payment.receipt_number})"
        )

        lines = [line.as_email_line() for line in quote.lines]
        if matched:
            self._queue_receipt(customer, payment, lines)
        self._queue_admin_notification(
            customer, enrollment, payment, lines, reconciliation_required=not matched
        )

        if not matched:
            logger.warning(
                f"Payment {event.transaction_id} amount {received} does not match "
                f"computed total {quote.total}; enrollment {enrollment.id} held for reconciliation"
            )
            raise PaymentAmountMismatch(
                data={
                    "enrollment_id": enrollment.id,
                    "transaction_id": event.transaction_id,
                    "expected": str(quote.total),
                    "received": str(received),
                }
            )

        return IntakeResult(enrollment=enrollment, payment=payment, created=True)

    async def handle_payment_failed(
        self, transaction_id: str, refunded: bool = False
    ) -> Optional[Enrollment]:
        """Cancel the enrollment behind a failed, cancelled or refunded payment.

        A failure or cancellation arriving after the payment completed is
        ignored; only a refund undoes a settled enrollment.
        """
        enrollment = await Enrollment.get_by_payment_intent(
            self.db_session, transaction_id
        )
        if not enrollment:
            logger.info(f"No enrollment for payment {transaction_id}; nothing to cancel")
            return None

        payment = await Payment.get_by_enrollment_id(self.db_session, enrollment.id)
        if not refunded and payment and payment.status == PaymentStatus.COMPLETED:
            logger.warning(
                f"Ignoring failure event for completed payment {transaction_id} "
                f"(enrollment {enrollment.id})"
            )
            return None

        reason = "Payment refunded" if refunded else "Payment failed"
        if enrollment.status == EnrollmentStatus.ACTIVE:
            enrollment.cancel(reason)
        enrollment.payment_status = EnrollmentPaymentStatus.CANCELLED

        if payment:
            payment.status = PaymentStatus.REFUNDED if refunded else PaymentStatus.FAILED

        await self.db_session.commit()
        logger.info(f"Enrollment {enrollment.id} cancelled: {reason.lower()} ({transaction_id})")
        return enrollment

    async def handle_dispute(self, transaction_id: str) -> Optional[Enrollment]:
        """Flag the enrollment behind a disputed charge. The booking stays active."""
        enrollment = await Enrollment.get_by_payment_intent(
            self.db_session, transaction_id
        )
        if not enrollment:
            logger.info(f"No enrollment for disputed payment {transaction_id}")
            return None

        enrollment.payment_status = EnrollmentPaymentStatus.DISPUTED
        await self.db_session.commit()
        logger.warning(f"Payment {transaction_id} disputed (enrollment {enrollment.id})")
        return enrollment

    async def list_awaiting_reconciliation(self) -> Sequence[Payment]:
        return await Payment.get_awaiting_reconciliation(self.db_session)

    async def settle_held_payment(
        self, payment_id: str, settled_by: str, notes: Optional[str] = None
    ) -> IntakeResult:
        """Staff accept a held payment as full settlement of its enrollment.

        Only payments whose classes were booked can be settled; a payment
        held without classes has to be refunded or re-entered manually.
        """
        payment = await Payment.get_by_id(self.db_session, payment_id)
        if not payment:
            raise NotFoundException(message="Payment not found")
        if payment.status != PaymentStatus.PENDING:
            raise ConflictException(
                message="Payment is not awaiting reconciliation",
                data={"status": payment.status.value},
            )

        enrollment = await Enrollment.get_by_id(self.db_session, payment.enrollment_id)
        if enrollment.status != EnrollmentStatus.ACTIVE:
            raise ConflictException(message="Enrollment has been cancelled")
        if not enrollment.sessions:
            raise ConflictException(
                message="No classes were booked for this payment; refund it or enroll the customer manually",
                data={"enrollment_id": enrollment.id},
            )

        note = f"Settled by {settled_by}" + (f": {notes}" if notes else "")
        result = await self.db_session.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == PaymentStatus.PENDING)
            .values(
                status=PaymentStatus.COMPLETED,
                notes="\n".join(filter(None, [payment.notes, note])),
            )
        )
        if result.rowcount == 0:
            await self.db_session.rollback()
            raise ConflictException(message="Payment is not awaiting reconciliation")
        enrollment.payment_status = EnrollmentPaymentStatus.PAID
        await self.db_session.commit()
        await self.db_session.refresh(payment)

        logger.info(f"Payment {payment.id} settled by {settled_by} (enrollment {enrollment.id})")
        self._queue_receipt(
            enrollment.customer,
            payment,
            [enrollment_line(es) for es in enrollment.sessions],
        )
        return IntakeResult(enrollment=enrollment, payment=payment, created=False)

    async def create_manual_enrollment(
        self,
        customer_id: str,
        items: List[DraftItem],
        method: PaymentMethod,
        notes: Optional[str] = None,
    ) -> IntakeResult:
        """Enrollment settled outside the card processor.

        Staff record cash and bank transfer payments; trial-only checkouts
        are settled as no charge. The amount taken is the computed total,
        so this never mismatches.
        """
        if method == PaymentMethod.STRIPE:
            raise ConflictException(
                message="Card payments are recorded from the payment processor"
            )

        quote = await CheckoutService(self.db_session).quote(items)
        if method == PaymentMethod.NO_CHARGE and quote.total != 0:
            raise ValidationException(
                message="Only free enrollments can be settled without payment",
                data={"total": str(quote.total)},
            )

        prefix = "free" if method == PaymentMethod.NO_CHARGE else "manual"
        event = PaymentSucceededEvent(
            transaction_id=f"{prefix}-{uuid4()}",
            customer_id=customer_id,
            amount=quote.total,
            items=[
                PaymentEventItem(
                    session_id=item.session_id,
                    enrollment_type=item.enrollment_type,
                    dates=item.dates,
                )
                for item in items
            ],
            method=method,
            notes=notes,
        )
        return await self.handle_payment_succeeded(event)

    async def _unique_receipt_number(self) -> str:
        for _ in range(config.RECEIPT_NUMBER_ATTEMPTS):
            candidate = generate_receipt_number()
            if not await Payment.receipt_number_taken(self.db_session, candidate):
                return candidate
        raise ConflictException(message="Could not allocate a unique receipt number")

    def _log_line_differences(
        self, event: PaymentSucceededEvent, quote: CheckoutQuote
    ) -> None:
        fees = {line.session_id: line.fee for line in quote.lines}
        for item in event.items:
            if item.fee is not None and to_money(item.fee) != fees.get(item.session_id):
                logger.warning(
                    f"Payment {event.transaction_id}: client fee {item.fee} for session "
                    f"{item.session_id} differs from computed {fees.get(item.session_id)}"
                )

    async def _already_processed(self, transaction_id: str) -> Optional[IntakeResult]:
        existing = await Enrollment.get_by_payment_intent(self.db_session, transaction_id)
        if not existing:
            return None
        logger.info(
            f"Payment {transaction_id} already processed "
            f"(enrollment {existing.id}); ignoring re-delivery"
        )
        return IntakeResult(
            enrollment=existing,
            payment=await Payment.get_by_enrollment_id(self.db_session, existing.id),
            created=False,
        )

    async def _save(
        self, transaction_id: str, enrollment: Enrollment, payment: Payment
    ) -> Optional[IntakeResult]:
        """Commit new records. Returns the winner if a concurrent delivery got there first."""
        self.db_session.add_all([enrollment, payment])
        try:
            await self.db_session.commit()
        except IntegrityError:
            await self.db_session.rollback()
            winner = await Enrollment.get_by_payment_intent(self.db_session, transaction_id)
            if not winner:
                raise
            logger.info(
                f"Payment {transaction_id} materialised concurrently "
                f"as enrollment {winner.id}"
            )
            return IntakeResult(
                enrollment=winner,
                payment=await Payment.get_by_enrollment_id(self.db_session, winner.id),
                created=False,
            )
        return None

    async def _hold_unfulfillable(
        self,
        customer: Customer,
        event: PaymentSucceededEvent,
        error: CustomException,
    ) -> IntakeResult:
        """Keep the money traceable when the paid-for classes cannot be booked."""
        enrollment = Enrollment(
            customer_id=customer.id,
            customer=customer,
            status=EnrollmentStatus.ACTIVE,
            payment_status=EnrollmentPaymentStatus.PENDING,
            payment_intent_id=event.transaction_id,
            sessions=[],
        )
        payment = Payment(
            enrollment=enrollment,
            amount=to_money(event.amount),
            method=event.method,
            status=PaymentStatus.PENDING,
            transaction_ref=event.transaction_id,
            receipt_number=await self._unique_receipt_number(),
            payment_date=datetime.now(timezone.utc),
            notes=f"Could not book paid classes: {error.message}\n"
            + json.dumps([event_line(item) for item in event.items]),
        )
        winner = await self._save(event.transaction_id, enrollment, payment)
        if winner:
            return winner

        logger.error(
            f"Payment {event.transaction_id} could not be booked ({error.message}); "
            f"held on enrollment {enrollment.id}"
        )
        self._queue_admin_notification(
            customer,
            enrollment,
            payment,
            [event_line(item) for item in event.items],
            reconciliation_required=True,
        )
        raise UnfulfillablePayment(
            data={
                "enrollment_id": enrollment.id,
                "transaction_id": event.transaction_id,
                "reason": error.error_code,
                "detail": error.data,
            }
        )

    def _queue_receipt(
        self, customer: Customer, payment: Payment, lines: List[dict]
    ) -> None:
        from app.tasks.email_tasks import send_payment_receipt_email

        try:
            send_payment_receipt_email.delay(
                customer_email=customer.email,
                customer_name=customer.full_name,
                receipt_number=payment.receipt_number,
                amount=str(payment.amount),
                payment_date=payment.payment_date.date().isoformat(),
                payment_method=payment.method.value,
                lines=lines,
            )
        except Exception as e:
            logger.error(f"Failed to queue receipt for payment {payment.id}: {e}")

    def _queue_admin_notification(
        self,
        customer: Customer,
        enrollment: Enrollment,
        payment: Payment,
        lines: List[dict],
        reconciliation_required: bool,
    ) -> None:
        from app.tasks.email_tasks import send_admin_enrollment_notification

        try:
            send_admin_enrollment_notification.delay(
                customer_name=customer.full_name,
                customer_email=customer.email,
                enrollment_id=enrollment.id,
                amount=str(payment.amount),
                lines=lines,
                reconciliation_required=reconciliation_required,
            )
        except Exception as e:
            logger.error(f"Failed to queue admin email for enrollment {enrollment.id}: {e}")


def event_line(item: PaymentEventItem) -> dict:
    """Email line for a paid item that was never priced locally."""
    return {
        "session_name": item.session_id,
        "enrollment_type": item.enrollment_type.value,
        "dates": [d.isoformat() for d in item.dates],
        "fee": f"{item.fee:.2f}" if item.fee is not None else "?",
    }


def enrollment_line(enrollment_session: EnrollmentSession) -> dict:
    return {
        "session_name": enrollment_session.session.name or enrollment_session.session_id,
        "enrollment_type": enrollment_session.enrollment_type.value,
        "dates": [d.isoformat() for d in enrollment_session.selection.dates],
        "fee": f"{enrollment_session.fee:.2f}",
    }

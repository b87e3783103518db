"""Cancellation / credit workflow for single class occurrences.

A request moves pending -> accepted or pending -> rejected and then stays
put. Accepting is the only operation that adds to a customer's credit
balance.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.cancellation import CancellationRequest, CancellationStatus
from app.models.class_cancellation import SessionCancellation
from app.models.credit import CreditTransaction
from app.models.enrollment import Enrollment, EnrollmentSession, EnrollmentStatus
from app.utils.dates import today_local
from core.exceptions import (
    BadRequestException,
    ConflictException,
    DuplicateCancellationRequest,
    ForbiddenException,
    InvalidDateSelection,
    NotFoundException,
)
from core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ReviewResult:
    request: CancellationRequest
    # False when the request had already been accepted earlier
    changed: bool
    credit_issued: bool = False


class CancellationService:
    """Service for customer cancellation requests and staff review."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def submit(
        self,
        enrollment_session_id: str,
        dates: Sequence[date],
        reason: str,
        evidence_ref: str,
        customer_id: Optional[str] = None,
        today: Optional[date] = None,
    ) -> List[CancellationRequest]:
        """
        Open a pending request for each date, all or none.

        Args:
            enrollment_session_id: Subscription the dates belong to
            dates: Class dates to be excused from
            reason: Why the customer cannot attend
            evidence_ref: Reference to the uploaded medical certificate
            customer_id: When given, the subscription must belong to them
            today: Site-local date; defaults to now

        Raises:
            InvalidDateSelection: a date is not eligible, already past or
                called off by the studio
            DuplicateCancellationRequest: a date already has a pending or
                accepted request
        """
        today = today or today_local()

        if not reason or not reason.strip():
            raise BadRequestException(message="A reason is required")
        if not evidence_ref or not evidence_ref.strip():
            raise BadRequestException(message="Supporting evidence is required")
        if not dates:
            raise BadRequestException(message="Select at least one date")
        if len(set(dates)) != len(dates):
            raise BadRequestException(message="Dates must not repeat")

        es = await EnrollmentSession.get_by_id(self.db_session, enrollment_session_id)
        if not es:
            raise NotFoundException(message="Enrollment session not found")
        if customer_id and es.enrollment.customer_id != customer_id:
            raise ForbiddenException(message="Not authorized")
        if es.enrollment.status != EnrollmentStatus.ACTIVE:
            raise ConflictException(message="Enrollment has been cancelled")

        not_eligible = sorted(d for d in dates if not es.is_eligible_on(d))
        if not_eligible:
            raise InvalidDateSelection(
                message="You are not enrolled on these dates",
                data={"dates": [d.isoformat() for d in not_eligible]},
            )
        in_past = sorted(d for d in dates if d < today)
        if in_past:
            raise InvalidDateSelection(
                message="Past classes cannot be cancelled",
                data={"dates": [d.isoformat() for d in in_past]},
            )
        called_off = await SessionCancellation.get_dates(self.db_session, [es.session_id])
        not_running = sorted(d for d in dates if (es.session_id, d) in called_off)
        if not_running:
            raise InvalidDateSelection(
                message="The class has already been cancelled on these dates",
                data={"dates": [d.isoformat() for d in not_running]},
            )

        existing = await CancellationRequest.get_open_for_dates(
            self.db_session, es.id, dates
        )
        if existing:
            raise self._duplicate(existing[0])

        requested_at = datetime.now(timezone.utc)
        requests = [
            CancellationRequest(
                enrollment_session_id=es.id,
                date=d,
                reason=reason.strip(),
                evidence_ref=evidence_ref.strip(),
                status=CancellationStatus.PENDING,
                requested_at=requested_at,
            )
            for d in sorted(dates)
        ]
        self.db_session.add_all(requests)
        try:
            await self.db_session.commit()
        except IntegrityError:
            # Lost a race with a concurrent submission for one of the dates
            await self.db_session.rollback()
            existing = await CancellationRequest.get_open_for_dates(
                self.db_session, enrollment_session_id, dates
            )
            if existing:
                raise self._duplicate(existing[0])
            raise

        logger.info(
            f"Cancellation requested for {enrollment_session_id} on "
            f"{', '.join(d.isoformat() for d in sorted(dates))}"
        )
        return requests

    async def accept(
        self,
        request_id: str,
        reviewed_by: str,
        admin_notes: Optional[str] = None,
    ) -> ReviewResult:
        """
        Accept a pending request and credit the customer one class.

        Accepting an already-accepted request changes nothing and never
        credits twice. Subsidised sessions are accepted without credit.
        """
        request = await self._get(request_id)
        if request.status == CancellationStatus.ACCEPTED:
            logger.info(f"Cancellation {request_id} already accepted; no change")
            return ReviewResult(request=request, changed=False)
        if not request.status.can_transition(CancellationStatus.ACCEPTED):
            raise ConflictException(
                message=f"Cannot accept a {request.status.value} request",
                data={"status": request.status.value},
            )

        es = request.enrollment_session
        customer_id = es.enrollment.customer_id
        subsidised = es.session.is_subsidised

        if not await self._transition(
            request_id, CancellationStatus.ACCEPTED, reviewed_by, admin_notes=admin_notes
        ):
            # Another reviewer got there first
            return await self._after_lost_transition(request_id, CancellationStatus.ACCEPTED)

        credit_issued = False
        if not subsidised:
            await CreditTransaction.issue_for_cancellation(
                self.db_session,
                customer_id=customer_id,
                cancellation_request_id=request_id,
                description=f"Cancelled class on {request.date.isoformat()}",
            )
            credit_issued = True
        await self.db_session.commit()

        request = await self._get(request_id)
        logger.info(
            f"Cancellation {request_id} accepted by {reviewed_by}"
            f"{'' if credit_issued else ' (subsidised, no credit)'}"
        )
        self._notify(request, accepted=True, credit_issued=credit_issued)
        return ReviewResult(request=request, changed=True, credit_issued=credit_issued)

    async def reject(
        self,
        request_id: str,
        reviewed_by: str,
        reject_reason: str,
        admin_notes: Optional[str] = None,
    ) -> ReviewResult:
        """Reject a pending request. The customer may submit the date again."""
        if not reject_reason or not reject_reason.strip():
            raise BadRequestException(message="A rejection reason is required")

        request = await self._get(request_id)
        if not request.status.can_transition(CancellationStatus.REJECTED):
            raise ConflictException(
                message=f"Cannot reject a {request.status.value} request",
                data={"status": request.status.value},
            )

        if not await self._transition(
            request_id,
            CancellationStatus.REJECTED,
            reviewed_by,
            admin_notes=admin_notes,
            reject_reason=reject_reason.strip(),
        ):
            return await self._after_lost_transition(request_id, CancellationStatus.REJECTED)
        await self.db_session.commit()

        request = await self._get(request_id)
        logger.info(f"Cancellation {request_id} rejected by {reviewed_by}")
        self._notify(request, accepted=False)
        return ReviewResult(request=request, changed=True)

    async def list_for_customer(self, customer_id: str) -> Sequence[CancellationRequest]:
        result = await self.db_session.execute(
            select(CancellationRequest)
            .join(
                EnrollmentSession,
                EnrollmentSession.id == CancellationRequest.enrollment_session_id,
            )
            .join(Enrollment, Enrollment.id == EnrollmentSession.enrollment_id)
            .where(Enrollment.customer_id == customer_id)
            .order_by(CancellationRequest.date.desc())
        )
        return result.scalars().all()

    async def list_pending(
        self, skip: int = 0, limit: int = 50
    ) -> Sequence[CancellationRequest]:
        return await CancellationRequest.get_by_status(
            self.db_session, CancellationStatus.PENDING, skip, limit
        )

    async def _get(self, request_id: str) -> CancellationRequest:
        request = await CancellationRequest.get_by_id(self.db_session, request_id)
        if not request:
            raise NotFoundException(message="Cancellation request not found")
        return request

    async def _transition(
        self,
        request_id: str,
        target: CancellationStatus,
        reviewed_by: str,
        **values,
    ) -> bool:
        """Move a pending request to ``target``. False if it was no longer pending."""
        result = await self.db_session.execute(
            update(CancellationRequest)
            .where(
                CancellationRequest.id == request_id,
                CancellationRequest.status == CancellationStatus.PENDING,
            )
            .values(
                status=target,
                reviewed_by=reviewed_by,
                reviewed_at=datetime.now(timezone.utc),
                **values,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _after_lost_transition(
        self, request_id: str, target: CancellationStatus
    ) -> ReviewResult:
        await self.db_session.rollback()
        request = await self._get(request_id)
        if request.status == target == CancellationStatus.ACCEPTED:
            return ReviewResult(request=request, changed=False)
        raise ConflictException(
            message=f"Request is already {request.status.value}",
            data={"status": request.status.value},
        )

    @staticmethod
    def _duplicate(existing: CancellationRequest) -> DuplicateCancellationRequest:
        return DuplicateCancellationRequest(
            data={
                "date": existing.date.isoformat(),
                "status": existing.status.value,
                "request_id": existing.id,
            }
        )

    def _notify(
        self,
        request: CancellationRequest,
        accepted: bool,
        credit_issued: bool = False,
    ) -> None:
        """Queue the decision email. Never raises."""
        from app.tasks.email_tasks import send_cancellation_decision_email

        es = request.enrollment_session
        customer = es.enrollment.customer
        try:
            send_cancellation_decision_email.delay(
                customer_email=customer.email,
                customer_name=customer.first_name,
                class_date=request.date.isoformat(),
                session_name=es.session.name or "your class",
                accepted=accepted,
                credit_issued=credit_issued,
                reject_reason=request.reject_reason,
            )
        except Exception as e:
            logger.error(f"Failed to queue cancellation email for {request.id}: {e}")

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_admin, get_current_customer
from app.models.customer import Customer
from app.models.user import User
from app.schemas.cancellation import (
    CancellationAccept,
    CancellationCreate,
    CancellationReject,
    CancellationResponse,
    CancellationReviewResponse,
)
from app.services.cancellation_service import CancellationService, ReviewResult
from core.db import get_db
from core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/cancellations", tags=["Cancellations"])


def _review_response(result: ReviewResult) -> CancellationReviewResponse:
    return CancellationReviewResponse(
        request=CancellationResponse.model_validate(result.request),
        changed=result.changed,
        credit_issued=result.credit_issued,
    )


@router.post(
    "/",
    response_model=List[CancellationResponse],
    status_code=status.HTTP_201_CREATED,
)
async def request_cancellation(
    data: CancellationCreate,
    db_session: AsyncSession = Depends(get_db),
    customer: Customer = Depends(get_current_customer),
) -> List[CancellationResponse]:
    """
    Ask to be excused from one or more upcoming classes.

    A medical certificate reference is required. Fails with 409 if a date
    already has a pending or accepted request.
    """
    requests = await CancellationService(db_session).submit(
        enrollment_session_id=data.enrollment_session_id,
        dates=data.dates,
        reason=data.reason,
        evidence_ref=data.evidence_ref,
        customer_id=customer.id,
    )
    return [CancellationResponse.model_validate(r) for r in requests]


@router.get("/my", response_model=List[CancellationResponse])
async def get_my_cancellations(
    db_session: AsyncSession = Depends(get_db),
    customer: Customer = Depends(get_current_customer),
) -> List[CancellationResponse]:
    requests = await CancellationService(db_session).list_for_customer(customer.id)
    return [CancellationResponse.model_validate(r) for r in requests]


@router.get("/pending", response_model=List[CancellationResponse])
async def get_pending_cancellations(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
) -> List[CancellationResponse]:
    requests = await CancellationService(db_session).list_pending(skip, limit)
    return [CancellationResponse.model_validate(r) for r in requests]


@router.post("/{request_id}/accept", response_model=CancellationReviewResponse)
async def accept_cancellation(
    request_id: str,
    data: Optional[CancellationAccept] = None,
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
) -> CancellationReviewResponse:
    """Accept a request and credit the customer one class."""
    result = await CancellationService(db_session).accept(
        request_id,
        reviewed_by=current_user.id,
        admin_notes=data.admin_notes if data else None,
    )
    return _review_response(result)


@router.post("/{request_id}/reject", response_model=CancellationReviewResponse)
async def reject_cancellation(
    request_id: str,
    data: CancellationReject,
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
) -> CancellationReviewResponse:
    result = await CancellationService(db_session).reject(
        request_id,
        reviewed_by=current_user.id,
        reject_reason=data.reject_reason,
        admin_notes=data.admin_notes,
    )
    return _review_response(result)

"""Staff reconciliation of payments the processor confirmed but intake held."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_admin
from app.models.user import User
from app.schemas.enrollment import (
    EnrollmentDetailResponse,
    HeldPaymentResponse,
    PaymentResponse,
    PaymentSettleRequest,
)
from app.services.payment_intake_service import PaymentIntakeService
from core.db import get_db
from core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.get("/reconciliation", response_model=List[HeldPaymentResponse])
async def list_held_payments(
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
) -> List[HeldPaymentResponse]:
    """Pending payments, oldest first."""
    payments = await PaymentIntakeService(db_session).list_awaiting_reconciliation()
    return [
        HeldPaymentResponse(
            **PaymentResponse.model_validate(payment).model_dump(),
            notes=payment.notes,
            customer_id=payment.enrollment.customer_id,
            customer_name=payment.enrollment.customer.full_name,
            booked_sessions=len(payment.enrollment.sessions),
        )
        for payment in payments
    ]


@router.post("/{payment_id}/settle", response_model=EnrollmentDetailResponse)
async def settle_payment(
    payment_id: str,
    data: PaymentSettleRequest,
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
) -> EnrollmentDetailResponse:
    """Accept a held payment as settling its enrollment and send the receipt."""
    result = await PaymentIntakeService(db_session).settle_held_payment(
        payment_id, settled_by=current_user.id, notes=data.notes
    )
    response = EnrollmentDetailResponse.model_validate(result.enrollment)
    response.payment = PaymentResponse.model_validate(result.payment)
    return response

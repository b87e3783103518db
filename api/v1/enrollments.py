from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_admin, get_current_customer, get_current_user
from app.models.customer import Customer
from app.models.enrollment import Enrollment, EnrollmentPaymentStatus
from app.models.payment import Payment
from app.models.user import User
from app.schemas.enrollment import (
    EnrollmentCancelRequest,
    EnrollmentDetailResponse,
    EnrollmentResponse,
    ManualEnrollmentCreate,
    PaymentResponse,
)
from app.services.checkout_service import DraftItem
from app.services.payment_intake_service import PaymentIntakeService
from core.db import get_db
from core.exceptions.base import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
)
from core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/enrollments", tags=["Enrollments"])


@router.get("/my", response_model=List[EnrollmentResponse])
async def get_my_enrollments(
    db_session: AsyncSession = Depends(get_db),
    customer: Customer = Depends(get_current_customer),
) -> List[EnrollmentResponse]:
    enrollments = await Enrollment.get_by_customer_id(db_session, customer.id)
    return [EnrollmentResponse.model_validate(e) for e in enrollments]


@router.get("/{enrollment_id}", response_model=EnrollmentDetailResponse)
async def get_enrollment(
    enrollment_id: str,
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> EnrollmentDetailResponse:
    """Enrollment with its payment. Customers see only their own."""
    enrollment = await Enrollment.get_by_id(db_session, enrollment_id)
    if not enrollment:
        raise NotFoundException(message="Enrollment not found")

    if not current_user.is_staff:
        customer = await Customer.get_by_user_id(db_session, current_user.id)
        if not customer or enrollment.customer_id != customer.id:
            raise ForbiddenException(message="Not authorized")

    payment = await Payment.get_by_enrollment_id(db_session, enrollment.id)
    response = EnrollmentDetailResponse.model_validate(enrollment)
    response.payment = PaymentResponse.model_validate(payment) if payment else None
    return response


@router.post("/admin", response_model=EnrollmentDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_manual_enrollment(
    data: ManualEnrollmentCreate,
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
) -> EnrollmentDetailResponse:
    """Enroll a customer who paid by cash or bank transfer."""
    logger.info(f"Manual enrollment for customer {data.customer_id} by {current_user.id}")
    result = await PaymentIntakeService(db_session).create_manual_enrollment(
        customer_id=data.customer_id,
        items=[
            DraftItem(
                session_id=item.session_id,
                enrollment_type=item.enrollment_type,
                dates=list(item.dates),
            )
            for item in data.items
        ],
        method=data.method,
        notes=data.notes,
    )
    response = EnrollmentDetailResponse.model_validate(result.enrollment)
    response.payment = PaymentResponse.model_validate(result.payment)
    return response


@router.post("/{enrollment_id}/cancel", response_model=EnrollmentResponse)
async def cancel_enrollment(
    enrollment_id: str,
    data: EnrollmentCancelRequest,
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
) -> EnrollmentResponse:
    """Terminate an enrollment. Its sessions drop off every roster."""
    enrollment = await Enrollment.get_by_id(db_session, enrollment_id)
    if not enrollment:
        raise NotFoundException(message="Enrollment not found")
    if not enrollment.is_cancellable:
        raise ConflictException(message="Enrollment is already cancelled")

    enrollment.cancel(data.reason)
    if enrollment.payment_status == EnrollmentPaymentStatus.PENDING:
        enrollment.payment_status = EnrollmentPaymentStatus.CANCELLED
    await db_session.commit()

    logger.info(f"Enrollment {enrollment.id} cancelled by {current_user.id}")
    return EnrollmentResponse.model_validate(enrollment)

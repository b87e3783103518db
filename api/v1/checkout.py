"""Checkout: price a draft selection and open a card payment for it."""

import json

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_customer
from app.models.customer import Customer
from app.models.payment import PaymentMethod
from app.schemas.checkout import (
    DraftSelection,
    PaymentIntentResponse,
    QuoteLineResponse,
    QuoteResponse,
)
from app.services.checkout_service import CheckoutQuote, CheckoutService, DraftItem
from app.services.payment_intake_service import PaymentIntakeService
from app.services.stripe_service import StripeService
from core.db import get_db
from core.exceptions import ValidationException
from core.logging import get_logger

logger = get_logger(__name__)

STRIPE_METADATA_VALUE_LIMIT = 500

router = APIRouter(prefix="/checkout", tags=["Checkout"])


def _draft_items(data: DraftSelection) -> list[DraftItem]:
    return [
        DraftItem(
            session_id=item.session_id,
            enrollment_type=item.enrollment_type,
            dates=list(item.dates),
        )
        for item in data.items
    ]


def _quote_response(quote: CheckoutQuote) -> QuoteResponse:
    return QuoteResponse(
        lines=[
            QuoteLineResponse(
                session_id=line.session_id,
                session_name=line.session.name,
                enrollment_type=line.selection.enrollment_type,
                dates=line.selection.dates,
                fee=line.fee,
            )
            for line in quote.lines
        ],
        total=quote.total,
    )


def payment_metadata(customer_id: str, quote: CheckoutQuote) -> dict:
    """Metadata the webhook reads back to materialise the enrollment."""
    items = [
        {
            "session_id": line.session_id,
            "enrollment_type": line.selection.enrollment_type.value,
            "dates": [d.isoformat() for d in line.selection.dates],
            "fee": str(line.fee),
        }
        for line in quote.lines
    ]
    encoded = json.dumps(items, separators=(",", ":"))
    if len(encoded) > STRIPE_METADATA_VALUE_LIMIT:
        raise ValidationException(
            message="Too many sessions or dates for a single payment; split the enrollment",
            data={"length": len(encoded), "limit": STRIPE_METADATA_VALUE_LIMIT},
        )
    return {"customer_id": customer_id, "items": encoded}


@router.post("/quote", response_model=QuoteResponse)
async def quote_draft(
    data: DraftSelection,
    db_session: AsyncSession = Depends(get_db),
) -> QuoteResponse:
    """Price a draft. Public; nothing is stored."""
    quote = await CheckoutService(db_session).quote(_draft_items(data))
    return _quote_response(quote)


@router.post("/payment-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    data: DraftSelection,
    db_session: AsyncSession = Depends(get_db),
    customer: Customer = Depends(get_current_customer),
) -> PaymentIntentResponse:
    """
    Start paying for a draft.

    The charged amount is the server-computed total. The enrollment is
    created when the processor confirms the payment. A draft that costs
    nothing (trials only) is enrolled straight away.
    """
    items = _draft_items(data)
    quote = await CheckoutService(db_session).quote(items)

    if quote.total == 0:
        result = await PaymentIntakeService(db_session).create_manual_enrollment(
            customer_id=customer.id,
            items=items,
            method=PaymentMethod.NO_CHARGE,
        )
        logger.info(f"Free enrollment {result.enrollment.id} for customer {customer.id}")
        return PaymentIntentResponse(amount=quote.total, enrollment_id=result.enrollment.id)

    intent = await StripeService.create_payment_intent(
        amount=StripeService.dollars_to_cents(quote.total),
        metadata=payment_metadata(customer.id, quote),
        description=f"Class enrollment for {customer.full_name}",
        receipt_email=customer.email,
    )
    logger.info(
        f"PaymentIntent {intent['id']} for customer {customer.id}, total {quote.total}"
    )
    return PaymentIntentResponse(
        amount=quote.total,
        payment_intent_id=intent["id"],
        client_secret=intent["client_secret"],
    )

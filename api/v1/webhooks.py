"""Stripe webhook handler for payment events."""

import json
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enrollment import EnrollmentType
from app.services.payment_intake_service import (
    PaymentEventItem,
    PaymentIntakeService,
    PaymentSucceededEvent,
)
from app.services.stripe_service import StripeService
from app.utils.dates import site_timezone
from core.db import get_db
from core.exceptions.base import BadRequestException
from core.exceptions.domain import PaymentHeldForReconciliation
from core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None, alias="Stripe-Signature"),
    db_session: AsyncSession = Depends(get_db),
) -> dict:
    """
    Handle Stripe webhook events.

    A succeeded PaymentIntent creates the enrollment. Failed and cancelled
    payments cancel it unless it was already paid; refunds always do.
    Disputes flag it. Re-delivered events are no-ops.
    """
    payload = await request.body()

    try:
        event = StripeService.construct_event(payload, stripe_signature)
    except ValueError:
        raise BadRequestException(message="Invalid payload")
    except Exception as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise BadRequestException(message="Invalid signature")

    event_type = event["type"]
    logger.info(f"Received Stripe webhook: {event_type}")
    obj = event["data"]["object"]
    service = PaymentIntakeService(db_session)

    if event_type == "payment_intent.succeeded":
        try:
            result = await service.handle_payment_succeeded(payment_succeeded_event(obj))
        except PaymentHeldForReconciliation as e:
            # Stored for manual reconciliation; redelivery would not change it
            logger.error(f"Reconciliation required for {obj['id']}: {e.data}")
            return {"status": "reconciliation_required", "enrollment_id": e.data["enrollment_id"]}
        return {
            "status": "success" if result.created else "already_processed",
            "enrollment_id": result.enrollment.id,
        }

    if event_type in ("payment_intent.payment_failed", "payment_intent.canceled"):
        await service.handle_payment_failed(obj["id"])

    elif event_type == "charge.refunded":
        if obj.get("payment_intent"):
            await service.handle_payment_failed(obj["payment_intent"], refunded=True)

    elif event_type == "charge.dispute.created":
        if obj.get("payment_intent"):
            await service.handle_dispute(obj["payment_intent"])

    return {"status": "success"}


def payment_succeeded_event(payment_intent: dict) -> PaymentSucceededEvent:
    """Read the checkout metadata written when the PaymentIntent was created."""
    metadata = payment_intent.get("metadata") or {}
    customer_id = metadata.get("customer_id")
    raw_items = metadata.get("items")
    if not customer_id or not raw_items:
        raise BadRequestException(
            message="PaymentIntent is missing enrollment metadata",
            data={"payment_intent_id": payment_intent["id"]},
        )

    try:
        items = [
            PaymentEventItem(
                session_id=item["session_id"],
                enrollment_type=EnrollmentType(item["enrollment_type"]),
                dates=[date.fromisoformat(d) for d in item.get("dates", [])],
                fee=Decimal(item["fee"]) if item.get("fee") is not None else None,
            )
            for item in json.loads(raw_items)
        ]
    except (KeyError, ValueError, TypeError, InvalidOperation) as e:
        raise BadRequestException(
            message=f"Malformed enrollment metadata: {e}",
            data={"payment_intent_id": payment_intent["id"]},
        )

    created = payment_intent.get("created")
    occurred_on = (
        datetime.fromtimestamp(created, tz=timezone.utc).astimezone(site_timezone()).date()
        if created
        else None
    )
    return PaymentSucceededEvent(
        transaction_id=payment_intent["id"],
        customer_id=customer_id,
        amount=StripeService.cents_to_dollars(
            payment_intent.get("amount_received") or payment_intent["amount"]
        ),
        items=items,
        occurred_on=occurred_on,
    )

"""Stripe payment service for checkout PaymentIntents and webhooks."""

from decimal import ROUND_HALF_UP, Decimal

import stripe

from core.config import config as settings
from core.logging import get_logger

logger = get_logger(__name__)

# Initialize Stripe
stripe.api_key = settings.STRIPE_SECRET_KEY


class StripeService:
    """Service for interacting with Stripe API."""

    # ============== One-Time Payments ==============

    @staticmethod
    async def create_payment_intent(
        amount: int,  # Amount in cents
        metadata: dict = None,
        description: str = None,
        receipt_email: str = None,
    ) -> dict:
        """Create a PaymentIntent for a checkout total."""
        try:
            intent_params = {
                "amount": amount,
                "currency": settings.CURRENCY,
                "metadata": metadata or {},
                "automatic_payment_methods": {"enabled": True},
            }
            if description:
                intent_params["description"] = description
            if receipt_email:
                intent_params["receipt_email"] = receipt_email

            payment_intent = stripe.PaymentIntent.create(**intent_params)
            logger.info(f"Created PaymentIntent: {payment_intent.id}")

            return {
                "id": payment_intent.id,
                "client_secret": payment_intent.client_secret,
                "status": payment_intent.status,
                "amount": payment_intent.amount,
            }
        except stripe.error.StripeError as e:
            logger.error(f"Failed to create PaymentIntent: {e}")
            raise

    # ============== Webhook ==============

    @staticmethod
    def construct_event(payload: bytes, sig_header: str) -> stripe.Event:
        """Construct and verify a Stripe webhook event."""
        try:
            return stripe.Webhook.construct_event(
                payload, sig_header, settings.STRIPE_WEBHOOK_SECRET
            )
        except ValueError as e:
            logger.error(f"Invalid webhook payload: {e}")
            raise
        except stripe.error.SignatureVerificationError as e:
            logger.error(f"Invalid webhook signature: {e}")
            raise

    # ============== Utilities ==============

    @staticmethod
    def dollars_to_cents(amount: Decimal) -> int:
        """Convert dollar amount to cents for Stripe."""
        return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    @staticmethod
    def cents_to_dollars(amount: int) -> Decimal:
        """Convert cents to dollar amount."""
        return (Decimal(amount) / Decimal(100)).quantize(Decimal("0.01"))

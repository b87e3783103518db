"""Celery tasks for transactional email.

Delivery failures are logged and never retried: a retried send could
reach the customer twice.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from app.services.email_service import email_service
from app.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="send_payment_receipt_email")
def send_payment_receipt_email(
    customer_email: str,
    customer_name: str,
    receipt_number: str,
    amount: str,
    payment_date: str,
    payment_method: str,
    lines: list[Dict[str, Any]],
) -> bool:
    """Send the receipt for a completed enrollment payment.

    Args:
        customer_email: Recipient email
        customer_name: Customer's name
        receipt_number: 8-digit receipt number
        amount: Amount paid (as string)
        payment_date: ISO payment date
        payment_method: stripe, cash or bank_transfer
        lines: Per-session lines (session_name, enrollment_type, dates, fee)
    """
    try:
        success = email_service.send_payment_receipt(
            to_email=customer_email,
            customer_name=customer_name,
            receipt_number=receipt_number,
            amount=Decimal(amount),
            payment_date=payment_date,
            payment_method=payment_method,
            lines=lines,
        )
        if success:
            logger.info(f"Receipt {receipt_number} sent to {customer_email}")
        else:
            logger.warning(f"Failed to send receipt {receipt_number} to {customer_email}")
        return success

    except Exception as e:
        logger.error(f"Error sending payment receipt {receipt_number}: {str(e)}")
        return False


@celery_app.task(name="send_admin_enrollment_notification")
def send_admin_enrollment_notification(
    customer_name: str,
    customer_email: str,
    enrollment_id: str,
    amount: str,
    lines: list[Dict[str, Any]],
    reconciliation_required: bool = False,
) -> bool:
    """Tell the studio about a new enrollment."""
    try:
        return email_service.send_admin_enrollment_notification(
            customer_name=customer_name,
            customer_email=customer_email,
            enrollment_id=enrollment_id,
            amount=Decimal(amount),
            lines=lines,
            reconciliation_required=reconciliation_required,
        )
    except Exception as e:
        logger.error(f"Error sending admin notification for enrollment {enrollment_id}: {str(e)}")
        return False


@celery_app.task(name="send_cancellation_decision_email")
def send_cancellation_decision_email(
    customer_email: str,
    customer_name: str,
    class_date: str,
    session_name: str,
    accepted: bool,
    credit_issued: bool = False,
    reject_reason: Optional[str] = None,
) -> bool:
    try:
        return email_service.send_cancellation_decision(
            to_email=customer_email,
            customer_name=customer_name,
            class_date=class_date,
            session_name=session_name,
            accepted=accepted,
            credit_issued=credit_issued,
            reject_reason=reject_reason,
        )
    except Exception as e:
        logger.error(f"Error sending cancellation decision to {customer_email}: {str(e)}")
        return False

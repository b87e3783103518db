"""Tests for transactional email rendering and delivery tasks."""

from decimal import Decimal
from unittest.mock import MagicMock, patch

from app.services.email_service import EmailService
from app.tasks.email_tasks import send_payment_receipt_email

LINES = [
    {
        "session_name": "Monday Strength",
        "enrollment_type": "partial",
        "dates": ["2025-05-05", "2025-05-12"],
        "fee": "40.00",
    }
]


def service_with_client(client) -> EmailService:
    service = EmailService()
    service.client = client
    return service


def test_receipt_renders_lines():
    client = MagicMock()
    client.send.return_value = MagicMock(status_code=202)
    service = service_with_client(client)

    assert service.send_payment_receipt(
        to_email="test@example.com",
        customer_name="Test Customer",
        receipt_number="12345678",
        amount=Decimal("40"),
        payment_date="2025-05-01",
        payment_method="stripe",
        lines=LINES,
    )

    message = client.send.call_args.args[0].get()
    html = message["content"][0]["value"]
    assert "12345678" in html
    assert "Monday Strength" in html
    assert "40.00" in html
    assert message["subject"] == "Your enrollment receipt #12345678"


def test_send_failure_returns_false():
    client = MagicMock()
    client.send.side_effect = RuntimeError("SendGrid unavailable")

    assert not service_with_client(client).send_cancellation_decision(
        to_email="test@example.com",
        customer_name="Test",
        class_date="2025-05-05",
        session_name="Monday Strength",
        accepted=False,
        credit_issued=False,
        reject_reason="No certificate attached",
    )


def test_unconfigured_sendgrid_skips_send():
    assert not service_with_client(None).send_cancellation_decision(
        to_email="test@example.com",
        customer_name="Test",
        class_date="2025-05-05",
        session_name="Monday Strength",
        accepted=True,
        credit_issued=True,
    )


def test_admin_notification_flags_reconciliation():
    client = MagicMock()
    client.send.return_value = MagicMock(status_code=202)
    service = service_with_client(client)

    with patch("app.services.email_service.config.ADMIN_NOTIFICATION_EMAIL", "office@example.com"):
        assert service.send_admin_enrollment_notification(
            customer_name="Test Customer",
            customer_email="test@example.com",
            enrollment_id="enr-1",
            amount=Decimal("80.00"),
            lines=LINES,
            reconciliation_required=True,
        )

    message = client.send.call_args.args[0].get()
    assert message["subject"].startswith("[Reconciliation required]")


def test_receipt_task_swallows_errors():
    with patch(
        "app.tasks.email_tasks.email_service.send_payment_receipt",
        side_effect=RuntimeError("template missing"),
    ):
        assert send_payment_receipt_email(
            customer_email="test@example.com",
            customer_name="Test",
            receipt_number="12345678",
            amount="40.00",
            payment_date="2025-05-01",
            payment_method="stripe",
            lines=LINES,
        ) is False

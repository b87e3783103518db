"""Email service for sending transactional emails."""

import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from core.config import config

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

template_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)


class EmailService:
    """Service for sending transactional emails using SendGrid."""

    def __init__(self):
        self.client = SendGridAPIClient(config.SENDGRID_API_KEY) if config.SENDGRID_API_KEY else None
        self.from_email = config.SENDGRID_FROM_EMAIL

    def _render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        template = template_env.get_template(template_name)
        return template.render(app_name=config.APP_NAME, **context)

    def _send_email(self, to_email: str, subject: str, html_content: str) -> bool:
        """Send one email. Returns False instead of raising on failure."""
        if not self.client:
            logger.warning(
                f"SendGrid not configured. Would send email to {to_email} with subject: {subject}"
            )
            return False

        try:
            message = Mail(
                from_email=self.from_email,
                to_emails=to_email,
                subject=subject,
                html_content=html_content,
            )
            response = self.client.send(message)
            logger.info(f"Email sent to {to_email}: {subject} (Status: {response.status_code})")
            return response.status_code in [200, 201, 202]

        except Exception as e:
            logger.error(f"Failed to send email to {to_email}: {str(e)}")
            return False

    def send_payment_receipt(
        self,
        to_email: str,
        customer_name: str,
        receipt_number: str,
        amount: Decimal,
        payment_date: str,
        payment_method: str,
        lines: list[Dict[str, Any]],
    ) -> bool:
        """Receipt for a completed enrollment payment."""
        html_content = self._render_template(
            "payment_receipt.html",
            {
                "customer_name": customer_name,
                "receipt_number": receipt_number,
                "amount": f"{amount:.2f}",
                "payment_date": payment_date,
                "payment_method": payment_method,
                "lines": lines,
            },
        )
        return self._send_email(
            to_email, f"Your enrollment receipt #{receipt_number}", html_content
        )

    def send_admin_enrollment_notification(
        self,
        customer_name: str,
        customer_email: str,
        enrollment_id: str,
        amount: Decimal,
        lines: list[Dict[str, Any]],
        reconciliation_required: bool = False,
    ) -> bool:
        if not config.ADMIN_NOTIFICATION_EMAIL:
            logger.info("ADMIN_NOTIFICATION_EMAIL not set; skipping admin notification")
            return False

        html_content = self._render_template(
            "admin_new_enrollment.html",
            {
                "customer_name": customer_name,
                "customer_email": customer_email,
                "enrollment_id": enrollment_id,
                "amount": f"{amount:.2f}",
                "lines": lines,
                "reconciliation_required": reconciliation_required,
            },
        )
        subject = f"New enrollment: {customer_name}"
        if reconciliation_required:
            subject = f"[Reconciliation required] {subject}"
        return self._send_email(config.ADMIN_NOTIFICATION_EMAIL, subject, html_content)

    def send_cancellation_decision(
        self,
        to_email: str,
        customer_name: str,
        class_date: str,
        session_name: str,
        accepted: bool,
        credit_issued: bool,
        reject_reason: Optional[str] = None,
    ) -> bool:
        html_content = self._render_template(
            "cancellation_decision.html",
            {
                "customer_name": customer_name,
                "class_date": class_date,
                "session_name": session_name,
                "accepted": accepted,
                "credit_issued": credit_issued,
                "reject_reason": reject_reason,
            },
        )
        outcome = "accepted" if accepted else "declined"
        return self._send_email(
            to_email, f"Your cancellation request for {class_date} was {outcome}", html_content
        )


email_service = EmailService()

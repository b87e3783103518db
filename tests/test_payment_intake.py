"""Tests for turning confirmed payments into enrollments."""

import json
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.class_session import ClassSession, Weekday
from app.models.enrollment import (
    Enrollment,
    EnrollmentPaymentStatus,
    EnrollmentStatus,
    EnrollmentType,
)
from app.models.payment import Payment, PaymentMethod, PaymentStatus
from app.services.checkout_service import DraftItem
from app.services.payment_intake_service import (
    PaymentEventItem,
    PaymentIntakeService,
    PaymentSucceededEvent,
)
from core.exceptions import (
    ConflictException,
    NotFoundException,
    PaymentAmountMismatch,
    UnfulfillablePayment,
    ValidationException,
)

pytestmark = pytest.mark.asyncio


def stripe_event(event_type: str, obj: dict) -> dict:
    return {"id": "evt_test", "type": event_type, "data": {"object": obj}}


def payment_intent(
    customer_id: str,
    session_id: str,
    amount_cents: int = 10000,
    pi_id: str = "pi_test_1",
    items: list = None,
) -> dict:
    items = items or [{"session_id": session_id, "enrollment_type": "full", "dates": [], "fee": "100.00"}]
    return {
        "id": pi_id,
        "amount": amount_cents,
        "amount_received": amount_cents,
        "created": int(datetime.now(timezone.utc).timestamp()),
        "metadata": {"customer_id": customer_id, "items": json.dumps(items)},
    }


async def post_event(client: AsyncClient, event: dict):
    with patch("api.v1.webhooks.StripeService.construct_event", return_value=event):
        return await client.post(
            "/api/v1/webhooks/stripe",
            content=b"{}",
            headers={"Stripe-Signature": "t=1,v1=test"},
        )


async def count_enrollments(db_session: AsyncSession) -> int:
    result = await db_session.execute(select(func.count(Enrollment.id)))
    return result.scalar()


class TestPaymentSucceeded:
    async def test_creates_enrollment_and_payment(
        self, db_session: AsyncSession, test_customer, monday_session, mock_email_tasks
    ):
        event = PaymentSucceededEvent(
            transaction_id="pi_service_1",
            customer_id=test_customer.id,
            amount=Decimal("100.00"),
            items=[PaymentEventItem(session_id=monday_session.id, enrollment_type=EnrollmentType.FULL)],
        )
        result = await PaymentIntakeService(db_session).handle_payment_succeeded(event)

        assert result.created
        enrollment = result.enrollment
        assert enrollment.status == EnrollmentStatus.ACTIVE
        assert enrollment.payment_status == EnrollmentPaymentStatus.PAID
        assert len(enrollment.sessions) == 1
        assert enrollment.sessions[0].fee == Decimal("100.00")

        payment = result.payment
        assert payment.status == PaymentStatus.COMPLETED
        assert payment.amount == Decimal("100.00")
        assert payment.transaction_ref == "pi_service_1"
        assert len(payment.receipt_number) == 8

        mock_email_tasks["receipt"].assert_called_once()
        mock_email_tasks["admin"].assert_called_once()
        assert mock_email_tasks["admin"].call_args.kwargs["reconciliation_required"] is False

    async def test_redelivery_is_idempotent(
        self, db_session: AsyncSession, test_customer, monday_session, mock_email_tasks
    ):
        event = PaymentSucceededEvent(
            transaction_id="pi_service_2",
            customer_id=test_customer.id,
            amount=Decimal("100.00"),
            items=[PaymentEventItem(session_id=monday_session.id, enrollment_type=EnrollmentType.FULL)],
        )
        service = PaymentIntakeService(db_session)
        first = await service.handle_payment_succeeded(event)
        second = await service.handle_payment_succeeded(event)

        assert not second.created
        assert second.enrollment.id == first.enrollment.id
        assert second.payment.id == first.payment.id
        assert await count_enrollments(db_session) == 1
        mock_email_tasks["receipt"].assert_called_once()

    async def test_amount_mismatch_holds_for_reconciliation(
        self, db_session: AsyncSession, test_customer, monday_session, mock_email_tasks
    ):
        event = PaymentSucceededEvent(
            transaction_id="pi_short",
            customer_id=test_customer.id,
            amount=Decimal("80.00"),
            items=[PaymentEventItem(session_id=monday_session.id, enrollment_type=EnrollmentType.FULL)],
        )
        with pytest.raises(PaymentAmountMismatch) as exc:
            await PaymentIntakeService(db_session).handle_payment_succeeded(event)

        assert exc.value.data["expected"] == "100.00"
        assert exc.value.data["received"] == "80.00"

        enrollment = await Enrollment.get_by_payment_intent(db_session, "pi_short")
        assert enrollment.payment_status == EnrollmentPaymentStatus.PENDING
        payment = await Payment.get_by_enrollment_id(db_session, enrollment.id)
        assert payment.status == PaymentStatus.PENDING
        assert payment.amount == Decimal("80.00")

        mock_email_tasks["receipt"].assert_not_called()
        assert mock_email_tasks["admin"].call_args.kwargs["reconciliation_required"] is True

    async def test_dates_checked_against_payment_day(
        self, db_session: AsyncSession, test_customer, monday_session, past_monday
    ):
        """A partial booking paid before its date is accepted even if the event arrives later."""
        event = PaymentSucceededEvent(
            transaction_id="pi_late_event",
            customer_id=test_customer.id,
            amount=Decimal("100.00") / monday_session.total_occurrences,
            items=[
                PaymentEventItem(
                    session_id=monday_session.id,
                    enrollment_type=EnrollmentType.PARTIAL,
                    dates=[past_monday],
                )
            ],
            occurred_on=past_monday,
        )
        result = await PaymentIntakeService(db_session).handle_payment_succeeded(event)

        es = result.enrollment.sessions[0]
        assert es.partial_date_set == frozenset({past_monday})
        assert es.booking_date == past_monday

    async def test_unknown_customer(self, db_session: AsyncSession, monday_session):
        event = PaymentSucceededEvent(
            transaction_id="pi_nobody",
            customer_id="missing",
            amount=Decimal("100.00"),
            items=[PaymentEventItem(session_id=monday_session.id, enrollment_type=EnrollmentType.FULL)],
        )
        with pytest.raises(NotFoundException):
            await PaymentIntakeService(db_session).handle_payment_succeeded(event)
        assert await count_enrollments(db_session) == 0

    async def test_email_queue_failure_does_not_fail_intake(
        self, db_session: AsyncSession, test_customer, monday_session, mock_email_tasks
    ):
        mock_email_tasks["receipt"].side_effect = ConnectionError("broker down")
        event = PaymentSucceededEvent(
            transaction_id="pi_no_broker",
            customer_id=test_customer.id,
            amount=Decimal("100.00"),
            items=[PaymentEventItem(session_id=monday_session.id, enrollment_type=EnrollmentType.FULL)],
        )
        result = await PaymentIntakeService(db_session).handle_payment_succeeded(event)
        assert result.created


    async def test_unpriceable_selection_is_held(
        self, db_session: AsyncSession, test_customer, mock_email_tasks
    ):
        """A paid-for session that no longer exists still leaves a traceable payment."""
        event = PaymentSucceededEvent(
            transaction_id="pi_session_gone",
            customer_id=test_customer.id,
            amount=Decimal("100.00"),
            items=[PaymentEventItem(session_id="deleted-session", enrollment_type=EnrollmentType.FULL)],
        )
        with pytest.raises(UnfulfillablePayment) as exc:
            await PaymentIntakeService(db_session).handle_payment_succeeded(event)
        assert exc.value.data["reason"] == "NOT_FOUND"

        enrollment = await Enrollment.get_by_payment_intent(db_session, "pi_session_gone")
        assert enrollment.payment_status == EnrollmentPaymentStatus.PENDING
        assert enrollment.sessions == []
        payment = await Payment.get_by_enrollment_id(db_session, enrollment.id)
        assert payment.status == PaymentStatus.PENDING
        assert payment.amount == Decimal("100.00")
        assert payment.transaction_ref == "pi_session_gone"
        assert "deleted-session" in payment.notes

        mock_email_tasks["receipt"].assert_not_called()
        assert mock_email_tasks["admin"].call_args.kwargs["reconciliation_required"] is True

    async def test_held_payment_redelivery_is_idempotent(
        self, db_session: AsyncSession, test_customer
    ):
        event = PaymentSucceededEvent(
            transaction_id="pi_held_twice",
            customer_id=test_customer.id,
            amount=Decimal("100.00"),
            items=[PaymentEventItem(session_id="deleted-session", enrollment_type=EnrollmentType.FULL)],
        )
        service = PaymentIntakeService(db_session)
        with pytest.raises(UnfulfillablePayment):
            await service.handle_payment_succeeded(event)

        again = await service.handle_payment_succeeded(event)
        assert not again.created
        assert await count_enrollments(db_session) == 1

    async def test_concurrent_delivery_returns_winner(
        self, db_session: AsyncSession, test_customer, monday_session, mock_email_tasks
    ):
        """The loser of a duplicate-delivery race resolves to the row the winner wrote."""
        event = PaymentSucceededEvent(
            transaction_id="pi_race",
            customer_id=test_customer.id,
            amount=Decimal("100.00"),
            items=[PaymentEventItem(session_id=monday_session.id, enrollment_type=EnrollmentType.FULL)],
        )
        first = await PaymentIntakeService(db_session).handle_payment_succeeded(event)
        winner_id = first.enrollment.id

        # The second delivery misses the winner on its first lookup, as it
        # would when both read before either commits
        original = Enrollment.get_by_payment_intent
        lookups = []

        async def lookup_before_commit(session, payment_intent_id):
            lookups.append(payment_intent_id)
            if len(lookups) == 1:
                return None
            return await original(session, payment_intent_id)

        with patch.object(Enrollment, "get_by_payment_intent", new=lookup_before_commit):
            second = await PaymentIntakeService(db_session).handle_payment_succeeded(event)

        assert len(lookups) == 2
        assert not second.created
        assert second.enrollment.id == winner_id
        assert second.payment.transaction_ref == "pi_race"
        assert await count_enrollments(db_session) == 1
        mock_email_tasks["receipt"].assert_called_once()


class TestPaymentEvents:
    async def test_failure_ignored_once_completed(
        self, db_session: AsyncSession, test_customer, monday_session
    ):
        event = PaymentSucceededEvent(
            transaction_id="pi_settled",
            customer_id=test_customer.id,
            amount=Decimal("100.00"),
            items=[PaymentEventItem(session_id=monday_session.id, enrollment_type=EnrollmentType.FULL)],
        )
        service = PaymentIntakeService(db_session)
        await service.handle_payment_succeeded(event)

        assert await service.handle_payment_failed("pi_settled") is None

        enrollment = await Enrollment.get_by_payment_intent(db_session, "pi_settled")
        assert enrollment.status == EnrollmentStatus.ACTIVE
        assert enrollment.payment_status == EnrollmentPaymentStatus.PAID

    async def test_dispute_flags_enrollment(
        self, db_session: AsyncSession, test_customer, monday_session
    ):
        event = PaymentSucceededEvent(
            transaction_id="pi_chargeback",
            customer_id=test_customer.id,
            amount=Decimal("100.00"),
            items=[PaymentEventItem(session_id=monday_session.id, enrollment_type=EnrollmentType.FULL)],
        )
        service = PaymentIntakeService(db_session)
        await service.handle_payment_succeeded(event)

        enrollment = await service.handle_dispute("pi_chargeback")
        assert enrollment.payment_status == EnrollmentPaymentStatus.DISPUTED
        assert enrollment.status == EnrollmentStatus.ACTIVE

    async def test_dispute_for_unknown_payment(self, db_session: AsyncSession):
        assert await PaymentIntakeService(db_session).handle_dispute("pi_unknown") is None


class TestManualEnrollment:
    async def test_cash_enrollment(self, db_session: AsyncSession, other_customer, monday_session):
        result = await PaymentIntakeService(db_session).create_manual_enrollment(
            customer_id=other_customer.id,
            items=[DraftItem(session_id=monday_session.id, enrollment_type=EnrollmentType.FULL)],
            method=PaymentMethod.CASH,
            notes="Paid at front desk",
        )
        assert result.payment.method == PaymentMethod.CASH
        assert result.payment.amount == Decimal("100.00")
        assert result.payment.transaction_ref.startswith("manual-")
        assert result.enrollment.payment_status == EnrollmentPaymentStatus.PAID

    async def test_card_payments_not_recorded_manually(
        self, db_session: AsyncSession, other_customer, monday_session
    ):
        with pytest.raises(ConflictException):
            await PaymentIntakeService(db_session).create_manual_enrollment(
                customer_id=other_customer.id,
                items=[DraftItem(session_id=monday_session.id, enrollment_type=EnrollmentType.FULL)],
                method=PaymentMethod.STRIPE,
            )

    async def test_no_charge_requires_free_draft(
        self, db_session: AsyncSession, other_customer, monday_session
    ):
        with pytest.raises(ValidationException):
            await PaymentIntakeService(db_session).create_manual_enrollment(
                customer_id=other_customer.id,
                items=[DraftItem(session_id=monday_session.id, enrollment_type=EnrollmentType.FULL)],
                method=PaymentMethod.NO_CHARGE,
            )

    async def test_admin_endpoint(
        self, client: AsyncClient, admin_headers: dict, other_customer, monday_session
    ):
        response = await client.post(
            "/api/v1/enrollments/admin",
            json={
                "customer_id": other_customer.id,
                "items": [{"session_id": monday_session.id, "enrollment_type": "full"}],
                "method": "bank_transfer",
            },
            headers=admin_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["customer_id"] == other_customer.id
        assert data["payment"]["method"] == "bank_transfer"
        assert data["payment"]["status"] == "completed"

    async def test_admin_endpoint_forbidden_for_customers(
        self, client: AsyncClient, auth_headers: dict, other_customer, monday_session
    ):
        response = await client.post(
            "/api/v1/enrollments/admin",
            json={
                "customer_id": other_customer.id,
                "items": [{"session_id": monday_session.id, "enrollment_type": "full"}],
                "method": "cash",
            },
            headers=auth_headers,
        )
        assert response.status_code == 403


class TestStripeWebhook:
    async def test_succeeded_then_redelivered(
        self, client: AsyncClient, db_session: AsyncSession, test_customer, monday_session
    ):
        event = stripe_event(
            "payment_intent.succeeded", payment_intent(test_customer.id, monday_session.id)
        )

        first = await post_event(client, event)
        assert first.status_code == 200
        assert first.json()["status"] == "success"

        second = await post_event(client, event)
        assert second.status_code == 200
        assert second.json()["status"] == "already_processed"
        assert second.json()["enrollment_id"] == first.json()["enrollment_id"]

        assert await count_enrollments(db_session) == 1

    async def test_amount_mismatch(
        self, client: AsyncClient, db_session: AsyncSession, test_customer, monday_session
    ):
        event = stripe_event(
            "payment_intent.succeeded",
            payment_intent(test_customer.id, monday_session.id, amount_cents=5000),
        )
        response = await post_event(client, event)

        assert response.status_code == 200
        assert response.json()["status"] == "reconciliation_required"
        enrollment = await Enrollment.get_by_id(db_session, response.json()["enrollment_id"])
        assert enrollment.payment_status == EnrollmentPaymentStatus.PENDING

    async def test_payment_failed_after_success_is_ignored(
        self, client: AsyncClient, db_session: AsyncSession, test_customer, monday_session
    ):
        """Only a refund undoes a settled card payment."""
        intent = payment_intent(test_customer.id, monday_session.id, pi_id="pi_fail")
        await post_event(client, stripe_event("payment_intent.succeeded", intent))
        for event_type in ("payment_intent.payment_failed", "payment_intent.canceled"):
            response = await post_event(client, stripe_event(event_type, intent))
            assert response.status_code == 200

        enrollment = await Enrollment.get_by_payment_intent(db_session, "pi_fail")
        assert enrollment.status == EnrollmentStatus.ACTIVE
        assert enrollment.payment_status == EnrollmentPaymentStatus.PAID
        payment = await Payment.get_by_enrollment_id(db_session, enrollment.id)
        assert payment.status == PaymentStatus.COMPLETED

    async def test_payment_failed_cancels_held_enrollment(
        self, client: AsyncClient, db_session: AsyncSession, test_customer, monday_session
    ):
        intent = payment_intent(
            test_customer.id, monday_session.id, amount_cents=5000, pi_id="pi_held_fail"
        )
        await post_event(client, stripe_event("payment_intent.succeeded", intent))
        response = await post_event(client, stripe_event("payment_intent.payment_failed", intent))
        assert response.status_code == 200

        enrollment = await Enrollment.get_by_payment_intent(db_session, "pi_held_fail")
        assert enrollment.status == EnrollmentStatus.CANCELLED
        assert enrollment.payment_status == EnrollmentPaymentStatus.CANCELLED
        payment = await Payment.get_by_enrollment_id(db_session, enrollment.id)
        assert payment.status == PaymentStatus.FAILED

    async def test_session_changed_after_payment_holds_money(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_customer,
        monday_session,
        next_monday,
        mock_email_tasks,
    ):
        """A weekday change between checkout and payment leaves a pending payment, not a 4xx."""
        session_id = monday_session.id
        fee_cents = int(Decimal("100.00") / monday_session.total_occurrences * 100)
        items = [{
            "session_id": session_id,
            "enrollment_type": "partial",
            "dates": [next_monday.isoformat()],
        }]
        intent = payment_intent(
            test_customer.id, session_id, amount_cents=fee_cents, pi_id="pi_moved", items=items
        )
        await db_session.execute(
            update(ClassSession)
            .where(ClassSession.id == session_id)
            .values(day_of_week=Weekday.TUESDAY)
        )
        await db_session.commit()

        response = await post_event(client, stripe_event("payment_intent.succeeded", intent))

        assert response.status_code == 200
        assert response.json()["status"] == "reconciliation_required"
        result = await db_session.execute(
            select(Payment.status, Payment.transaction_ref, Payment.amount)
        )
        payments = [tuple(row) for row in result.all()]
        assert payments == [(PaymentStatus.PENDING, "pi_moved", Decimal(fee_cents) / 100)]
        enrollment = await Enrollment.get_by_id(db_session, response.json()["enrollment_id"])
        assert enrollment.sessions == []
        mock_email_tasks["receipt"].assert_not_called()
        assert mock_email_tasks["admin"].call_args.kwargs["reconciliation_required"] is True

        redelivered = await post_event(client, stripe_event("payment_intent.succeeded", intent))
        assert redelivered.json()["status"] == "already_processed"

    async def test_dispute_marks_enrollment(
        self, client: AsyncClient, db_session: AsyncSession, test_customer, monday_session
    ):
        intent = payment_intent(test_customer.id, monday_session.id, pi_id="pi_dispute")
        await post_event(client, stripe_event("payment_intent.succeeded", intent))
        dispute = {"id": "dp_1", "charge": "ch_1", "payment_intent": "pi_dispute"}
        response = await post_event(client, stripe_event("charge.dispute.created", dispute))
        assert response.status_code == 200

        enrollment = await Enrollment.get_by_payment_intent(db_session, "pi_dispute")
        assert enrollment.payment_status == EnrollmentPaymentStatus.DISPUTED
        assert enrollment.status == EnrollmentStatus.ACTIVE

    async def test_refund_cancels_enrollment(
        self, client: AsyncClient, db_session: AsyncSession, test_customer, monday_session
    ):
        intent = payment_intent(test_customer.id, monday_session.id, pi_id="pi_refund")
        await post_event(client, stripe_event("payment_intent.succeeded", intent))
        charge = {"id": "ch_1", "payment_intent": "pi_refund"}
        response = await post_event(client, stripe_event("charge.refunded", charge))
        assert response.status_code == 200

        enrollment = await Enrollment.get_by_payment_intent(db_session, "pi_refund")
        assert enrollment.status == EnrollmentStatus.CANCELLED
        payment = await Payment.get_by_enrollment_id(db_session, enrollment.id)
        assert payment.status == PaymentStatus.REFUNDED

    async def test_missing_metadata(self, client: AsyncClient):
        event = stripe_event("payment_intent.succeeded", {"id": "pi_bare", "amount": 100, "metadata": {}})
        response = await post_event(client, event)
        assert response.status_code == 400

    async def test_invalid_signature(self, client: AsyncClient):
        with patch(
            "api.v1.webhooks.StripeService.construct_event",
            side_effect=Exception("No signatures found"),
        ):
            response = await client.post(
                "/api/v1/webhooks/stripe",
                content=b"{}",
                headers={"Stripe-Signature": "bad"},
            )
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid signature"

    async def test_unhandled_event_type_is_acknowledged(self, client: AsyncClient):
        response = await post_event(client, stripe_event("customer.created", {"id": "cus_1"}))
        assert response.status_code == 200


class TestReconciliation:
    async def test_settle_short_payment(
        self,
        client: AsyncClient,
        admin_headers: dict,
        test_customer,
        monday_session,
        mock_email_tasks,
    ):
        intent = payment_intent(
            test_customer.id, monday_session.id, amount_cents=9000, pi_id="pi_short_settle"
        )
        await post_event(client, stripe_event("payment_intent.succeeded", intent))

        response = await client.get("/api/v1/payments/reconciliation", headers=admin_headers)
        assert response.status_code == 200
        held = response.json()
        assert len(held) == 1
        assert held[0]["transaction_ref"] == "pi_short_settle"
        assert held[0]["customer_id"] == test_customer.id
        assert held[0]["customer_name"] == "Test Customer"
        assert held[0]["booked_sessions"] == 1

        response = await client.post(
            f"/api/v1/payments/{held[0]['id']}/settle",
            json={"notes": "Concession discount agreed by phone"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["payment_status"] == "paid"
        assert data["payment"]["status"] == "completed"
        mock_email_tasks["receipt"].assert_called_once()
        assert mock_email_tasks["receipt"].call_args.kwargs["amount"] == "90.00"

        response = await client.get("/api/v1/payments/reconciliation", headers=admin_headers)
        assert response.json() == []

    async def test_settling_twice_conflicts(
        self, client: AsyncClient, admin_headers: dict, test_customer, monday_session
    ):
        intent = payment_intent(
            test_customer.id, monday_session.id, amount_cents=9000, pi_id="pi_settle_twice"
        )
        await post_event(client, stripe_event("payment_intent.succeeded", intent))
        held = (await client.get("/api/v1/payments/reconciliation", headers=admin_headers)).json()

        url = f"/api/v1/payments/{held[0]['id']}/settle"
        assert (await client.post(url, json={}, headers=admin_headers)).status_code == 200
        response = await client.post(url, json={}, headers=admin_headers)
        assert response.status_code == 409
        assert response.json()["data"]["status"] == "completed"

    async def test_payment_without_classes_cannot_be_settled(
        self, client: AsyncClient, admin_headers: dict, test_customer, mock_email_tasks
    ):
        intent = payment_intent(test_customer.id, "deleted-session", pi_id="pi_no_classes")
        response = await post_event(client, stripe_event("payment_intent.succeeded", intent))
        assert response.json()["status"] == "reconciliation_required"

        held = (await client.get("/api/v1/payments/reconciliation", headers=admin_headers)).json()
        assert held[0]["booked_sessions"] == 0

        response = await client.post(
            f"/api/v1/payments/{held[0]['id']}/settle", json={}, headers=admin_headers
        )
        assert response.status_code == 409
        mock_email_tasks["receipt"].assert_not_called()

    async def test_customers_cannot_reconcile(self, client: AsyncClient, auth_headers: dict):
        response = await client.get("/api/v1/payments/reconciliation", headers=auth_headers)
        assert response.status_code == 403

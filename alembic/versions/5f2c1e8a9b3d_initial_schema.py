"""initial_schema

Revision ID: 5f2c1e8a9b3d
Revises:
Create Date: 2026-10-16 09:00:00.000000

Catalogue (terms, sessions, venues, instructors, exercise types), customers
and logins, enrollments with their per-session subscriptions and payments,
the attendance ledger, cancellation requests, the credit ledger and
staff-cancelled class dates.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5f2c1e8a9b3d"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

OPEN_STATUS_CLAUSE = "status IN ('pending', 'accepted')"


def timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Create every table."""
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column(
            "role",
            sa.Enum("admin", "staff", "instructor", "customer", name="role", native_enum=False),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        *timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_users")),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "venues",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_venues")),
    )

    op.create_table(
        "exercise_types",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_exercise_types")),
        sa.UniqueConstraint("name", name=op.f("uq_exercise_types_name")),
    )

    op.create_table(
        "terms",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("fiscal_year", sa.Integer(), nullable=False),
        sa.Column("term_number", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        *timestamps(),
        sa.CheckConstraint("start_date <= end_date", name=op.f("ck_terms_term_dates_ordered")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_terms")),
        sa.UniqueConstraint("fiscal_year", "term_number", name="uq_term_year_number"),
    )

    op.create_table(
        "instructors",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name=op.f("fk_instructors_user_id_users")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_instructors")),
        sa.UniqueConstraint("user_id", name=op.f("uq_instructors_user_id")),
    )

    op.create_table(
        "customers",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("surname", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("contact_no", sa.String(30), nullable=True),
        sa.Column("credit_balance", sa.Integer(), server_default="0", nullable=False),
        *timestamps(),
        sa.CheckConstraint("credit_balance >= 0", name=op.f("ck_customers_credit_balance_non_negative")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name=op.f("fk_customers_user_id_users")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_customers")),
        sa.UniqueConstraint("user_id", name=op.f("uq_customers_user_id")),
    )
    op.create_index(op.f("ix_customers_email"), "customers", ["email"], unique=False)

    op.create_table(
        "sessions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("term_id", sa.String(36), nullable=False),
        sa.Column(
            "day_of_week",
            sa.Enum(
                "monday", "tuesday", "wednesday", "thursday", "friday", "saturday",
                name="weekday",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("fee_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("venue_id", sa.String(36), nullable=False),
        sa.Column("instructor_id", sa.String(36), nullable=False),
        sa.Column("exercise_type_id", sa.String(36), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=True),
        sa.Column("is_subsidised", sa.Boolean(), server_default="false", nullable=False),
        *timestamps(),
        sa.ForeignKeyConstraint(
            ["exercise_type_id"], ["exercise_types.id"],
            name=op.f("fk_sessions_exercise_type_id_exercise_types"),
        ),
        sa.ForeignKeyConstraint(
            ["instructor_id"], ["instructors.id"], name=op.f("fk_sessions_instructor_id_instructors")
        ),
        sa.ForeignKeyConstraint(["term_id"], ["terms.id"], name=op.f("fk_sessions_term_id_terms")),
        sa.ForeignKeyConstraint(["venue_id"], ["venues.id"], name=op.f("fk_sessions_venue_id_venues")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_sessions")),
    )
    for column in ("term_id", "venue_id", "instructor_id", "exercise_type_id"):
        op.create_index(op.f(f"ix_sessions_{column}"), "sessions", [column], unique=False)

    op.create_table(
        "session_cancellations",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("session_id", sa.String(36), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("cancelled_by", sa.String(36), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        *timestamps(),
        sa.ForeignKeyConstraint(
            ["cancelled_by"], ["users.id"], name=op.f("fk_session_cancellations_cancelled_by_users")
        ),
        sa.ForeignKeyConstraint(
            ["session_id"], ["sessions.id"],
            name=op.f("fk_session_cancellations_session_id_sessions"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_session_cancellations")),
        sa.UniqueConstraint("session_id", "date", name="uq_session_cancellation_date"),
    )
    op.create_index(
        op.f("ix_session_cancellations_session_id"), "session_cancellations", ["session_id"], unique=False
    )
    op.create_index(op.f("ix_session_cancellations_date"), "session_cancellations", ["date"], unique=False)

    op.create_table(
        "enrollments",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("customer_id", sa.String(36), nullable=False),
        sa.Column(
            "status",
            sa.Enum("active", "cancelled", name="enrollmentstatus", native_enum=False),
            nullable=False,
        ),
        sa.Column(
            "payment_status",
            sa.Enum(
                "paid", "pending", "cancelled", "disputed",
                name="enrollmentpaymentstatus",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("payment_intent_id", sa.String(255), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(
            ["customer_id"], ["customers.id"], name=op.f("fk_enrollments_customer_id_customers")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_enrollments")),
        sa.UniqueConstraint("payment_intent_id", name=op.f("uq_enrollments_payment_intent_id")),
    )
    op.create_index(op.f("ix_enrollments_customer_id"), "enrollments", ["customer_id"], unique=False)

    op.create_table(
        "payments",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("enrollment_id", sa.String(36), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column(
            "method",
            sa.Enum("stripe", "cash", "bank_transfer", "no_charge", name="paymentmethod", native_enum=False),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum("completed", "pending", "failed", "refunded", name="paymentstatus", native_enum=False),
            nullable=False,
        ),
        sa.Column("transaction_ref", sa.String(255), nullable=True),
        sa.Column("receipt_number", sa.String(8), nullable=False),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(
            ["enrollment_id"], ["enrollments.id"], name=op.f("fk_payments_enrollment_id_enrollments")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_payments")),
        sa.UniqueConstraint("enrollment_id", name=op.f("uq_payments_enrollment_id")),
        sa.UniqueConstraint("receipt_number", name=op.f("uq_payments_receipt_number")),
        sa.UniqueConstraint("transaction_ref", name=op.f("uq_payments_transaction_ref")),
    )

    op.create_table(
        "enrollment_sessions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("enrollment_id", sa.String(36), nullable=False),
        sa.Column("session_id", sa.String(36), nullable=False),
        sa.Column(
            "enrollment_type",
            sa.Enum("full", "trial", "partial", name="enrollmenttype", native_enum=False),
            nullable=False,
        ),
        sa.Column("trial_date", sa.Date(), nullable=True),
        sa.Column("partial_dates", sa.JSON(none_as_null=True), nullable=True),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("fee", sa.Numeric(10, 2), nullable=False),
        *timestamps(),
        sa.CheckConstraint(
            "(enrollment_type = 'trial') = (trial_date IS NOT NULL)",
            name=op.f("ck_enrollment_sessions_trial_date_iff_trial"),
        ),
        sa.CheckConstraint(
            "(enrollment_type = 'partial') = (partial_dates IS NOT NULL)",
            name=op.f("ck_enrollment_sessions_partial_dates_iff_partial"),
        ),
        sa.ForeignKeyConstraint(
            ["enrollment_id"], ["enrollments.id"],
            name=op.f("fk_enrollment_sessions_enrollment_id_enrollments"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["session_id"], ["sessions.id"], name=op.f("fk_enrollment_sessions_session_id_sessions")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_enrollment_sessions")),
        sa.UniqueConstraint("enrollment_id", "session_id", name="uq_enrollment_session_once"),
    )
    op.create_index(
        op.f("ix_enrollment_sessions_enrollment_id"), "enrollment_sessions", ["enrollment_id"], unique=False
    )
    op.create_index(
        op.f("ix_enrollment_sessions_session_id"), "enrollment_sessions", ["session_id"], unique=False
    )

    op.create_table(
        "attendance_records",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("enrollment_session_id", sa.String(36), nullable=False),
        sa.Column("session_id", sa.String(36), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("present", "absent", "late", name="attendancestatus", native_enum=False),
            nullable=False,
        ),
        sa.Column("marked_by", sa.String(36), nullable=True),
        sa.Column("marked_at", sa.DateTime(timezone=True), nullable=False),
        *timestamps(),
        sa.ForeignKeyConstraint(
            ["enrollment_session_id"], ["enrollment_sessions.id"],
            name=op.f("fk_attendance_records_enrollment_session_id_enrollment_sessions"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["marked_by"], ["users.id"], name=op.f("fk_attendance_records_marked_by_users")
        ),
        sa.ForeignKeyConstraint(
            ["session_id"], ["sessions.id"], name=op.f("fk_attendance_records_session_id_sessions")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_attendance_records")),
        sa.UniqueConstraint(
            "enrollment_session_id", "date", name="uq_attendance_enrollment_session_date"
        ),
    )
    op.create_index(
        op.f("ix_attendance_records_enrollment_session_id"),
        "attendance_records",
        ["enrollment_session_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_attendance_records_session_id"), "attendance_records", ["session_id"], unique=False
    )
    op.create_index(op.f("ix_attendance_records_date"), "attendance_records", ["date"], unique=False)
    op.create_index(
        "idx_attendance_session_date", "attendance_records", ["session_id", "date"], unique=False
    )

    op.create_table(
        "cancellation_requests",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("enrollment_session_id", sa.String(36), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("evidence_ref", sa.String(500), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "accepted", "rejected", name="cancellationstatus", native_enum=False),
            nullable=False,
        ),
        sa.Column("reject_reason", sa.Text(), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", sa.String(36), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(
            ["enrollment_session_id"], ["enrollment_sessions.id"],
            name=op.f("fk_cancellation_requests_enrollment_session_id_enrollment_sessions"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["reviewed_by"], ["users.id"], name=op.f("fk_cancellation_requests_reviewed_by_users")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_cancellation_requests")),
    )
    op.create_index(
        op.f("ix_cancellation_requests_enrollment_session_id"),
        "cancellation_requests",
        ["enrollment_session_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_cancellation_requests_status"), "cancellation_requests", ["status"], unique=False
    )
    # At most one open (pending or accepted) request per subscription and date
    op.create_index(
        "uq_cancellation_open_date",
        "cancellation_requests",
        ["enrollment_session_id", "date"],
        unique=True,
        sqlite_where=sa.text(OPEN_STATUS_CLAUSE),
        postgresql_where=sa.text(OPEN_STATUS_CLAUSE),
    )

    op.create_table(
        "credit_transactions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("customer_id", sa.String(36), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column(
            "transaction_type",
            sa.Enum("cancellation_credit", name="credittransactiontype", native_enum=False),
            nullable=False,
        ),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("cancellation_request_id", sa.String(36), nullable=True),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        *timestamps(),
        sa.ForeignKeyConstraint(
            ["cancellation_request_id"], ["cancellation_requests.id"],
            name=op.f("fk_credit_transactions_cancellation_request_id_cancellation_requests"),
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["customer_id"], ["customers.id"],
            name=op.f("fk_credit_transactions_customer_id_customers"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_credit_transactions")),
        sa.UniqueConstraint(
            "cancellation_request_id", name=op.f("uq_credit_transactions_cancellation_request_id")
        ),
    )
    op.create_index(
        op.f("ix_credit_transactions_customer_id"), "credit_transactions", ["customer_id"], unique=False
    )
    op.create_index(
        "ix_credit_transactions_created_at", "credit_transactions", ["created_at"], unique=False
    )


def downgrade() -> None:
    """Drop every table, children first."""
    for table in (
        "credit_transactions",
        "cancellation_requests",
        "attendance_records",
        "enrollment_sessions",
        "payments",
        "enrollments",
        "session_cancellations",
        "sessions",
        "customers",
        "instructors",
        "terms",
        "exercise_types",
        "venues",
        "users",
    ):
        op.drop_table(table)

from app.models.attendance import AttendanceRecord, AttendanceStatus
from app.models.cancellation import CancellationRequest, CancellationStatus
from app.models.catalog import ExerciseType, Instructor, Venue
from app.models.class_cancellation import SessionCancellation
from app.models.class_session import ClassSession, Weekday
from app.models.credit import CreditTransaction, CreditTransactionType
from app.models.customer import Customer
from app.models.enrollment import (
    Enrollment,
    EnrollmentPaymentStatus,
    EnrollmentSession,
    EnrollmentStatus,
    EnrollmentType,
)
from app.models.payment import Payment, PaymentMethod, PaymentStatus
from app.models.term import Term
from app.models.user import Role, User

__all__ = [
    # User
    "User",
    "Role",
    "Customer",
    # Catalogue
    "Term",
    "ClassSession",
    "Weekday",
    "Venue",
    "Instructor",
    "ExerciseType",
    "SessionCancellation",
    # Enrollment
    "Enrollment",
    "EnrollmentSession",
    "EnrollmentStatus",
    "EnrollmentPaymentStatus",
    "EnrollmentType",
    # Ledgers
    "AttendanceRecord",
    "AttendanceStatus",
    "CancellationRequest",
    "CancellationStatus",
    "CreditTransaction",
    "CreditTransactionType",
    # Payment
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
]

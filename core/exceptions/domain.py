"""Errors raised by the scheduling, eligibility and payment engine."""

from core.exceptions.base import ConflictException, ValidationException


class InvalidDateSelection(ValidationException):
    """A trial/partial date is not a term occurrence of the session, or is in the past."""

    error_code = "INVALID_DATE_SELECTION"
    message = "Selected dates are not valid for this session"


class InvalidTermConfiguration(ValidationException):
    """The session's weekday never occurs inside its term."""

    error_code = "INVALID_TERM_CONFIGURATION"
    message = "Session has no occurrences in its term"


class IneligibleAttendanceMark(ValidationException):
    error_code = "INELIGIBLE_ATTENDANCE_MARK"
    message = "Enrollment is not eligible to attend on this date"


class DuplicateCancellationRequest(ConflictException):
    """A pending or accepted cancellation already exists for the date.

    ``data`` carries the date and the status of the existing request.
    """

    error_code = "DUPLICATE_CANCELLATION_REQUEST"
    message = "A cancellation request already exists for this date"


class PaymentHeldForReconciliation(ConflictException):
    """A confirmed payment was stored but not settled; staff must reconcile it.

    ``data`` carries the held enrollment and the processor transaction id.
    """

    error_code = "PAYMENT_RECONCILIATION_REQUIRED"
    message = "Payment is held for manual reconciliation"


class PaymentAmountMismatch(PaymentHeldForReconciliation):
    """Processor-confirmed amount differs from the locally recomputed total."""

    error_code = "PAYMENT_AMOUNT_MISMATCH"
    message = "Payment amount does not match the enrollment total"


class UnfulfillablePayment(PaymentHeldForReconciliation):
    """The paid-for selection can no longer be priced (session edited or removed)."""

    error_code = "UNFULFILLABLE_PAYMENT"
    message = "Paid-for classes could not be booked"

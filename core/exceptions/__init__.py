from core.exceptions.base import (
    CustomException,
    BadRequestException,
    UnauthorizedException,
    ForbiddenException,
    NotFoundException,
    ConflictException,
    ValidationException,
)
from core.exceptions.domain import (
    DuplicateCancellationRequest,
    IneligibleAttendanceMark,
    InvalidDateSelection,
    InvalidTermConfiguration,
    PaymentAmountMismatch,
    PaymentHeldForReconciliation,
    UnfulfillablePayment,
)

__all__ = [
    "CustomException",
    "BadRequestException",
    "UnauthorizedException",
    "ForbiddenException",
    "NotFoundException",
    "ConflictException",
    "ValidationException",
    "DuplicateCancellationRequest",
    "IneligibleAttendanceMark",
    "InvalidDateSelection",
    "InvalidTermConfiguration",
    "PaymentAmountMismatch",
    "PaymentHeldForReconciliation",
    "UnfulfillablePayment",
]

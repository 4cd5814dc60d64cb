"""Common module — shared utilities for the vacation portal."""

from vacation_portal.common.constants import (
    ACTIVE_STATUSES,
    APPROVED_STATUSES,
    DATE_FORMAT,
    OPEN_STATUSES,
    Decision,
    RequestStatus,
    UserRole,
)
from vacation_portal.common.dates import (
    count_business_days,
    end_exclusive,
    normalize_to_day,
    ranges_overlap,
)
from vacation_portal.common.exceptions import (
    AppException,
    BusyException,
    CalendarError,
    ConflictError,
    ExternalServiceError,
    ForbiddenException,
    InsufficientBalanceException,
    InvalidStateTransitionException,
    MailDeliveryError,
    NotFoundException,
    RateLimitedException,
    UnauthenticatedException,
    ValidationException,
    register_exception_handlers,
)

__all__ = [
    # Constants / Enums
    "ACTIVE_STATUSES",
    "APPROVED_STATUSES",
    "DATE_FORMAT",
    "OPEN_STATUSES",
    "Decision",
    "RequestStatus",
    "UserRole",
    # Dates
    "count_business_days",
    "end_exclusive",
    "normalize_to_day",
    "ranges_overlap",
    # Exceptions
    "AppException",
    "BusyException",
    "CalendarError",
    "ConflictError",
    "ExternalServiceError",
    "ForbiddenException",
    "InsufficientBalanceException",
    "InvalidStateTransitionException",
    "MailDeliveryError",
    "NotFoundException",
    "RateLimitedException",
    "UnauthenticatedException",
    "ValidationException",
    "register_exception_handlers",
]

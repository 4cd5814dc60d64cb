"""Enums and constants for the vacation portal — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Roles ───────────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    manager = "manager"


# ── Vacation requests ───────────────────────────────────────────────

class RequestStatus(str, enum.Enum):
    pending = "pending"
    needs_review = "needs_review"
    approved = "approved"
    approved_exception = "approved_exception"
    rejected = "rejected"
    cancelled = "cancelled"

    @property
    def is_approved(self) -> bool:
        return self in APPROVED_STATUSES

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


class Decision(str, enum.Enum):
    """Outcomes a manager may record on a request."""

    approved = "approved"
    approved_exception = "approved_exception"
    rejected = "rejected"

    @property
    def status(self) -> RequestStatus:
        return RequestStatus(self.value)


STATUS_LABELS: dict[RequestStatus, str] = {
    RequestStatus.pending: "Pending",
    RequestStatus.needs_review: "Needs Review",
    RequestStatus.approved: "Approved",
    RequestStatus.approved_exception: "Approved (Exception)",
    RequestStatus.rejected: "Rejected",
    RequestStatus.cancelled: "Cancelled",
}

APPROVED_STATUSES = frozenset(
    {RequestStatus.approved, RequestStatus.approved_exception}
)

# Requests that still block the same employee from booking the same days
SELF_CONFLICT_STATUSES = frozenset(
    {RequestStatus.pending, RequestStatus.needs_review} | APPROVED_STATUSES
)

# Requests that count against team coverage
TEAM_CONFLICT_STATUSES = frozenset({RequestStatus.pending} | APPROVED_STATUSES)

# Requests the requester (or a manager) may still edit or cancel
OPEN_STATUSES = frozenset({RequestStatus.pending, RequestStatus.needs_review})

# Requests shown on the manager's "all requests" board
ACTIVE_STATUSES = OPEN_STATUSES | APPROVED_STATUSES


# ── Rate-limited actions ────────────────────────────────────────────

ACTION_CREATE = "create_request"
ACTION_EDIT = "edit_request"
ACTION_CANCEL = "cancel_request"
ACTION_DECIDE = "decide_request"


# ── Misc constants ──────────────────────────────────────────────────

DATE_FORMAT = "%d/%m/%Y"
CALENDAR_TITLE = "Vacations: {name}"
CALENDAR_TITLE_EXCEPTION = "Vacations (EXCEPTION): {name}"
INVALID_DATA_NOTE = "Invalid data"
DUPLICATE_REQUEST_NOTE = "Duplicate request"

"""Vacation Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Update / *Request → request bodies (write)
  - *Out                          → response bodies (read)
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from vacation_portal.common.constants import Decision, RequestStatus, UserRole
from vacation_portal.config import settings
from vacation_portal.notifications.schemas import NotificationReport


# ═════════════════════════════════════════════════════════════════════
# Request bodies
# ═════════════════════════════════════════════════════════════════════


class VacationRequestCreate(BaseModel):
    """Payload for submitting a vacation request."""

    start_date: date = Field(..., description="First day off (inclusive)")
    end_date: date = Field(..., description="Last day off (inclusive)")

    @model_validator(mode="after")
    def validate_dates(self) -> "VacationRequestCreate":
        if self.end_date < self.start_date:
            raise ValueError("End date must be on or after start date.")
        if (self.end_date - self.start_date).days + 1 > settings.MAX_REQUEST_DAYS:
            raise ValueError(f"A request may cover at most {settings.MAX_REQUEST_DAYS} days.")
        return self


class VacationRequestUpdate(VacationRequestCreate):
    """Payload for changing the dates of an open request."""


class DecisionRequest(BaseModel):
    """Payload for a manager decision."""

    decision: Decision


# ═════════════════════════════════════════════════════════════════════
# Responses
# ═════════════════════════════════════════════════════════════════════


class VacationRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    submitted_at: datetime
    requester_email: str
    requester_name: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[RequestStatus] = None
    business_days: Optional[int] = None
    note: Optional[str] = None
    calendar_event_ref: Optional[str] = None


class RequestResult(BaseModel):
    """Outcome of a mutation: the stored row plus side-effect delivery."""

    success: bool = True
    request: VacationRequestOut
    notifications: NotificationReport = Field(default_factory=NotificationReport)


class BalanceStats(BaseModel):
    total: int = 0
    used: int = 0
    remaining: int = 0


class EmployeeSummaryOut(BaseModel):
    email: str
    name: str
    role: UserRole
    team: str
    stats: BalanceStats


class DashboardEntry(BaseModel):
    """One row of a dashboard listing."""

    id: int
    employee: str
    team: Optional[str] = None
    email: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[RequestStatus] = None
    business_days: Optional[int] = None
    note: Optional[str] = None


class DashboardOut(BaseModel):
    user: EmployeeSummaryOut
    requests: list[DashboardEntry] = Field(default_factory=list)
    # Populated for managers only
    pending: list[DashboardEntry] = Field(default_factory=list)
    all_requests: list[DashboardEntry] = Field(default_factory=list)


class ReminderResult(BaseModel):
    requests: int = 0
    managers_notified: Optional[bool] = None

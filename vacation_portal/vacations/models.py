"""Vacation ORM model: VacationRequest (one row per request)."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from vacation_portal.common.constants import RequestStatus
from vacation_portal.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VacationRequest(Base):
    __tablename__ = "vacation_requests"
    __table_args__ = (
        sa.Index("ix_vacation_requests_requester_email", "requester_email"),
        sa.Index("ix_vacation_requests_status", "status"),
        sa.Index("ix_vacation_requests_start_date", "start_date"),
        # ids are never reused, even after deletes
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    submitted_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, nullable=False,
    )
    requester_email: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    # Frozen at creation; not re-resolved when the directory changes
    requester_name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    employee_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"),
    )
    start_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    end_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    status: Mapped[Optional[RequestStatus]] = mapped_column(
        sa.Enum(
            RequestStatus,
            name="request_status",
            values_callable=lambda enum_cls: [m.value for m in enum_cls],
        ),
        default=RequestStatus.pending,
    )
    business_days: Mapped[Optional[int]] = mapped_column(sa.Integer)
    note: Mapped[Optional[str]] = mapped_column(sa.Text)
    calendar_event_ref: Mapped[Optional[str]] = mapped_column(sa.String(255))
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    @property
    def is_approved(self) -> bool:
        return self.status is not None and self.status.is_approved

    def __repr__(self) -> str:
        return (
            f"<VacationRequest #{self.id} {self.requester_name!r} "
            f"{self.start_date}..{self.end_date} {self.status}>"
        )

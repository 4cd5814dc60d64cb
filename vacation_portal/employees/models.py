"""Employee ORM models: Employee, Manager.

``used_days`` is a materialised view over approved requests; only the
balance ledger writes it.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from vacation_portal.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class Employee(Base):
    """Person with a vacation allowance, grouped by team."""

    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    email: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    team: Mapped[Optional[str]] = mapped_column(sa.String(100))
    allowance_total: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=0,
    )
    used_days: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=0,
    )
    # When set, HR's figure is authoritative over allowance_total - used_days
    remaining_override: Mapped[Optional[int]] = mapped_column(sa.Integer)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    __table_args__ = (
        sa.Index("ix_employees_name", "name"),
        sa.Index("ix_employees_team", "team"),
    )

    @property
    def remaining_days(self) -> int:
        if self.remaining_override is not None:
            return self.remaining_override
        return (self.allowance_total or 0) - (self.used_days or 0)

    def __repr__(self) -> str:
        return f"<Employee {self.name!r} <{self.email}>>"


# ═════════════════════════════════════════════════════════════════════
# Manager roster
# ═════════════════════════════════════════════════════════════════════


class Manager(Base):
    """E-mail with approval authority. Row order (id) is roster order."""

    __tablename__ = "managers"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )

    def __repr__(self) -> str:
        return f"<Manager {self.email}>"

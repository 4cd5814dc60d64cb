"""Conflict detection — same-employee duplicates and same-team coverage clashes.

Both checks scan the request table on every call; candidate rows are
narrowed in SQL by identity and status, and the date test is always
``ranges_overlap`` so there is a single definition of "overlapping".
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vacation_portal.common.constants import (
    SELF_CONFLICT_STATUSES,
    TEAM_CONFLICT_STATUSES,
    RequestStatus,
)
from vacation_portal.common.dates import ranges_overlap
from vacation_portal.employees.models import Employee
from vacation_portal.employees.service import normalize_key
from vacation_portal.vacations.models import VacationRequest


@dataclass(frozen=True)
class SelfOverlap:
    request_id: int
    status: RequestStatus


@dataclass(frozen=True)
class TeamOverlap:
    request_id: int
    employee_name: str
    status: RequestStatus
    team: str


class ConflictDetector:
    """Overlap lookups used by the lifecycle engine."""

    @staticmethod
    async def find_self_overlap(
        db: AsyncSession,
        requester_email: str,
        start: date,
        end: date,
        *,
        exclude_id: Optional[int] = None,
    ) -> Optional[SelfOverlap]:
        """First active request of the same requester overlapping [start, end].

        Active here means pending, needs review or any approved state.
        """
        query = (
            select(VacationRequest)
            .where(
                func.lower(func.trim(VacationRequest.requester_email))
                == normalize_key(requester_email),
                VacationRequest.status.in_(list(SELF_CONFLICT_STATUSES)),
            )
            .order_by(VacationRequest.id)
        )
        if exclude_id is not None:
            query = query.where(VacationRequest.id != exclude_id)

        result = await db.execute(query)
        for other in result.scalars().all():
            if other.start_date is None or other.end_date is None:
                continue
            if ranges_overlap(start, end, other.start_date, other.end_date):
                return SelfOverlap(request_id=other.id, status=other.status)
        return None

    @staticmethod
    async def find_team_overlap(
        db: AsyncSession,
        requester_email: str,
        team: Optional[str],
        start: date,
        end: date,
        *,
        exclude_id: Optional[int] = None,
    ) -> Optional[TeamOverlap]:
        """First pending/approved request of a teammate overlapping [start, end].

        Returns None when the requester has no team.
        """
        if not team or not team.strip():
            return None

        query = (
            select(VacationRequest, Employee.team)
            .join(Employee, VacationRequest.employee_id == Employee.id)
            .where(
                func.trim(Employee.team) == team.strip(),
                func.lower(func.trim(VacationRequest.requester_email))
                != normalize_key(requester_email),
                VacationRequest.status.in_(list(TEAM_CONFLICT_STATUSES)),
            )
            .order_by(VacationRequest.id)
        )
        if exclude_id is not None:
            query = query.where(VacationRequest.id != exclude_id)

        result = await db.execute(query)
        for other, other_team in result.all():
            if other.start_date is None or other.end_date is None:
                continue
            if ranges_overlap(start, end, other.start_date, other.end_date):
                return TeamOverlap(
                    request_id=other.id,
                    employee_name=other.requester_name.strip(),
                    status=other.status,
                    team=other_team.strip(),
                )
        return None

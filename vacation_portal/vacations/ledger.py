"""Balance ledger — allowance totals and the full used-days recompute.

``used_days`` is never adjusted incrementally: every state-changing
mutation ends with ``recompute_used_days``, which rebuilds the figure from
approved requests. Running it twice in a row changes nothing.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vacation_portal.common.constants import APPROVED_STATUSES
from vacation_portal.employees.models import Employee
from vacation_portal.employees.service import EmployeeDirectory
from vacation_portal.vacations.models import VacationRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BalanceTotals:
    total: int = 0
    used: int = 0
    remaining: int = 0


class BalanceLedger:
    """Reads and rebuilds the employees' used/remaining balance."""

    @staticmethod
    async def compute_totals(
        db: AsyncSession,
        key: Optional[str],
    ) -> BalanceTotals:
        """Totals for the employee matching ``key`` (name or e-mail).

        Unknown employees get all-zero totals instead of an error.
        """
        employee = await EmployeeDirectory.find_by_name_or_email(db, key)
        if employee is None:
            return BalanceTotals()
        return BalanceTotals(
            total=employee.allowance_total or 0,
            used=employee.used_days or 0,
            remaining=employee.remaining_days,
        )

    @staticmethod
    async def recompute_used_days(db: AsyncSession) -> dict[uuid.UUID, int]:
        """Sum business days of approved requests per employee and write them back.

        Requests are joined to employees by ``employee_id``; rows without one
        fall back to the trimmed requester name. Returns employee id → used days.
        """
        result = await db.execute(
            select(
                VacationRequest.employee_id,
                VacationRequest.requester_name,
                VacationRequest.business_days,
            ).where(VacationRequest.status.in_(list(APPROVED_STATUSES)))
        )

        used_by_id: dict[uuid.UUID, int] = defaultdict(int)
        used_by_name: dict[str, int] = defaultdict(int)
        for employee_id, requester_name, business_days in result.all():
            days = business_days or 0
            if employee_id is not None:
                used_by_id[employee_id] += days
            else:
                used_by_name[str(requester_name or "").strip()] += days

        employees = await EmployeeDirectory.list_all(db)
        totals: dict[uuid.UUID, int] = {}
        for employee in employees:
            used = used_by_id.get(employee.id, 0) + used_by_name.get(employee.name.strip(), 0)
            if employee.used_days != used:
                employee.used_days = used
            totals[employee.id] = used

        await db.flush()
        logger.debug("Recomputed used days for %d employees", len(totals))
        return totals

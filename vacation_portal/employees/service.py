"""Employee directory lookups and the cached manager roster."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from vacation_portal.employees.models import Employee, Manager

logger = logging.getLogger(__name__)


def normalize_key(value: Optional[str]) -> str:
    """Lookup keys (names and e-mails) match case-insensitively after trimming."""
    return str(value or "").strip().lower()


# ═════════════════════════════════════════════════════════════════════
# EmployeeDirectory
# ═════════════════════════════════════════════════════════════════════


class EmployeeDirectory:
    """Async lookups against the employees table."""

    @staticmethod
    async def find_by_name_or_email(
        db: AsyncSession,
        key: Optional[str],
    ) -> Optional[Employee]:
        """Return the first employee whose name or e-mail matches ``key``."""
        search = normalize_key(key)
        if not search:
            return None

        result = await db.execute(
            select(Employee)
            .where(
                or_(
                    func.lower(func.trim(Employee.email)) == search,
                    func.lower(func.trim(Employee.name)) == search,
                )
            )
            .order_by(Employee.created_at, Employee.email)
            .limit(1)
        )
        return result.scalars().first()

    @staticmethod
    async def resolve_display_name(db: AsyncSession, email: str) -> str:
        """Name on file for ``email``; the e-mail itself when unknown."""
        employee = await EmployeeDirectory.find_by_name_or_email(db, email)
        if employee is None or not employee.name.strip():
            return email
        return employee.name.strip()

    @staticmethod
    async def list_all(db: AsyncSession) -> list[Employee]:
        result = await db.execute(select(Employee).order_by(Employee.name))
        return list(result.scalars().all())


# ═════════════════════════════════════════════════════════════════════
# ManagerRoster
# ═════════════════════════════════════════════════════════════════════


class ManagerRoster:
    """Ordered manager e-mails, cached for ``ttl_seconds``.

    The cache may be stale by up to the TTL; call ``invalidate`` after
    editing the roster table.
    """

    def __init__(
        self,
        ttl_seconds: int,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._cached: Optional[list[str]] = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    async def list(self, db: AsyncSession) -> list[str]:
        """Roster e-mails in roster order, de-duplicated, blanks dropped."""
        async with self._lock:
            if self._cached is not None and self._clock() < self._expires_at:
                return list(self._cached)

            result = await db.execute(select(Manager.email).order_by(Manager.id))
            seen: set[str] = set()
            managers: list[str] = []
            for (email,) in result.all():
                cleaned = str(email or "").strip()
                if not cleaned or cleaned.lower() in seen:
                    continue
                seen.add(cleaned.lower())
                managers.append(cleaned)

            self._cached = managers
            self._expires_at = self._clock() + self._ttl
            logger.debug("Manager roster refreshed (%d entries)", len(managers))
            return list(managers)

    async def is_manager(self, db: AsyncSession, email: Optional[str]) -> bool:
        search = normalize_key(email)
        if not search:
            return False
        return any(m.lower() == search for m in await self.list(db))

    def invalidate(self) -> None:
        self._cached = None
        self._expires_at = 0.0

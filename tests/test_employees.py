"""Employee directory lookups and the cached manager roster."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from vacation_portal.employees.models import Manager
from vacation_portal.employees.service import EmployeeDirectory, ManagerRoster
from tests.conftest import seed_employee, seed_manager


class TestEmployeeDirectory:

    async def test_find_by_email_or_name(self, db: AsyncSession, alice):
        assert (await EmployeeDirectory.find_by_name_or_email(db, " ALICE@example.com")).id == alice.id
        assert (await EmployeeDirectory.find_by_name_or_email(db, "alice smith")).id == alice.id

    async def test_blank_key(self, db: AsyncSession, alice):
        assert await EmployeeDirectory.find_by_name_or_email(db, "   ") is None
        assert await EmployeeDirectory.find_by_name_or_email(db, None) is None

    async def test_display_name_falls_back_to_email(self, db: AsyncSession):
        assert await EmployeeDirectory.resolve_display_name(db, "ghost@example.com") == "ghost@example.com"

    async def test_remaining_days_property(self, db: AsyncSession):
        emp = await seed_employee(db, email="x@example.com", name="X", allowance_total=12)
        emp.used_days = 4
        assert emp.remaining_days == 8
        emp.remaining_override = 1
        assert emp.remaining_days == 1


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestManagerRoster:

    async def test_roster_order_and_dedup(self, db: AsyncSession):
        await seed_manager(db, "first@example.com")
        await seed_manager(db, "  ")
        await seed_manager(db, "second@example.com")
        await seed_manager(db, "FIRST@example.com ")

        assert await ManagerRoster(0).list(db) == ["first@example.com", "second@example.com"]

    async def test_cached_until_ttl_expires(self, db: AsyncSession):
        clock = _Clock()
        roster = ManagerRoster(3600, clock=clock)
        await seed_manager(db, "first@example.com")
        assert await roster.list(db) == ["first@example.com"]

        await seed_manager(db, "second@example.com")
        clock.now = 3599
        assert await roster.list(db) == ["first@example.com"]

        clock.now = 3600
        assert await roster.list(db) == ["first@example.com", "second@example.com"]

    async def test_invalidate_forces_reload(self, db: AsyncSession):
        roster = ManagerRoster(3600, clock=_Clock())
        assert await roster.list(db) == []
        db.add(Manager(email="new@example.com"))
        await db.flush()
        roster.invalidate()
        assert await roster.list(db) == ["new@example.com"]

    async def test_is_manager_case_insensitive(self, db: AsyncSession, manager):
        roster = ManagerRoster(0)
        assert await roster.is_manager(db, " BOSS@example.com")
        assert not await roster.is_manager(db, "alice@example.com")
        assert not await roster.is_manager(db, "")

"""Vacation service layer — request lifecycle, row processing, side effects.

Business logic:
  - Create / edit / cancel / decide, each serialised by the transaction lock
  - Row processing after every create and edit: business days, team and
    duplicate checks, requester and manager notices
  - State-change side effects: calendar event upkeep and status e-mails
  - Employee summary, dashboards and the pending-request reminder digest

Every mutation checks identity, then the per-action throttle, then takes
the lock; validation, writes, side effects, the ledger recompute and the
commit all happen while the lock is held.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vacation_portal.common.constants import (
    ACTION_CANCEL,
    ACTION_CREATE,
    ACTION_DECIDE,
    ACTION_EDIT,
    ACTIVE_STATUSES,
    CALENDAR_TITLE,
    CALENDAR_TITLE_EXCEPTION,
    DUPLICATE_REQUEST_NOTE,
    INVALID_DATA_NOTE,
    OPEN_STATUSES,
    Decision,
    RequestStatus,
    UserRole,
)
from vacation_portal.common.dates import count_business_days, end_exclusive, normalize_to_day
from vacation_portal.common.exceptions import (
    CalendarError,
    ConflictError,
    ForbiddenException,
    InsufficientBalanceException,
    InvalidStateTransitionException,
    NotFoundException,
    UnauthenticatedException,
    ValidationException,
)
from vacation_portal.common.locking import TransactionLock
from vacation_portal.common.rate_limit import ActionRateLimiter
from vacation_portal.config import Settings, settings
from vacation_portal.employees.models import Employee
from vacation_portal.employees.service import EmployeeDirectory, ManagerRoster, normalize_key
from vacation_portal.notifications.schemas import NotificationReport
from vacation_portal.notifications.service import ComposedMessage, VacationNotifier
from vacation_portal.team_calendar.adapter import CalendarAdapter
from vacation_portal.vacations.conflicts import ConflictDetector
from vacation_portal.vacations.ledger import BalanceLedger
from vacation_portal.vacations.models import VacationRequest
from vacation_portal.vacations.schemas import (
    BalanceStats,
    DashboardEntry,
    DashboardOut,
    EmployeeSummaryOut,
    ReminderResult,
    RequestResult,
    VacationRequestOut,
)

logger = logging.getLogger(__name__)

DateInput = Union[date, datetime, str]


# ═════════════════════════════════════════════════════════════════════
# VacationService
# ═════════════════════════════════════════════════════════════════════


class VacationService:
    """Async vacation request lifecycle bound to its collaborators."""

    def __init__(
        self,
        *,
        notifier: VacationNotifier,
        calendar: CalendarAdapter,
        roster: ManagerRoster,
        lock: TransactionLock,
        rate_limiter: ActionRateLimiter,
        config: Settings = settings,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.notifier = notifier
        self.calendar = calendar
        self.roster = roster
        self.lock = lock
        self.rate_limiter = rate_limiter
        self.config = config
        self.today = today

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _require_identity(identity: Optional[str]) -> str:
        email = str(identity or "").strip()
        if not email:
            raise UnauthenticatedException()
        return email

    @staticmethod
    def _parse_day(value: DateInput, field: str) -> date:
        try:
            return normalize_to_day(value)
        except ValueError:
            raise ValidationException(f"Invalid {field}: {value!r}", field=field) from None

    def _validate_dates(self, start: date, end: date) -> None:
        if end < start:
            raise ValidationException("End date must be on or after start date.")
        span = (end - start).days + 1
        if span > self.config.MAX_REQUEST_DAYS:
            raise ValidationException(
                f"A request may cover at most {self.config.MAX_REQUEST_DAYS} days.",
                field="end_date",
            )
        today = self.today()
        if start < today:
            raise ValidationException("Cannot request vacation for past dates.", field="start_date")
        notice = self.config.MIN_ADVANCE_DAYS
        if self.config.ENFORCE_MIN_ADVANCE_DAYS and notice > 0:
            if (start - today).days < notice:
                raise ValidationException(
                    f"Requests must be submitted at least {notice} days in advance.",
                    field="start_date",
                )

    @staticmethod
    async def _get_request(db: AsyncSession, request_id: int) -> VacationRequest:
        row = await db.get(VacationRequest, request_id)
        if row is None:
            raise NotFoundException("Vacation request", request_id)
        return row

    @staticmethod
    def _is_owner(row: VacationRequest, email: str) -> bool:
        return normalize_key(row.requester_email) == normalize_key(email)

    @staticmethod
    async def _requester_team(db: AsyncSession, row: VacationRequest) -> Optional[str]:
        employee: Optional[Employee] = None
        if row.employee_id is not None:
            employee = await db.get(Employee, row.employee_id)
        if employee is None:
            employee = await EmployeeDirectory.find_by_name_or_email(db, row.requester_email)
        return employee.team if employee else None

    async def _finish(
        self,
        db: AsyncSession,
        row: VacationRequest,
        report: NotificationReport,
    ) -> RequestResult:
        """Recompute the ledger, snapshot the row and commit."""
        await BalanceLedger.recompute_used_days(db)
        await db.flush()
        result = RequestResult(
            request=VacationRequestOut.model_validate(row),
            notifications=report,
        )
        await db.commit()
        if report.partial_failure:
            logger.warning("Request #%s saved with side-effect failures: %s", row.id, report)
        return result

    # ─────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────

    async def get_employee_summary(
        self,
        db: AsyncSession,
        identity: Optional[str],
    ) -> EmployeeSummaryOut:
        """Name, role, team and balance of the calling user."""
        email = self._require_identity(identity)
        employee = await EmployeeDirectory.find_by_name_or_email(db, email)
        totals = await BalanceLedger.compute_totals(db, email)
        is_manager = await self.roster.is_manager(db, email)

        team = (employee.team or "").strip() if employee else ""
        return EmployeeSummaryOut(
            email=email,
            name=employee.name.strip() if employee and employee.name.strip() else email,
            role=UserRole.manager if is_manager else UserRole.employee,
            team=team or self.config.DEFAULT_TEAM,
            stats=BalanceStats(total=totals.total, used=totals.used, remaining=totals.remaining),
        )

    @staticmethod
    async def _list_entries(db: AsyncSession, *criteria, newest_first: bool = False) -> list[DashboardEntry]:
        order = VacationRequest.start_date.desc() if newest_first else VacationRequest.start_date
        result = await db.execute(
            select(VacationRequest, Employee.team)
            .outerjoin(Employee, VacationRequest.employee_id == Employee.id)
            .where(*criteria)
            .order_by(order, VacationRequest.id)
        )
        return [
            DashboardEntry(
                id=row.id,
                employee=row.requester_name,
                team=team,
                email=row.requester_email,
                start_date=row.start_date,
                end_date=row.end_date,
                status=row.status,
                business_days=row.business_days,
                note=row.note,
            )
            for row, team in result.all()
        ]

    async def get_dashboard(
        self,
        db: AsyncSession,
        identity: Optional[str],
    ) -> DashboardOut:
        """Own requests for everyone; open and active boards for managers."""
        user = await self.get_employee_summary(db, identity)
        dashboard = DashboardOut(
            user=user,
            requests=await self._list_entries(
                db,
                func.lower(func.trim(VacationRequest.requester_email)) == normalize_key(user.email),
                newest_first=True,
            ),
        )
        if user.role == UserRole.manager:
            dashboard.pending = await self._list_entries(
                db, VacationRequest.status.in_(list(OPEN_STATUSES)),
            )
            dashboard.all_requests = await self._list_entries(
                db, VacationRequest.status.in_(list(ACTIVE_STATUSES)),
            )
        return dashboard

    # ─────────────────────────────────────────────────────────────────
    # Create / Edit
    # ─────────────────────────────────────────────────────────────────

    async def create_request(
        self,
        db: AsyncSession,
        identity: Optional[str],
        start: DateInput,
        end: DateInput,
    ) -> RequestResult:
        """Submit a new request for [start, end] on behalf of ``identity``."""
        email = self._require_identity(identity)
        self.rate_limiter.check(email, ACTION_CREATE)

        async with self.lock.hold(self.config.CREATE_LOCK_TIMEOUT_SECONDS):
            start_day = self._parse_day(start, "start_date")
            end_day = self._parse_day(end, "end_date")
            self._validate_dates(start_day, end_day)

            overlap = await ConflictDetector.find_self_overlap(db, email, start_day, end_day)
            if overlap is not None:
                raise ConflictError(conflicting_id=overlap.request_id)

            employee = await EmployeeDirectory.find_by_name_or_email(db, email)
            row = VacationRequest(
                requester_email=email,
                requester_name=await EmployeeDirectory.resolve_display_name(db, email),
                employee_id=employee.id if employee else None,
                start_date=start_day,
                end_date=end_day,
                status=RequestStatus.pending,
            )
            db.add(row)
            await db.flush()

            report = NotificationReport()
            await self._process_row(db, row, report)
            logger.info(
                "Request #%s created by %s (%s..%s) -> %s",
                row.id, email, start_day, end_day, row.status.value,
            )
            return await self._finish(db, row, report)

    async def edit_request(
        self,
        db: AsyncSession,
        identity: Optional[str],
        request_id: int,
        start: DateInput,
        end: DateInput,
    ) -> RequestResult:
        """Move an open request to new dates; it goes back to pending."""
        email = self._require_identity(identity)
        self.rate_limiter.check(email, ACTION_EDIT)

        async with self.lock.hold(self.config.LOCK_TIMEOUT_SECONDS):
            row = await self._get_request(db, request_id)
            if not self._is_owner(row, email):
                raise ForbiddenException("You can only edit your own requests.")
            if row.status not in OPEN_STATUSES:
                raise InvalidStateTransitionException(
                    f"Only pending requests can be edited (current status: {row.status.label})."
                )

            start_day = self._parse_day(start, "start_date")
            end_day = self._parse_day(end, "end_date")
            self._validate_dates(start_day, end_day)

            overlap = await ConflictDetector.find_self_overlap(
                db, email, start_day, end_day, exclude_id=row.id,
            )
            if overlap is not None:
                raise ConflictError(
                    "These dates overlap with another of your requests.",
                    conflicting_id=overlap.request_id,
                )

            row.start_date = start_day
            row.end_date = end_day
            row.status = RequestStatus.pending
            row.note = None
            row.business_days = None
            await db.flush()

            report = NotificationReport()
            await self._process_row(db, row, report)
            logger.info(
                "Request #%s edited by %s (%s..%s) -> %s",
                row.id, email, start_day, end_day, row.status.value,
            )
            return await self._finish(db, row, report)

    # ─────────────────────────────────────────────────────────────────
    # Cancel / Decide
    # ─────────────────────────────────────────────────────────────────

    async def cancel_request(
        self,
        db: AsyncSession,
        identity: Optional[str],
        request_id: int,
    ) -> RequestResult:
        """Withdraw an open request (its owner or any manager)."""
        email = self._require_identity(identity)
        self.rate_limiter.check(email, ACTION_CANCEL)

        async with self.lock.hold(self.config.LOCK_TIMEOUT_SECONDS):
            row = await self._get_request(db, request_id)
            if not self._is_owner(row, email) and not await self.roster.is_manager(db, email):
                raise ForbiddenException("You can only cancel your own requests.")
            if row.status not in OPEN_STATUSES:
                label = row.status.label if row.status else "Unknown"
                raise InvalidStateTransitionException(
                    f"Cannot cancel a request with status '{label}'."
                )

            row.status = RequestStatus.cancelled
            report = NotificationReport()
            await self._apply_status_change(db, row, report)
            logger.info("Request #%s cancelled by %s", row.id, email)
            return await self._finish(db, row, report)

    async def decide_request(
        self,
        db: AsyncSession,
        identity: Optional[str],
        request_id: int,
        decision: Union[Decision, str],
    ) -> RequestResult:
        """Record a manager's approval, exception approval or rejection."""
        email = self._require_identity(identity)
        try:
            decision = Decision(decision)
        except ValueError:
            raise ValidationException(f"Unknown decision: {decision!r}", field="decision") from None
        if not await self.roster.is_manager(db, email):
            raise ForbiddenException("Only managers can decide on requests.")
        self.rate_limiter.check(email, ACTION_DECIDE)

        async with self.lock.hold(self.config.LOCK_TIMEOUT_SECONDS):
            row = await self._get_request(db, request_id)
            if row.status not in OPEN_STATUSES:
                label = row.status.label if row.status else "Unknown"
                raise InvalidStateTransitionException(
                    f"Request #{row.id} is already '{label}'."
                )

            if decision == Decision.approved and self.config.ENFORCE_BALANCE_BEFORE_APPROVAL:
                await BalanceLedger.recompute_used_days(db)
                totals = await BalanceLedger.compute_totals(db, row.requester_email)
                requested = row.business_days or 0
                if totals.remaining - requested < 0:
                    raise InsufficientBalanceException(totals.remaining, requested)

            row.status = decision.status
            report = NotificationReport()
            await self._apply_status_change(db, row, report)
            logger.info("Request #%s %s by %s", row.id, row.status.value, email)
            return await self._finish(db, row, report)

    # ─────────────────────────────────────────────────────────────────
    # Reminders
    # ─────────────────────────────────────────────────────────────────

    async def send_pending_reminders(self, db: AsyncSession) -> ReminderResult:
        """Mail the roster a digest of undecided requests starting soon."""
        today = self.today()
        horizon = today + timedelta(days=self.config.REMINDER_DAYS_BEFORE)
        result = await db.execute(
            select(VacationRequest)
            .where(
                VacationRequest.status.in_(list(OPEN_STATUSES)),
                VacationRequest.start_date >= today,
                VacationRequest.start_date <= horizon,
            )
            .order_by(VacationRequest.start_date, VacationRequest.id)
        )
        rows = list(result.scalars().all())
        if not rows:
            logger.info("No pending requests within %d days", self.config.REMINDER_DAYS_BEFORE)
            return ReminderResult()

        delivery = await self.notifier.pending_reminder(db, rows, self.config.REMINDER_DAYS_BEFORE)
        logger.info("Reminder digest for %d request(s) sent", len(rows))
        return ReminderResult(
            requests=len(rows),
            managers_notified=delivery.delivered if delivery else None,
        )

    # ─────────────────────────────────────────────────────────────────
    # Row processing / side effects
    # ─────────────────────────────────────────────────────────────────

    async def _process_row(
        self,
        db: AsyncSession,
        row: VacationRequest,
        report: NotificationReport,
    ) -> None:
        """Derive business days, flag conflicts and send the submission notices."""
        if row.status is None:
            row.status = RequestStatus.pending

        if (
            not (row.requester_name or "").strip()
            or row.start_date is None
            or row.end_date is None
            or row.end_date < row.start_date
        ):
            row.note = INVALID_DATA_NOTE
            row.business_days = None
            await db.flush()
            logger.warning("Request #%s has invalid data; skipped", row.id)
            return

        try:
            row.business_days = count_business_days(row.start_date, row.end_date)
            team = await self._requester_team(db, row)

            team_overlap = await ConflictDetector.find_team_overlap(
                db, row.requester_email, team, row.start_date, row.end_date, exclude_id=row.id,
            )
            self_overlap = None
            if team_overlap is None:
                self_overlap = await ConflictDetector.find_self_overlap(
                    db, row.requester_email, row.start_date, row.end_date, exclude_id=row.id,
                )

            manager_notice: Optional[ComposedMessage] = None
            if team_overlap is not None:
                row.status = RequestStatus.needs_review
                row.note = (
                    f"Conflict with {team_overlap.employee_name} "
                    f"({team_overlap.status.label})"
                )
                report.user_notified = await self.notifier.request_under_review(row, team_overlap)
                manager_notice = self.notifier.compose_conflict(row, team or "", team_overlap)
            elif self_overlap is not None:
                # Duplicate of the requester's own request: flagged silently
                row.status = RequestStatus.needs_review
                row.note = DUPLICATE_REQUEST_NOTE
            else:
                manager_notice = self.notifier.compose_new_request(
                    row, (team or "").strip() or self.config.DEFAULT_TEAM,
                )
                report.user_notified = await self.notifier.request_received(row)

            if manager_notice is not None:
                report.managers_notified = await self.notifier.notify_managers(db, manager_notice)
            await db.flush()
        except Exception:
            logger.exception("Row processing failed for request #%s", row.id)
            raise

    async def _apply_status_change(
        self,
        db: AsyncSession,
        row: VacationRequest,
        report: NotificationReport,
    ) -> None:
        """Bring the calendar and the requester in line with ``row.status``."""
        if row.is_approved:
            title_format = (
                CALENDAR_TITLE_EXCEPTION
                if row.status == RequestStatus.approved_exception
                else CALENDAR_TITLE
            )
            title = title_format.format(name=row.requester_name)
            try:
                end = end_exclusive(row.end_date)
                existing = None
                if row.calendar_event_ref:
                    existing = await self.calendar.find_by_id(row.calendar_event_ref)
                if existing is not None:
                    await self.calendar.update_event(existing.event_id, title, row.start_date, end)
                else:
                    row.calendar_event_ref = await self.calendar.create_all_day_event(
                        title, row.start_date, end,
                    )
            except (CalendarError, OverflowError) as exc:
                logger.warning("Calendar event for request #%s failed: %s", row.id, exc)
                report.calendar_error = str(exc)
            report.user_notified = await self.notifier.request_approved(row)

        elif row.status in (RequestStatus.rejected, RequestStatus.cancelled):
            if row.calendar_event_ref:
                try:
                    await self.calendar.delete_event(row.calendar_event_ref)
                except CalendarError as exc:
                    logger.warning(
                        "Could not delete calendar event %s for request #%s: %s",
                        row.calendar_event_ref, row.id, exc,
                    )
                    report.calendar_error = str(exc)
                row.calendar_event_ref = None
            report.user_notified = await self.notifier.status_changed(row)

        await db.flush()

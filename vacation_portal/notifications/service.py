"""Notification service — composes vacation e-mails and dispatches them via the Mailer.

Templates live in ``notifications/templates`` and are rendered with jinja2.
Manager notices go to the whole roster: the first manager is the primary
recipient and the rest are copied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape
from sqlalchemy.ext.asyncio import AsyncSession

from vacation_portal.common.constants import DATE_FORMAT, RequestStatus
from vacation_portal.employees.service import ManagerRoster
from vacation_portal.notifications.mailer import Mailer
from vacation_portal.notifications.schemas import DeliveryResult
from vacation_portal.vacations.conflicts import TeamOverlap
from vacation_portal.vacations.models import VacationRequest

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)


def render_email(template_name: str, *, title: str, **context: Any) -> str:
    """Render one of the HTML e-mail templates inside the shared layout."""
    return _env.get_template(template_name).render(title=title, **context)


def fmt_date(value: Optional[date]) -> str:
    return value.strftime(DATE_FORMAT) if value else "—"


@dataclass(frozen=True)
class ComposedMessage:
    subject: str
    html_body: str


class VacationNotifier:
    """Builds and sends every vacation e-mail."""

    def __init__(
        self,
        mailer: Mailer,
        roster: ManagerRoster,
        *,
        portal_url: str = "",
    ) -> None:
        self.mailer = mailer
        self.roster = roster
        self.portal_url = portal_url

    def _request_context(self, request: VacationRequest) -> dict[str, Any]:
        return {
            "employee": request.requester_name,
            "start": fmt_date(request.start_date),
            "end": fmt_date(request.end_date),
            "days": request.business_days or 0,
            "action_url": self.portal_url or None,
        }

    async def _send_to_requester(
        self,
        request: VacationRequest,
        subject: str,
        html_body: str,
    ) -> Optional[DeliveryResult]:
        if not request.requester_email:
            return None
        return await self.mailer.send(request.requester_email, subject, html_body)

    # ── Manager notices ─────────────────────────────────────────────

    def compose_new_request(self, request: VacationRequest, team: str) -> ComposedMessage:
        return ComposedMessage(
            subject=f"[Vacation] New Request - {request.requester_name}",
            html_body=render_email(
                "manager_new_request.html",
                title="New Vacation Request",
                team=team,
                **self._request_context(request),
            ),
        )

    def compose_conflict(
        self,
        request: VacationRequest,
        team: str,
        overlap: TeamOverlap,
    ) -> ComposedMessage:
        return ComposedMessage(
            subject=f"[Vacation] Conflict - {request.requester_name} ({team})",
            html_body=render_email(
                "manager_conflict.html",
                title="Coverage Conflict Detected",
                team=team,
                conflict_with=overlap.employee_name,
                conflict_status=overlap.status.label,
                **self._request_context(request),
            ),
        )

    async def notify_managers(
        self,
        db: AsyncSession,
        message: ComposedMessage,
    ) -> DeliveryResult:
        managers = await self.roster.list(db)
        if not managers:
            logger.warning("No managers on the roster; %r not sent", message.subject)
            return DeliveryResult(delivered=False, error="No managers found")
        primary, copied = managers[0], managers[1:]
        return await self.mailer.send(primary, message.subject, message.html_body, cc=copied)

    # ── Requester notices ───────────────────────────────────────────

    async def request_received(self, request: VacationRequest) -> Optional[DeliveryResult]:
        body = render_email(
            "request_received.html",
            title="Request Received",
            **self._request_context(request),
        )
        return await self._send_to_requester(request, "Request Received", body)

    async def request_under_review(
        self,
        request: VacationRequest,
        overlap: TeamOverlap,
    ) -> Optional[DeliveryResult]:
        body = render_email(
            "request_under_review.html",
            title="Action Required: Coverage Conflict",
            conflict_with=overlap.employee_name,
            **self._request_context(request),
        )
        return await self._send_to_requester(request, "Request Under Review", body)

    async def request_approved(self, request: VacationRequest) -> Optional[DeliveryResult]:
        body = render_email(
            "request_approved.html",
            title="Approved",
            **self._request_context(request),
        )
        return await self._send_to_requester(request, "Vacation Approved", body)

    async def status_changed(self, request: VacationRequest) -> Optional[DeliveryResult]:
        label = request.status.label if request.status else RequestStatus.pending.label
        body = render_email(
            "status_changed.html",
            title=f"Request {label}",
            status=label,
            **self._request_context(request),
        )
        return await self._send_to_requester(request, f"Request {label}", body)

    # ── Reminder digest ─────────────────────────────────────────────

    async def pending_reminder(
        self,
        db: AsyncSession,
        requests: Sequence[VacationRequest],
        days_ahead: int,
    ) -> Optional[DeliveryResult]:
        if not requests:
            return None
        items = [
            {
                "employee": r.requester_name,
                "start": fmt_date(r.start_date),
                "end": fmt_date(r.end_date),
                "days": r.business_days or 0,
                "status": r.status.label if r.status else "",
            }
            for r in requests
        ]
        message = ComposedMessage(
            subject=f"[Vacation] {len(items)} request(s) awaiting decision",
            html_body=render_email(
                "pending_reminder.html",
                title="Pending Requests Reminder",
                items=items,
                days_ahead=days_ahead,
                action_url=self.portal_url or None,
            ),
        )
        return await self.notify_managers(db, message)

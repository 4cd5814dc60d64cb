"""Team calendar — the ``CalendarAdapter`` capability and its backends.

Events are all-day: ``end`` is exclusive, one day after the last day off.
Adapters raise ``CalendarError`` on failure; the lifecycle engine catches it
and reports it rather than failing the mutation.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional, Protocol

import httpx

from vacation_portal.common.exceptions import CalendarError
from vacation_portal.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class CalendarEvent:
    event_id: str
    title: str
    start: date
    end: date  # exclusive


class CalendarAdapter(Protocol):
    async def create_all_day_event(self, title: str, start: date, end: date) -> str:
        ...

    async def update_event(self, event_id: str, title: str, start: date, end: date) -> None:
        ...

    async def delete_event(self, event_id: str) -> None:
        ...

    async def find_by_id(self, event_id: str) -> Optional[CalendarEvent]:
        ...


# ═════════════════════════════════════════════════════════════════════
# In-memory backend (development and tests)
# ═════════════════════════════════════════════════════════════════════


class InMemoryCalendarAdapter:
    """Keeps events in a dict. ``fail_with`` makes every call raise."""

    def __init__(self) -> None:
        self.events: dict[str, CalendarEvent] = {}
        self.fail_with: Optional[str] = None
        self._ids = itertools.count(1)

    def _check(self) -> None:
        if self.fail_with:
            raise CalendarError(self.fail_with)

    async def create_all_day_event(self, title: str, start: date, end: date) -> str:
        self._check()
        event_id = f"evt-{next(self._ids)}"
        self.events[event_id] = CalendarEvent(event_id, title, start, end)
        return event_id

    async def update_event(self, event_id: str, title: str, start: date, end: date) -> None:
        self._check()
        if event_id not in self.events:
            raise CalendarError(f"Event {event_id} not found")
        self.events[event_id] = CalendarEvent(event_id, title, start, end)

    async def delete_event(self, event_id: str) -> None:
        self._check()
        self.events.pop(event_id, None)

    async def find_by_id(self, event_id: str) -> Optional[CalendarEvent]:
        self._check()
        return self.events.get(event_id)


# ═════════════════════════════════════════════════════════════════════
# Google Calendar v3 REST backend
# ═════════════════════════════════════════════════════════════════════


class GoogleCalendarAdapter:
    """All-day events on one shared Google calendar via the v3 REST API."""

    def __init__(
        self,
        *,
        calendar_id: str,
        token: str,
        base_url: str = "https://www.googleapis.com/calendar/v3",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.calendar_id = calendar_id
        self._base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {token}"}
        self._timeout = timeout
        self._transport = transport

    def _events_url(self, event_id: Optional[str] = None) -> str:
        url = f"{self._base_url}/calendars/{self.calendar_id}/events"
        return f"{url}/{event_id}" if event_id else url

    @staticmethod
    def _body(title: str, start: date, end: date) -> dict[str, Any]:
        return {
            "summary": title,
            "start": {"date": start.isoformat()},
            "end": {"date": end.isoformat()},
        }

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                headers=self._headers,
                transport=self._transport,
            ) as client:
                resp = await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise CalendarError(f"Calendar request failed: {exc}") from exc
        return resp

    async def create_all_day_event(self, title: str, start: date, end: date) -> str:
        resp = await self._request("POST", self._events_url(), json=self._body(title, start, end))
        if resp.status_code not in (200, 201):
            raise CalendarError(f"Calendar create failed ({resp.status_code}): {resp.text}")
        try:
            event_id = resp.json().get("id")
        except (AttributeError, ValueError) as exc:
            raise CalendarError(f"Calendar create returned an unreadable body: {exc}") from exc
        if not event_id:
            raise CalendarError("Calendar create returned no event id")
        logger.info("Calendar event %s created: %s", event_id, title)
        return event_id

    async def update_event(self, event_id: str, title: str, start: date, end: date) -> None:
        resp = await self._request(
            "PATCH", self._events_url(event_id), json=self._body(title, start, end),
        )
        if resp.status_code != 200:
            raise CalendarError(f"Calendar update failed ({resp.status_code}): {resp.text}")

    async def delete_event(self, event_id: str) -> None:
        resp = await self._request("DELETE", self._events_url(event_id))
        # 404/410: already gone
        if resp.status_code not in (200, 204, 404, 410):
            raise CalendarError(f"Calendar delete failed ({resp.status_code}): {resp.text}")

    async def find_by_id(self, event_id: str) -> Optional[CalendarEvent]:
        resp = await self._request("GET", self._events_url(event_id))
        if resp.status_code in (404, 410):
            return None
        if resp.status_code != 200:
            raise CalendarError(f"Calendar lookup failed ({resp.status_code}): {resp.text}")
        try:
            data = resp.json()
            if data.get("status") == "cancelled":
                return None
            # Timed events carry "dateTime" instead of "date"
            return CalendarEvent(
                event_id=data["id"],
                title=data.get("summary", ""),
                start=date.fromisoformat(data["start"]["date"]),
                end=date.fromisoformat(data["end"]["date"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise CalendarError(f"Calendar event {event_id} is not an all-day event: {exc!r}") from exc


def build_calendar_adapter(config: Settings) -> CalendarAdapter:
    """Pick the calendar backend named by ``CALENDAR_BACKEND``."""
    if config.CALENDAR_BACKEND == "google":
        return GoogleCalendarAdapter(
            calendar_id=config.GOOGLE_CALENDAR_ID,
            token=config.GOOGLE_CALENDAR_TOKEN,
            base_url=config.GOOGLE_CALENDAR_BASE_URL,
        )
    if config.CALENDAR_BACKEND != "memory":
        logger.warning("Unknown CALENDAR_BACKEND %r, using in-memory calendar", config.CALENDAR_BACKEND)
    return InMemoryCalendarAdapter()

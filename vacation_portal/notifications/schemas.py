"""Notification Pydantic v2 schemas — delivery outcomes reported to callers."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, computed_field


class DeliveryResult(BaseModel):
    """Outcome of one ``Mailer.send`` call."""

    delivered: bool = False
    error: Optional[str] = None


class NotificationReport(BaseModel):
    """Side-effect outcomes of a mutation.

    ``None`` means nothing was attempted on that channel.
    """

    user_notified: Optional[DeliveryResult] = None
    managers_notified: Optional[DeliveryResult] = None
    calendar_error: Optional[str] = None

    @computed_field  # type: ignore[misc]
    @property
    def partial_failure(self) -> bool:
        failed_mail = any(
            result is not None and not result.delivered
            for result in (self.user_notified, self.managers_notified)
        )
        return failed_mail or self.calendar_error is not None

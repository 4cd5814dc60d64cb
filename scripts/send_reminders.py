#!/usr/bin/env python3
"""Pending-request reminder — mail managers a digest of undecided requests.

Lists pending / needs-review requests starting within REMINDER_DAYS_BEFORE
days and sends one digest to the manager roster.

Designed to run once a day:
    0 8 * * 1-5

Usage:
    python scripts/send_reminders.py               # send the digest
    python scripts/send_reminders.py --days 14     # override the look-ahead window

Requires .env at project root (DATABASE_URL, JWT_SECRET, MAIL_* / SMTP_*).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# ── Path setup ────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from vacation_portal.config import settings  # noqa: E402
from vacation_portal.database import async_session_factory, engine  # noqa: E402
from vacation_portal.main import LOG_FORMAT, build_vacation_service  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("send_reminders")


async def run(days: int) -> int:
    config = settings.model_copy(update={"REMINDER_DAYS_BEFORE": days})
    service = build_vacation_service(config)
    try:
        async with async_session_factory() as db:
            result = await service.send_pending_reminders(db)
    finally:
        await engine.dispose()

    if result.requests and not result.managers_notified:
        logger.error("Digest for %d request(s) was not delivered", result.requests)
        return 1
    logger.info("Done: %d request(s) in digest", result.requests)
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Mail managers a digest of vacation requests awaiting a decision",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=settings.REMINDER_DAYS_BEFORE,
        help=f"Look-ahead window in days (default: {settings.REMINDER_DAYS_BEFORE})",
    )
    args = parser.parse_args()
    sys.exit(asyncio.run(run(args.days)))


if __name__ == "__main__":
    main()

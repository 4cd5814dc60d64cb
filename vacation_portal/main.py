"""Vacation Portal — FastAPI Application Factory."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from vacation_portal.common.exceptions import register_exception_handlers
from vacation_portal.common.locking import TransactionLock
from vacation_portal.common.rate_limit import ActionRateLimiter, limiter
from vacation_portal.config import Settings, settings
from vacation_portal.database import engine
from vacation_portal.employees.service import ManagerRoster
from vacation_portal.notifications.mailer import build_mailer
from vacation_portal.notifications.service import VacationNotifier
from vacation_portal.team_calendar.adapter import build_calendar_adapter
from vacation_portal.vacations.router import router as vacations_router
from vacation_portal.vacations.service import VacationService

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(level: str = settings.LOG_LEVEL) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def build_vacation_service(config: Settings = settings) -> VacationService:
    """Wire the lifecycle engine to the backends named in ``config``."""
    roster = ManagerRoster(config.MANAGER_CACHE_TTL_SECONDS)
    return VacationService(
        notifier=VacationNotifier(build_mailer(config), roster, portal_url=config.PORTAL_URL),
        calendar=build_calendar_adapter(config),
        roster=roster,
        lock=TransactionLock(),
        rate_limiter=ActionRateLimiter(config.rate_limit_rules),
        config=config,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    logger.info("Vacation portal starting (%s)", settings.ENVIRONMENT)
    yield
    await engine.dispose()


def create_app(service: Optional[VacationService] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging()

    app = FastAPI(
        title="Vacation Portal",
        description="Vacation requests, team conflict checks and approvals",
        version="1.0.0",
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )
    app.state.vacation_service = service or build_vacation_service()

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": "1.0.0",
            "environment": settings.ENVIRONMENT,
        }

    app.include_router(vacations_router, prefix="/api/v1/vacations", tags=["vacations"])

    return app


app = create_app()

"""Shared FastAPI dependencies."""

from fastapi import Request

from vacation_portal.vacations.service import VacationService


def get_vacation_service(request: Request) -> VacationService:
    """The service instance wired up by ``create_app``."""
    return request.app.state.vacation_service

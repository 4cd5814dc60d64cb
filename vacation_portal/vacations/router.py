"""Vacations router — summary, dashboard, submit, edit, cancel, decide.

All endpoints require a bearer token. Decisions are restricted to the
manager roster inside the service layer.
"""


from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from vacation_portal.auth.dependencies import get_current_identity
from vacation_portal.database import get_db
from vacation_portal.dependencies import get_vacation_service
from vacation_portal.vacations.schemas import (
    DashboardOut,
    DecisionRequest,
    EmployeeSummaryOut,
    RequestResult,
    VacationRequestCreate,
    VacationRequestUpdate,
)
from vacation_portal.vacations.service import VacationService

router = APIRouter(prefix="", tags=["vacations"])


# ── GET /me ─────────────────────────────────────────────────────────

@router.get("/me", response_model=EmployeeSummaryOut)
async def get_me(
    identity: str = Depends(get_current_identity),
    service: VacationService = Depends(get_vacation_service),
    db: AsyncSession = Depends(get_db),
):
    """Name, role, team and balance of the caller."""
    return await service.get_employee_summary(db, identity)


# ── GET /dashboard ──────────────────────────────────────────────────

@router.get("/dashboard", response_model=DashboardOut)
async def get_dashboard(
    identity: str = Depends(get_current_identity),
    service: VacationService = Depends(get_vacation_service),
    db: AsyncSession = Depends(get_db),
):
    """Own requests; managers also get the open and active boards."""
    return await service.get_dashboard(db, identity)


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", response_model=RequestResult, status_code=status.HTTP_201_CREATED)
async def create_request(
    body: VacationRequestCreate,
    identity: str = Depends(get_current_identity),
    service: VacationService = Depends(get_vacation_service),
    db: AsyncSession = Depends(get_db),
):
    return await service.create_request(db, identity, body.start_date, body.end_date)


# ── PUT /requests/{request_id} ──────────────────────────────────────

@router.put("/requests/{request_id}", response_model=RequestResult)
async def edit_request(
    request_id: int,
    body: VacationRequestUpdate,
    identity: str = Depends(get_current_identity),
    service: VacationService = Depends(get_vacation_service),
    db: AsyncSession = Depends(get_db),
):
    return await service.edit_request(db, identity, request_id, body.start_date, body.end_date)


# ── POST /requests/{request_id}/cancel ──────────────────────────────

@router.post("/requests/{request_id}/cancel", response_model=RequestResult)
async def cancel_request(
    request_id: int,
    identity: str = Depends(get_current_identity),
    service: VacationService = Depends(get_vacation_service),
    db: AsyncSession = Depends(get_db),
):
    return await service.cancel_request(db, identity, request_id)


# ── PUT /requests/{request_id}/decision ─────────────────────────────

@router.put("/requests/{request_id}/decision", response_model=RequestResult)
async def decide_request(
    request_id: int,
    body: DecisionRequest,
    identity: str = Depends(get_current_identity),
    service: VacationService = Depends(get_vacation_service),
    db: AsyncSession = Depends(get_db),
):
    """Approve, approve as exception, or reject (managers only)."""
    return await service.decide_request(db, identity, request_id, body.decision)

"""Custom exceptions and RFC 7807 Problem Detail error handlers."""

from __future__ import annotations

import math
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

BASE_ERROR_URI = "https://vacations.local/errors"


# ── Exception hierarchy ─────────────────────────────────────────────

class AppException(Exception):
    """Base for all application exceptions → RFC 7807 JSON."""

    def __init__(
        self,
        status_code: int,
        error_type: str,
        title: str,
        detail: str,
        errors: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.title = title
        self.detail = detail
        self.errors = errors
        self.headers = headers
        super().__init__(detail)


class UnauthenticatedException(AppException):
    """401 — no verified identity."""

    def __init__(
        self,
        detail: str = "User not identified. Please sign in.",
    ) -> None:
        super().__init__(
            status_code=401,
            error_type="unauthenticated",
            title="Unauthenticated",
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenException(AppException):
    """403 — insufficient permissions."""

    def __init__(
        self,
        detail: str = "You do not have permission to perform this action.",
    ) -> None:
        super().__init__(
            status_code=403,
            error_type="forbidden",
            title="Forbidden",
            detail=detail,
        )


class NotFoundException(AppException):
    """404 — entity not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            status_code=404,
            error_type="not-found",
            title=f"{entity_type} Not Found",
            detail=f"{entity_type} with id '{entity_id}' does not exist.",
        )


class ValidationException(AppException):
    """422 — business-logic validation failures."""

    def __init__(self, detail: str, *, field: str = "dates") -> None:
        super().__init__(
            status_code=422,
            error_type="validation-error",
            title="Validation Error",
            detail=detail,
            errors={field: [detail]},
        )


class ConflictError(AppException):
    """409 — the requester already holds overlapping time off."""

    def __init__(
        self,
        detail: str = "You already have a request for these dates.",
        *,
        conflicting_id: Optional[int] = None,
    ) -> None:
        super().__init__(
            status_code=409,
            error_type="conflict",
            title="Conflict",
            detail=detail,
            errors={"conflicting_request_id": [str(conflicting_id)]} if conflicting_id else None,
        )


class InsufficientBalanceException(AppException):
    """422 — approving would drive the remaining balance negative."""

    def __init__(self, remaining: int, requested: int) -> None:
        self.remaining = remaining
        self.requested = requested
        super().__init__(
            status_code=422,
            error_type="insufficient-balance",
            title="Insufficient Balance",
            detail=(
                f"Insufficient balance. Employee has {remaining} days left, "
                f"but requested {requested}. Use 'Approved (Exception)' to override."
            ),
        )


class InvalidStateTransitionException(AppException):
    """409 — the request's current status does not allow the operation."""

    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=409,
            error_type="invalid-state-transition",
            title="Invalid State Transition",
            detail=detail,
        )


class BusyException(AppException):
    """503 — the transaction lock could not be acquired in time."""

    def __init__(self, retry_after: int = 5) -> None:
        super().__init__(
            status_code=503,
            error_type="busy",
            title="Server Busy",
            detail=f"Server busy. Please try again in {retry_after} seconds.",
            headers={"Retry-After": str(retry_after)},
        )


class RateLimitedException(AppException):
    """429 — too many mutating calls for this identity and action."""

    def __init__(self, retry_after: int) -> None:
        minutes = max(1, math.ceil(retry_after / 60))
        super().__init__(
            status_code=429,
            error_type="rate-limited",
            title="Too Many Requests",
            detail=f"Too many attempts. Please try again in {minutes} minutes.",
            headers={"Retry-After": str(retry_after)},
        )


# ── External collaborators (never surfaced to API callers) ─────────

class ExternalServiceError(Exception):
    """Failure inside a mail or calendar collaborator."""


class MailDeliveryError(ExternalServiceError):
    pass


class CalendarError(ExternalServiceError):
    pass


# ── RFC 7807 builder ────────────────────────────────────────────────

def _build_problem_detail(exc: AppException, request: Request) -> dict[str, Any]:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{exc.error_type}",
        "title": exc.title,
        "status": exc.status_code,
        "detail": exc.detail,
        "instance": str(request.url.path),
    }
    if exc.errors:
        body["errors"] = exc.errors
    return body


# ── FastAPI handlers ────────────────────────────────────────────────

async def _handle_app_exception(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_build_problem_detail(exc, request),
        media_type="application/problem+json",
        headers=exc.headers,
    )


async def _handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    field_errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = err.get("loc", ())
        name = (
            ".".join(str(p) for p in loc[1:])
            if len(loc) > 1
            else str(loc[0]) if loc else "unknown"
        )
        field_errors.setdefault(name, []).append(err.get("msg", "Invalid value"))

    return JSONResponse(
        status_code=422,
        content={
            "type": f"{BASE_ERROR_URI}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": "Request validation failed.",
            "instance": str(request.url.path),
            "errors": field_errors,
        },
        media_type="application/problem+json",
    )


# ── Registration helper (called from main.py) ──────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""
    app.add_exception_handler(AppException, _handle_app_exception)          # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]

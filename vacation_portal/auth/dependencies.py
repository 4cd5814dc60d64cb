"""Auth dependencies — bearer token to verified identity."""

from __future__ import annotations

from fastapi import Request

from vacation_portal.auth.service import decode_access_token
from vacation_portal.common.exceptions import UnauthenticatedException


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise UnauthenticatedException("Missing or invalid Authorization header.")
    return auth_header[7:]


async def get_current_identity(request: Request) -> str:
    """Verified e-mail of the caller."""
    return decode_access_token(_extract_bearer(request))

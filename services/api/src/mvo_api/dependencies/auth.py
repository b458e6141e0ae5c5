"""Caller identity dependencies for protecting API routes."""

from __future__ import annotations

import hmac
from dataclasses import dataclass

from fastapi import HTTPException, Request, status

from mvo_shared.config import get_settings
from mvo_shared.logging.config import get_logger

logger = get_logger(__name__)

INTERNAL_API_KEY_HEADER = "X-Internal-Api-Key"


@dataclass
class AuthenticatedUser:
    """Caller identified by the upstream auth provider."""

    user_id: str


async def require_auth(request: Request) -> AuthenticatedUser:
    """FastAPI dependency that requires a caller identity header.

    Usage:
        @router.get("/endpoint")
        async def my_endpoint(user: AuthenticatedUser = Depends(require_auth)):
            print(user.user_id)

    Raises:
        HTTPException 401 if the identity header is missing or blank.
    """
    header = get_settings().auth.user_id_header
    user_id = (request.headers.get(header) or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return AuthenticatedUser(user_id=user_id)


async def optional_auth(request: Request) -> AuthenticatedUser | None:
    """Return the caller if identified, or None for anonymous requests."""
    try:
        return await require_auth(request)
    except HTTPException:
        return None


async def require_internal_key(request: Request) -> None:
    """Guard internal endpoints with the shared API key.

    Raises:
        HTTPException 403 if no key is configured or the header does not match.
    """
    expected = get_settings().auth.internal_api_key
    provided = request.headers.get(INTERNAL_API_KEY_HEADER, "")
    if not expected or not hmac.compare_digest(provided, expected):
        logger.warning("Rejected internal request", path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Internal API key required",
        )

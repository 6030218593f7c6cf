"""
Authentication Module

FastAPI dependencies guarding the reviewer and maintenance endpoints.

- Reviewers authenticate with a Supabase Auth access token. The token is
  validated by calling Supabase's /auth/v1/user endpoint; the returned user
  id becomes the actor recorded in status history.
- The internal cleanup route is protected by a shared secret sent in the
  X-CRON-TOKEN header.

SECURITY NOTE:
- Development mode accepts a bare UUID as bearer token (used as the actor
  id) ONLY when PYTHON_ENV=development
"""

import hmac
import logging
import os
from dataclasses import dataclass
from typing import Any
from uuid import UUID

import httpx
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from recruitment_api.core.config import settings

logger = logging.getLogger(__name__)

security = HTTPBearer(
    auto_error=False,
    description="Supabase Auth access token",
)


@dataclass
class ReviewerUser:
    """
    An authenticated reviewer.

    Attributes:
        id: Supabase user id, recorded as the actor of status changes
        email: User's email address, if known
    """

    id: UUID
    email: str | None = None

    def __str__(self) -> str:
        return f"ReviewerUser(id={self.id}, email={self.email})"


def _is_dev_mode_safe() -> bool:
    """
    Development auth is only enabled when settings say development and
    the raw environment does not say production or staging.
    """
    env_var = os.getenv("PYTHON_ENV", "").lower()
    is_safe = (
        settings.is_development
        and not settings.is_production
        and env_var not in ("production", "staging")
    )
    if is_safe:
        logger.warning(
            "SECURITY: Development auth mode is ENABLED. This MUST NOT be used in production!"
        )
    return is_safe


_DEVELOPMENT_MODE = _is_dev_mode_safe()


def _unauthorized(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _fetch_supabase_user(token: str) -> dict[str, Any]:
    """
    Resolve an access token to a Supabase user.

    Raises:
        HTTPException 401: If Supabase rejects the token
        HTTPException 503: If Supabase cannot be reached or misbehaves
    """
    url = f"{settings.supabase_url.rstrip('/')}/auth/v1/user"
    headers = {
        "Authorization": f"Bearer {token}",
        "apikey": settings.supabase_anon_key or settings.supabase_service_role_key,
    }

    try:
        async with httpx.AsyncClient(timeout=settings.auth_timeout_seconds) as client:
            response = await client.get(url, headers=headers)
    except httpx.HTTPError as exc:
        logger.error(f"Supabase auth unreachable: {exc}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "error": "AUTH_UNAVAILABLE",
                "message": "Authentication service unavailable.",
            },
        ) from exc

    if response.status_code in (401, 403):
        raise _unauthorized("INVALID_TOKEN", "Invalid or expired authentication token.")
    if response.status_code != 200:
        logger.error(f"Supabase auth returned {response.status_code}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "error": "AUTH_UNAVAILABLE",
                "message": "Authentication service unavailable.",
            },
        )

    return response.json()


async def _validate_token(token: str) -> ReviewerUser:
    if _DEVELOPMENT_MODE:
        try:
            return ReviewerUser(id=UUID(token), email=None)
        except ValueError:
            pass

    if not settings.supabase_url:
        logger.error("Reviewer auth requested but SUPABASE_URL is not configured")
        raise _unauthorized("INVALID_TOKEN", "Invalid or expired authentication token.")

    user = await _fetch_supabase_user(token)

    try:
        return ReviewerUser(id=UUID(str(user["id"])), email=user.get("email"))
    except (KeyError, ValueError) as e:
        logger.warning(f"Invalid Supabase user payload: {e}")
        raise _unauthorized(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e


async def get_current_reviewer(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> ReviewerUser:
    """
    FastAPI dependency returning the authenticated reviewer.

    Usage:
        @router.put("/{application_id}/status")
        async def change_status(reviewer: ReviewerUser = Depends(get_current_reviewer)):
            ...

    Raises:
        HTTPException 401: If the token is missing or invalid
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("AUTHENTICATION_REQUIRED", "Authentication token required.")

    reviewer = await _validate_token(credentials.credentials)
    logger.debug(f"Authenticated reviewer: {reviewer.id}")
    return reviewer


async def verify_cleanup_token(
    x_cron_token: str | None = Header(default=None, alias="X-CRON-TOKEN"),
) -> None:
    """
    FastAPI dependency guarding the internal cleanup route.

    An unset CLEANUP_TOKEN disables the route entirely.

    Raises:
        HTTPException 401: If the header is missing or does not match
    """
    expected = settings.cleanup_token
    if not expected or not x_cron_token or not hmac.compare_digest(x_cron_token, expected):
        logger.warning("Rejected cleanup request with missing or invalid token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"ok": False, "message": "unauthorized"},
        )


__all__ = [
    "ReviewerUser",
    "get_current_reviewer",
    "verify_cleanup_token",
]

"""
app/api/dependencies.py

Shared FastAPI dependencies for authentication and request validation.
"""

from __future__ import annotations

import hmac
import uuid

from fastapi import Depends, Header, HTTPException, status

from app.config import get_auth_settings
from app.services.auth_client import (
    AuthClient,
    AuthenticationError,
    AuthServiceUnavailableError,
    get_auth_client,
)


def get_bearer_token(authorization: str | None = Header(default=None)) -> str:
    """
    Extract the token from ``Authorization: Bearer <token>``.
    """

    if not authorization or not authorization.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No authorization header",
        )

    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )
    return token.strip()


def get_current_user_id(
    token: str = Depends(get_bearer_token),
    auth_client: AuthClient = Depends(get_auth_client),
) -> uuid.UUID:
    try:
        return auth_client.resolve_user_id(token)
    except AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc
    except AuthServiceUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service unavailable.",
        ) from exc


def require_admin_token(x_admin_token: str | None = Header(default=None)) -> None:
    """
    Gate operator endpoints behind the ``X-Admin-Token`` header.
    """

    expected = get_auth_settings().admin_api_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin endpoints are disabled.",
        )
    if not x_admin_token or not hmac.compare_digest(x_admin_token, expected):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin token.",
        )

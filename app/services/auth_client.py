"""
app/services/auth_client.py

Resolves Bearer tokens to user ids through the hosted auth platform.

Token issuance and session management live entirely in the platform; this
service only asks ``GET {base_url}/auth/v1/user`` who owns a token.
"""

from __future__ import annotations

import logging
import uuid
from functools import lru_cache
from typing import Any

import requests

from app.config import AuthSettings, get_auth_settings

logger = logging.getLogger(__name__)

USER_ENDPOINT = "/auth/v1/user"


class AuthenticationError(ValueError):
    """
    Raised when a token is rejected or resolves to no user.
    """


class AuthServiceUnavailableError(RuntimeError):
    """
    Raised when the auth platform cannot be reached or is misconfigured.
    """


class AuthClient:
    def __init__(
        self,
        *,
        settings: AuthSettings,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = (settings.base_url or "").rstrip("/")
        self._api_key = settings.api_key
        self._timeout_seconds = settings.timeout_seconds
        self._session = session or requests.Session()

    def resolve_user_id(self, token: str) -> uuid.UUID:
        if not self._base_url:
            raise AuthServiceUnavailableError("AUTH_BASE_URL is not configured.")
        if not token:
            raise AuthenticationError("Invalid token")

        headers = {"Authorization": f"Bearer {token}"}
        if self._api_key:
            headers["apikey"] = self._api_key

        try:
            response = self._session.get(
                f"{self._base_url}{USER_ENDPOINT}",
                headers=headers,
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as exc:
            logger.error("Auth platform request failed: %s", exc)
            raise AuthServiceUnavailableError("Auth platform unavailable.") from exc

        if response.status_code in {401, 403}:
            raise AuthenticationError("Invalid token")
        if response.status_code >= 400:
            logger.error("Auth platform returned status=%s", response.status_code)
            raise AuthServiceUnavailableError("Auth platform unavailable.")

        try:
            payload: Any = response.json()
        except ValueError as exc:
            raise AuthServiceUnavailableError("Auth platform response was not valid JSON.") from exc

        user_id = payload.get("id") if isinstance(payload, dict) else None
        try:
            return uuid.UUID(str(user_id))
        except ValueError as exc:
            raise AuthenticationError("Invalid token") from exc


@lru_cache(maxsize=1)
def get_auth_client() -> AuthClient:
    return AuthClient(settings=get_auth_settings())

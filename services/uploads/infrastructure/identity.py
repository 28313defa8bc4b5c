from __future__ import annotations

import logging
from typing import Protocol

import httpx

from ..domain.user import AuthenticatedUser

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    def get_user(self, access_token: str) -> AuthenticatedUser | None: ...


class SupabaseIdentityProvider(IdentityProvider):
    """Resolves bearer tokens through the hosted auth service's ``/user`` endpoint."""

    def __init__(
        self,
        *,
        auth_url: str,
        api_key: str,
        client: httpx.Client | None = None,
    ) -> None:
        self._user_url = auth_url.rstrip("/") + "/user"
        self._api_key = api_key
        self._client = client or httpx.Client(timeout=10.0)

    def get_user(self, access_token: str) -> AuthenticatedUser | None:
        try:
            response = self._client.get(
                self._user_url,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "apikey": self._api_key,
                },
            )
        except httpx.HTTPError as exc:
            logger.error("Auth service unreachable: %s", exc)
            return None
        if response.status_code != 200:
            logger.info("Auth service rejected token (%s)", response.status_code)
            return None
        data = response.json()
        user_id = data.get("id")
        if not user_id:
            return None
        return AuthenticatedUser(user_id=str(user_id), email=data.get("email"))

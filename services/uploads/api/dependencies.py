from __future__ import annotations

from typing import Callable

from fastapi import Request

from ..application.errors import UnauthorizedError
from ..domain.user import AuthenticatedUser
from ..infrastructure.identity import IdentityProvider


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def create_current_user_dependency(
    identity_provider: IdentityProvider,
) -> Callable[[Request], AuthenticatedUser]:
    def current_user(request: Request) -> AuthenticatedUser:
        token = _bearer_token(request)
        if token is None:
            raise UnauthorizedError()
        user = identity_provider.get_user(token)
        if user is None:
            raise UnauthorizedError()
        return user

    return current_user

"""Caller identity as reported by the hosted auth service."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AuthenticatedUser:
    """The signed-in club member making the request."""

    user_id: str
    email: str | None = None

"""Errors raised by the upload use cases and rendered by the API layer."""

from __future__ import annotations

from typing import Any, Mapping


class UploadServiceError(Exception):
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra: dict[str, Any] = dict(extra or {})

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message, **self.extra}


class MissingParametersError(UploadServiceError):
    status_code = 400


class UnauthorizedError(UploadServiceError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class SessionNotFoundError(UploadServiceError):
    status_code = 404

    def __init__(self, message: str = "Session not found or unauthorized") -> None:
        super().__init__(message)


class SessionExpiredError(UploadServiceError):
    status_code = 410


class SessionFailedError(UploadServiceError):
    status_code = 400


class SessionNotResumableError(UploadServiceError):
    status_code = 400


class InvalidSessionStateError(UploadServiceError):
    status_code = 400


class CredentialsNotConfiguredError(UploadServiceError):
    status_code = 500


class PlatformAuthError(UploadServiceError):
    status_code = 401


class PlatformError(UploadServiceError):
    status_code = 500


class PersistenceError(UploadServiceError):
    status_code = 500


class VideoNotFoundError(UploadServiceError):
    status_code = 404

    def __init__(self, message: str = "Video not found in recent uploads") -> None:
        super().__init__(message, extra={"success": False})

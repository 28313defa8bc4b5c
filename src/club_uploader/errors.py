"""Typed failures raised by the client-side uploader."""

from __future__ import annotations

from enum import Enum

# YouTube's own per-file ceiling
MAX_FILE_SIZE = 256 * 1024 * 1024 * 1024


class UploadErrorType(str, Enum):
    NETWORK_ERROR = "network_error"
    SESSION_EXPIRED = "session_expired"
    QUOTA_EXCEEDED = "quota_exceeded"
    FILE_TOO_LARGE = "file_too_large"
    INVALID_FILE = "invalid_file"
    SERVER_ERROR = "server_error"
    UNAUTHORIZED = "unauthorized"
    UNKNOWN_ERROR = "unknown_error"


_RETRYABLE_TYPES = {UploadErrorType.NETWORK_ERROR}


class UploadError(Exception):
    def __init__(
        self,
        message: str,
        error_type: UploadErrorType = UploadErrorType.UNKNOWN_ERROR,
        *,
        retryable: bool | None = None,
        session_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.retryable = (
            error_type in _RETRYABLE_TYPES if retryable is None else retryable
        )
        self.session_id = session_id


class QuotaExceededError(UploadError):
    def __init__(self, remaining_units: int, remaining_uploads: int) -> None:
        super().__init__(
            "Daily YouTube API quota exceeded. "
            f"Remaining: {remaining_units} units ({remaining_uploads} uploads possible)",
            UploadErrorType.QUOTA_EXCEEDED,
            retryable=False,
        )
        self.remaining_units = remaining_units
        self.remaining_uploads = remaining_uploads


class SessionExpiredError(UploadError):
    def __init__(self, message: str, *, session_id: str | None = None) -> None:
        super().__init__(
            message,
            UploadErrorType.SESSION_EXPIRED,
            retryable=False,
            session_id=session_id,
        )


class UploadCancelledError(UploadError):
    def __init__(self, session_id: str | None = None) -> None:
        super().__init__(
            "Upload aborted by user",
            UploadErrorType.NETWORK_ERROR,
            retryable=False,
            session_id=session_id,
        )


class FileMismatchError(UploadError):
    """The file picked for a resume is not the one the session started with."""

    def __init__(
        self,
        *,
        original_name: str,
        original_size: int,
        selected_name: str,
        selected_size: int,
        session_id: str,
    ) -> None:
        super().__init__(
            "The selected file does not match the original upload. "
            f"Original: {original_name} ({_megabytes(original_size)}MB), "
            f"selected: {selected_name} ({_megabytes(selected_size)}MB). "
            "Please select the same video file.",
            UploadErrorType.INVALID_FILE,
            retryable=False,
            session_id=session_id,
        )
        self.original_name = original_name
        self.original_size = original_size
        self.selected_name = selected_name
        self.selected_size = selected_size


def _megabytes(size: int) -> float:
    return round(size / 1024 / 1024, 2)


def validate_file(file_name: str, file_size: int) -> None:
    if not file_name or file_size <= 0:
        raise UploadError("File is empty", UploadErrorType.INVALID_FILE, retryable=False)
    if file_size > MAX_FILE_SIZE:
        raise UploadError(
            f"File is larger than {MAX_FILE_SIZE} bytes",
            UploadErrorType.FILE_TOO_LARGE,
            retryable=False,
        )

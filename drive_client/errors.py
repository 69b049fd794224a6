"""Exception hierarchy and HTTP error mapping for the drive client."""

from typing import Any, Optional

import httpx


class DriveClientError(Exception):
    """
    Base exception for drive_client.

    Attributes:
        status_code: HTTP status of the failed response, if any.
        details: Structured information sent by the server.
        cause: Optional original exception that triggered this error.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.cause = cause


class NotFoundError(DriveClientError):
    """Referenced folder, file, parent or user does not exist."""


class ConflictError(DriveClientError):
    """A sibling with the same name already exists."""


class InvalidOperationError(DriveClientError):
    """Self-parenting, cyclic move or another rejected request."""


class NotEmptyError(InvalidOperationError):
    """Folder delete without the recursive flag on a non-empty folder."""

    @property
    def subfolder_count(self) -> int:
        return int(self.details.get("subfolder_count", 0))

    @property
    def file_count(self) -> int:
        return int(self.details.get("file_count", 0))


class UploadTooLargeError(InvalidOperationError):
    """The upload exceeded the server's size limit (HTTP 413)."""


class StorageFailureError(DriveClientError):
    """The server could not write content to storage."""


class AuthError(DriveClientError):
    """The server could not identify the current user (HTTP 401)."""


class NetworkError(DriveClientError):
    """Network or timeout issues prevented the request."""


class ApiError(DriveClientError):
    """Unclassified API errors (validation, 5xx, unknown 4xx)."""


_KIND_TO_ERROR: dict[str, type[DriveClientError]] = {
    "not_found": NotFoundError,
    "conflict": ConflictError,
    "invalid_operation": InvalidOperationError,
    "not_empty": NotEmptyError,
    "too_large": UploadTooLargeError,
    "storage_failure": StorageFailureError,
}

_STATUS_TO_ERROR: dict[int, type[DriveClientError]] = {
    400: InvalidOperationError,
    401: AuthError,
    404: NotFoundError,
    409: ConflictError,
    413: UploadTooLargeError,
}


def map_error_response(response: httpx.Response) -> DriveClientError:
    """
    Build a client error from a non-2xx response.

    Error kinds reported by the tree store (``{"error": kind, ...}``) win;
    plain ``{"detail": ...}`` bodies fall back to the status code.
    """
    try:
        body = response.json()
    except ValueError:
        body = None

    status_code = response.status_code
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        error_cls = _KIND_TO_ERROR.get(body["error"], ApiError)
        return error_cls(
            body.get("message") or body["error"],
            status_code=status_code,
            details=body.get("details") or {},
        )

    if isinstance(body, dict) and "detail" in body:
        detail = body["detail"]
        message = detail if isinstance(detail, str) else f"HTTP error {status_code}"
        details = {} if isinstance(detail, str) else {"detail": detail}
    else:
        message = response.text or f"HTTP error {status_code}"
        details = {}

    error_cls = _STATUS_TO_ERROR.get(status_code, ApiError)
    return error_cls(message, status_code=status_code, details=details)

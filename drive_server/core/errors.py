"""Error kinds raised by the tree store and translated by the HTTP layer."""

from typing import Any, Optional


class DriveError(Exception):
    """
    Base exception for the file manager core.

    Attributes:
        kind: Stable identifier reported to callers.
        details: Optional structured information (ids, counts).
        cause: Optional original exception that triggered this error.
    """

    kind = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause


class NotFoundError(DriveError):
    """Raised when a referenced folder, file, parent or user does not exist."""

    kind = "not_found"


class ConflictError(DriveError):
    """Raised when a sibling with the same name already exists."""

    kind = "conflict"


class InvalidOperationError(DriveError):
    """Raised for self-parenting, cyclic moves and similar requests."""

    kind = "invalid_operation"


class NotEmptyError(InvalidOperationError):
    """Raised when deleting a non-empty folder without the recursive flag."""

    kind = "not_empty"

    def __init__(self, folder_id: int, subfolder_count: int, file_count: int) -> None:
        super().__init__(
            "Folder is not empty. Use recursive=true to delete all contents.",
            details={
                "folder_id": folder_id,
                "subfolder_count": subfolder_count,
                "file_count": file_count,
            },
        )
        self.subfolder_count = subfolder_count
        self.file_count = file_count


class UploadTooLargeError(InvalidOperationError):
    """Raised when an upload exceeds the configured size limit."""

    kind = "too_large"

    def __init__(self, limit: int) -> None:
        super().__init__(
            f"File exceeds the {limit} byte upload limit",
            details={"max_upload_bytes": limit},
        )
        self.limit = limit


class StorageFailureError(DriveError):
    """Raised when the storage backend cannot write content."""

    kind = "storage_failure"


STATUS_CODES: dict[str, int] = {
    NotFoundError.kind: 404,
    ConflictError.kind: 409,
    NotEmptyError.kind: 409,
    UploadTooLargeError.kind: 413,
    InvalidOperationError.kind: 400,
    StorageFailureError.kind: 502,
}


def status_code_for(error: DriveError) -> int:
    return STATUS_CODES.get(error.kind, 500)

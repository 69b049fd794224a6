from drive_server.core.errors import (
    ConflictError,
    DriveError,
    InvalidOperationError,
    NotEmptyError,
    NotFoundError,
    StorageFailureError,
    UploadTooLargeError,
    status_code_for,
)


def test_status_codes():
    assert status_code_for(NotFoundError("x")) == 404
    assert status_code_for(ConflictError("x")) == 409
    assert status_code_for(InvalidOperationError("x")) == 400
    assert status_code_for(NotEmptyError(1, 2, 3)) == 409
    assert status_code_for(StorageFailureError("x")) == 502
    assert status_code_for(DriveError("x")) == 500


def test_not_empty_carries_counts():
    error = NotEmptyError(5, 1, 0)

    assert isinstance(error, InvalidOperationError)
    assert error.kind == "not_empty"
    assert error.details == {"folder_id": 5, "subfolder_count": 1, "file_count": 0}


def test_cause_is_kept():
    cause = OSError("disk")
    error = StorageFailureError("write failed", cause=cause)

    assert error.cause is cause
    assert error.details == {}
    assert str(error) == "write failed"


def test_upload_too_large_maps_to_413():
    error = UploadTooLargeError(1024)

    assert isinstance(error, InvalidOperationError)
    assert status_code_for(error) == 413
    assert error.details == {"max_upload_bytes": 1024}

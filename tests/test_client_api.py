import json

import httpx
import pytest

from drive_client.api import DriveClient, format_file_size
from drive_client.errors import (
    ApiError,
    AuthError,
    ConflictError,
    InvalidOperationError,
    NetworkError,
    NotEmptyError,
    NotFoundError,
    StorageFailureError,
    UploadTooLargeError,
    map_error_response,
)


def _client(handler):
    return DriveClient("http://drive.test/", 7, transport=httpx.MockTransport(handler))


def test_sends_user_header_and_parses_json():
    seen = {}

    def handler(request):
        seen["user"] = request.headers["X-User-Id"]
        seen["url"] = str(request.url)
        return httpx.Response(200, json={"folders": [], "files": []})

    with _client(handler) as client:
        assert client.list_root() == {"folders": [], "files": []}

    assert seen == {"user": "7", "url": "http://drive.test/folders"}


def test_patch_ops_bodies():
    bodies = []

    def handler(request):
        bodies.append((request.method, request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={})

    with _client(handler) as client:
        client.rename_folder(1, "New")
        client.move_folder(1, None)
        client.set_folder_visibility(1, True)
        client.move_file(2, 5)

    assert bodies == [
        ("PATCH", "/folders/1", {"op": "rename", "name": "New"}),
        ("PATCH", "/folders/1", {"op": "move", "parent_id": None}),
        ("PATCH", "/folders/1", {"op": "set_visibility", "is_public": True}),
        ("PATCH", "/files/2", {"op": "move", "folder_id": 5}),
    ]


def test_delete_folder_recursive_flag():
    params = []

    def handler(request):
        params.append(request.url.params["recursive"])
        return httpx.Response(200, json={"message": "ok"})

    with _client(handler) as client:
        client.delete_folder(3)
        client.delete_folder(3, recursive=True)

    assert params == ["false", "true"]


def test_not_empty_error_exposes_counts():
    def handler(request):
        return httpx.Response(
            409,
            json={
                "error": "not_empty",
                "message": "Folder is not empty",
                "details": {"folder_id": 3, "subfolder_count": 2, "file_count": 1},
            },
        )

    with _client(handler) as client, pytest.raises(NotEmptyError) as exc_info:
        client.delete_folder(3)

    assert exc_info.value.status_code == 409
    assert exc_info.value.subfolder_count == 2
    assert exc_info.value.file_count == 1


@pytest.mark.parametrize(
    "status, body, expected",
    [
        (404, {"error": "not_found", "message": "Folder not found"}, NotFoundError),
        (409, {"error": "conflict", "message": "dup"}, ConflictError),
        (400, {"error": "invalid_operation", "message": "cycle"}, InvalidOperationError),
        (502, {"error": "storage_failure", "message": "disk"}, StorageFailureError),
        (413, {"error": "too_large", "message": "big"}, UploadTooLargeError),
        (413, {"detail": "Request Entity Too Large"}, UploadTooLargeError),
        (401, {"detail": "Could not identify the current user"}, AuthError),
        (404, {"detail": "User not found"}, NotFoundError),
        (422, {"detail": [{"loc": ["body", "name"], "msg": "bad"}]}, ApiError),
        (500, {"error": "internal_error", "message": "db"}, ApiError),
    ],
)
def test_map_error_response(status, body, expected):
    error = map_error_response(httpx.Response(status, json=body))

    assert type(error) is expected
    assert error.status_code == status


def test_map_error_response_non_json():
    error = map_error_response(httpx.Response(503, text="Service Unavailable"))

    assert isinstance(error, ApiError)
    assert error.message == "Service Unavailable"


def test_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with _client(handler) as client, pytest.raises(NetworkError):
        client.health()


def test_upload_file_reports_progress(tmp_path):
    path = tmp_path / "photo.jpg"
    path.write_bytes(b"\xff\xd8")
    captured = {}

    def handler(request):
        captured["body"] = request.read()
        return httpx.Response(201, json={"id": 1, "name": "photo.jpg"})

    progress = []
    with _client(handler) as client:
        result = client.upload_file(path, folder_id=4, progress=progress.append)

    assert result["id"] == 1
    assert progress == [0, 99, 100]
    assert b'name="folder_id"' in captured["body"]
    assert b'filename="photo.jpg"' in captured["body"]
    assert b"image/jpeg" in captured["body"]


def test_upload_file_reports_incremental_progress(tmp_path):
    path = tmp_path / "video.bin"
    path.write_bytes(b"\0" * 200_000)

    def handler(request):
        request.read()
        return httpx.Response(201, json={"id": 1, "name": "video.bin"})

    progress = []
    with _client(handler) as client:
        client.upload_file(path, progress=progress.append)

    assert progress[0] == 0
    assert progress[-2:] == [99, 100]
    assert len(progress) > 3
    assert progress == sorted(set(progress))


def test_download_file(tmp_path):
    def handler(request):
        return httpx.Response(200, content=b"file-bytes")

    dest = tmp_path / "out.bin"
    with _client(handler) as client:
        assert client.download_file(1, dest) == dest

    assert dest.read_bytes() == b"file-bytes"


def test_download_missing_file(tmp_path):
    def handler(request):
        return httpx.Response(404, json={"error": "not_found", "message": "File not found"})

    with _client(handler) as client, pytest.raises(NotFoundError):
        client.download_file(1, tmp_path / "out.bin")


@pytest.mark.parametrize(
    "size, expected",
    [(512, "512 B"), (2048, "2.0 KB"), (5 * 1024 * 1024, "5.0 MB"), (3 * 1024 ** 3, "3.0 GB")],
)
def test_format_file_size(size, expected):
    assert format_file_size(size) == expected

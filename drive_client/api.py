import logging
import mimetypes
from pathlib import Path
from typing import Any, BinaryIO, Callable, Optional

import httpx

from drive_client.errors import NetworkError, map_error_response

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


class _ProgressReader:
    """
    Binary file wrapper that reports how much of it has been read.

    httpx streams multipart file parts in chunks through ``read``, so the
    percentage tracks what has been handed to the transport. It stays
    below 100 until the server has answered.
    """

    def __init__(self, fileobj: BinaryIO, total: int, progress: ProgressCallback):
        self._file = fileobj
        self._total = total
        self._progress = progress
        self._last = 0

    def read(self, size: int = -1) -> bytes:
        chunk = self._file.read(size)
        if self._total:
            percent = min(99, self._file.tell() * 100 // self._total)
            if percent != self._last:
                self._last = percent
                self._progress(percent)
        return chunk

    def seek(self, offset: int, whence: int = 0) -> int:
        return self._file.seek(offset, whence)

    def tell(self) -> int:
        return self._file.tell()

    def fileno(self) -> int:
        return self._file.fileno()


def format_file_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    if size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    return f"{size_bytes / (1024 * 1024 * 1024):.1f} GB"


class DriveClient:
    """
    REST client for the file manager service.

    Every request carries the ``X-User-Id`` header. Non-2xx responses are
    raised as ``DriveClientError`` subclasses.
    """

    def __init__(
        self,
        base_url: str,
        user_id: int,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={"X-User-Id": str(user_id)},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "DriveClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            resp = self._client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise NetworkError(f"{method} {url} failed: {e}", cause=e) from e

        if resp.status_code >= 400:
            error = map_error_response(resp)
            logger.debug("%s %s failed (%d): %s", method, url, resp.status_code, error.message)
            raise error
        return resp.json()

    # ---- service ----

    def health(self) -> dict:
        return self._request("GET", "/health")

    # ---- listings ----

    def list_root(self) -> dict:
        return self._request("GET", "/folders")

    def list_folder(self, folder_id: int) -> dict:
        return self._request("GET", f"/folders/{folder_id}")

    def breadcrumbs(self, folder_id: int) -> list[dict]:
        return self._request("GET", f"/folders/{folder_id}/breadcrumbs")

    # ---- folders ----

    def create_folder(
        self,
        name: str,
        parent_id: Optional[int] = None,
        is_public: bool = False,
    ) -> dict:
        payload = {"name": name, "parent_id": parent_id, "is_public": is_public}
        return self._request("POST", "/folders", json=payload)

    def rename_folder(self, folder_id: int, new_name: str) -> dict:
        return self._request("PATCH", f"/folders/{folder_id}", json={"op": "rename", "name": new_name})

    def move_folder(self, folder_id: int, target_parent_id: Optional[int]) -> dict:
        return self._request(
            "PATCH",
            f"/folders/{folder_id}",
            json={"op": "move", "parent_id": target_parent_id},
        )

    def set_folder_visibility(self, folder_id: int, is_public: bool) -> dict:
        return self._request(
            "PATCH",
            f"/folders/{folder_id}",
            json={"op": "set_visibility", "is_public": is_public},
        )

    def delete_folder(self, folder_id: int, recursive: bool = False) -> dict:
        params = {"recursive": "true" if recursive else "false"}
        return self._request("DELETE", f"/folders/{folder_id}", params=params)

    # ---- files ----

    def upload_file(
        self,
        path: str | Path,
        folder_id: Optional[int] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> dict:
        """
        Upload a local file.

        ``progress`` gets 0 before sending, rising percentages while the
        body is streamed, and 100 once the server has stored the file.
        """
        path = Path(path)
        mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        data = {} if folder_id is None else {"folder_id": str(folder_id)}

        if progress:
            progress(0)
        with open(path, "rb") as f:
            body = f if progress is None else _ProgressReader(f, path.stat().st_size, progress)
            result = self._request(
                "POST",
                "/files",
                files={"file": (path.name, body, mime_type)},
                data=data,
            )
        if progress:
            progress(100)
        return result

    def get_file(self, file_id: int) -> dict:
        return self._request("GET", f"/files/{file_id}")

    def download_file(self, file_id: int, dest: str | Path) -> Path:
        dest = Path(dest)
        try:
            with self._client.stream("GET", f"/files/{file_id}/download") as resp:
                if resp.status_code >= 400:
                    resp.read()
                    raise map_error_response(resp)
                with open(dest, "wb") as f:
                    for chunk in resp.iter_bytes():
                        f.write(chunk)
        except httpx.RequestError as e:
            raise NetworkError(f"Failed to download file {file_id}: {e}", cause=e) from e
        return dest

    def rename_file(self, file_id: int, new_name: str) -> dict:
        return self._request("PATCH", f"/files/{file_id}", json={"op": "rename", "name": new_name})

    def move_file(self, file_id: int, target_folder_id: Optional[int]) -> dict:
        return self._request(
            "PATCH",
            f"/files/{file_id}",
            json={"op": "move", "folder_id": target_folder_id},
        )

    def set_file_visibility(self, file_id: int, is_public: bool) -> dict:
        return self._request(
            "PATCH",
            f"/files/{file_id}",
            json={"op": "set_visibility", "is_public": is_public},
        )

    def delete_file(self, file_id: int) -> dict:
        return self._request("DELETE", f"/files/{file_id}")

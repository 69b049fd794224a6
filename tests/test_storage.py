import pytest

from drive_server.core.errors import StorageFailureError
from drive_server.services.storage import LocalDiskStorage, new_storage_path


def test_new_storage_path_format():
    path = new_storage_path(7, "Report.PDF")

    owner, key = path.split("/")
    assert owner == "7"
    assert key.endswith(".pdf")
    assert len(key) == 32 + len(".pdf")
    assert new_storage_path(7, "Report.PDF") != path


def test_write_read_delete(tmp_path):
    storage = LocalDiskStorage(tmp_path)

    storage.write("1/abc.txt", b"data")

    assert storage.exists("1/abc.txt")
    assert storage.local_path("1/abc.txt").read_bytes() == b"data"
    assert storage.delete("1/abc.txt") is True
    assert storage.delete("1/abc.txt") is False
    assert not storage.exists("1/abc.txt")


def test_write_never_overwrites(tmp_path):
    storage = LocalDiskStorage(tmp_path)
    storage.write("1/abc.txt", b"first")

    with pytest.raises(StorageFailureError):
        storage.write("1/abc.txt", b"second")

    assert storage.local_path("1/abc.txt").read_bytes() == b"first"


def test_paths_cannot_escape_root(tmp_path):
    storage = LocalDiskStorage(tmp_path / "root")

    with pytest.raises(StorageFailureError):
        storage.write("../outside.txt", b"x")
    with pytest.raises(StorageFailureError):
        storage.delete("../../etc/passwd")


def test_new_storage_path_drops_overlong_suffix():
    path = new_storage_path(7, "notes." + "x" * 40)

    assert path.split("/")[1].isalnum()
    assert len(path.split("/")[1]) == 32

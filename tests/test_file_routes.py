from drive_server.core.config import settings


def _upload(client, auth, name="notes.txt", content=b"hello world", folder_id=None, mime="text/plain"):
    data = {} if folder_id is None else {"folder_id": str(folder_id)}
    return client.post(
        "/files",
        files={"file": (name, content, mime)},
        data=data,
        headers=auth,
    )


def test_upload_to_root(client, auth):
    resp = _upload(client, auth)

    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["name"] == "notes.txt"
    assert body["folder_id"] is None
    assert body["size_bytes"] == 11
    assert body["file_type"] == "text"
    assert "storage_path" not in body

    listing = client.get("/folders", headers=auth).json()
    assert [f["id"] for f in listing["files"]] == [body["id"]]


def test_upload_into_folder(client, auth):
    folder = client.post("/folders", json={"name": "Docs"}, headers=auth).json()

    resp = _upload(client, auth, folder_id=folder["id"])

    assert resp.status_code == 201
    contents = client.get(f"/folders/{folder['id']}", headers=auth).json()
    assert [f["id"] for f in contents["files"]] == [resp.json()["id"]]


def test_upload_into_missing_folder(client, auth):
    resp = _upload(client, auth, folder_id=4242)

    assert resp.status_code == 404


def test_upload_too_large(client, auth, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 4)

    resp = _upload(client, auth, content=b"12345")

    assert resp.status_code == 413
    body = resp.json()
    assert body["error"] == "too_large"
    assert body["details"] == {"max_upload_bytes": 4}
    assert client.get("/folders", headers=auth).json()["files"] == []


def test_get_and_download(client, auth):
    file_id = _upload(client, auth, content=b"payload").json()["id"]

    meta = client.get(f"/files/{file_id}", headers=auth)
    download = client.get(f"/files/{file_id}/download", headers=auth)

    assert meta.status_code == 200
    assert meta.json()["mime_type"] == "text/plain"
    assert download.status_code == 200
    assert download.content == b"payload"


def test_download_with_missing_content(client, auth, storage, session_factory):
    from drive_server.models.file import File

    file_id = _upload(client, auth).json()["id"]
    with session_factory() as session:
        storage.delete(session.get(File, file_id).storage_path)

    resp = client.get(f"/files/{file_id}/download", headers=auth)

    assert resp.status_code == 404
    assert resp.json() == {
        "error": "not_found",
        "message": "File content not found",
        "details": {"file_id": file_id},
    }


def test_patch_rename_move_and_visibility(client, auth):
    folder = client.post("/folders", json={"name": "Docs"}, headers=auth).json()
    file_id = _upload(client, auth).json()["id"]

    renamed = client.patch(f"/files/{file_id}", json={"op": "rename", "name": "todo.txt"}, headers=auth)
    moved = client.patch(f"/files/{file_id}", json={"op": "move", "folder_id": folder["id"]}, headers=auth)
    shared = client.patch(f"/files/{file_id}", json={"op": "set_visibility", "is_public": True}, headers=auth)

    assert renamed.json()["name"] == "todo.txt"
    assert moved.json()["folder_id"] == folder["id"]
    assert shared.json()["is_public"] is True


def test_patch_move_to_missing_folder(client, auth):
    file_id = _upload(client, auth).json()["id"]

    resp = client.patch(f"/files/{file_id}", json={"op": "move", "folder_id": 999}, headers=auth)

    assert resp.status_code == 404


def test_patch_rename_rejects_separator(client, auth):
    file_id = _upload(client, auth).json()["id"]

    resp = client.patch(f"/files/{file_id}", json={"op": "rename", "name": "a/b"}, headers=auth)

    assert resp.status_code == 422


def test_delete_file(client, auth):
    file_id = _upload(client, auth).json()["id"]

    resp = client.delete(f"/files/{file_id}", headers=auth)

    assert resp.status_code == 200
    assert resp.json()["files_deleted"] == 1
    assert client.get(f"/files/{file_id}", headers=auth).status_code == 404
    assert client.delete(f"/files/{file_id}", headers=auth).status_code == 404

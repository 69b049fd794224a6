import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, File, Form, UploadFile, status
from fastapi.responses import FileResponse
from pydantic import TypeAdapter

from drive_server.api.deps import get_tree_store, parse_body
from drive_server.api.routes.users import get_current_user
from drive_server.core.config import settings
from drive_server.core.errors import InvalidOperationError, NotFoundError, UploadTooLargeError
from drive_server.models.user import User
from drive_server.schemas.file import FileRead, FileUpdate, MoveFileOp
from drive_server.schemas.folder import DeleteReportRead
from drive_server.schemas.ops import RenameOp
from drive_server.services.tree_store import TreeStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])

_file_update = TypeAdapter(FileUpdate)


@router.post("", response_model=FileRead, status_code=status.HTTP_201_CREATED)
def upload_file(
    file: UploadFile = File(...),
    folder_id: Optional[int] = Form(None),
    tree: TreeStore = Depends(get_tree_store),
    current_user: User = Depends(get_current_user),
):
    if not file.filename:
        raise InvalidOperationError("No file uploaded")

    # read one byte past the limit to detect oversized uploads
    content = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise UploadTooLargeError(settings.MAX_UPLOAD_BYTES)

    return tree.upload_file(
        current_user.id,
        folder_id,
        file.filename,
        content,
        mime_type=file.content_type,
    )


@router.get("/{file_id}", response_model=FileRead)
def get_file(
    file_id: int,
    tree: TreeStore = Depends(get_tree_store),
    current_user: User = Depends(get_current_user),
):
    return tree.get_file(file_id, current_user.id)


@router.get("/{file_id}/download")
def download_file(
    file_id: int,
    tree: TreeStore = Depends(get_tree_store),
    current_user: User = Depends(get_current_user),
):
    db_file = tree.get_file(file_id, current_user.id)

    if not tree.storage.exists(db_file.storage_path):
        logger.error("Content missing for file %d at %s", db_file.id, db_file.storage_path)
        raise NotFoundError("File content not found", details={"file_id": db_file.id})

    return FileResponse(
        tree.storage.local_path(db_file.storage_path),
        media_type=db_file.mime_type,
        filename=db_file.name,
    )


@router.patch("/{file_id}", response_model=FileRead)
def update_file(
    file_id: int,
    body: Any = Body(...),
    tree: TreeStore = Depends(get_tree_store),
    current_user: User = Depends(get_current_user),
):
    op = parse_body(_file_update, body)

    if isinstance(op, RenameOp):
        return tree.rename_file(file_id, op.name, current_user.id)
    if isinstance(op, MoveFileOp):
        return tree.move_file(file_id, op.folder_id, current_user.id)
    return tree.set_file_visibility(file_id, op.is_public, current_user.id)


@router.delete("/{file_id}", response_model=DeleteReportRead)
def delete_file(
    file_id: int,
    tree: TreeStore = Depends(get_tree_store),
    current_user: User = Depends(get_current_user),
):
    report = tree.delete_file(file_id, current_user.id)
    message = "File deleted successfully"
    if report.partial:
        message = "File record deleted; stored content could not be removed"
    return {
        "message": message,
        "files_deleted": report.files_deleted,
        "storage_failures": [vars(f) for f in report.storage_failures],
    }

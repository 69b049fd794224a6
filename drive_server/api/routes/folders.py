from typing import Any, List

from fastapi import APIRouter, Body, Depends, Query, status
from pydantic import TypeAdapter

from drive_server.api.deps import get_tree_store, parse_body
from drive_server.api.routes.users import get_current_user
from drive_server.models.user import User
from drive_server.schemas.folder import (
    DeleteReportRead,
    FolderContents,
    FolderCreate,
    FolderRead,
    FolderUpdate,
    MoveFolderOp,
    RootListing,
)
from drive_server.schemas.ops import RenameOp
from drive_server.services.tree_store import TreeStore

router = APIRouter(prefix="/folders", tags=["folders"])

_folder_update = TypeAdapter(FolderUpdate)


@router.get("", response_model=RootListing)
def list_root(
    tree: TreeStore = Depends(get_tree_store),
    current_user: User = Depends(get_current_user),
):
    folders, files = tree.list_root(current_user.id)
    return {"folders": folders, "files": files}


@router.post("", response_model=FolderRead, status_code=status.HTTP_201_CREATED)
def create_folder(
    payload: FolderCreate,
    tree: TreeStore = Depends(get_tree_store),
    current_user: User = Depends(get_current_user),
):
    return tree.create_folder(
        payload.name,
        payload.parent_id,
        current_user.id,
        is_public=payload.is_public,
    )


@router.get("/{folder_id}", response_model=FolderContents)
def list_folder(
    folder_id: int,
    tree: TreeStore = Depends(get_tree_store),
    current_user: User = Depends(get_current_user),
):
    folder, subfolders, files = tree.list_folder(folder_id, current_user.id)
    return {"folder": folder, "subfolders": subfolders, "files": files}


@router.get("/{folder_id}/breadcrumbs", response_model=List[FolderRead])
def breadcrumbs(
    folder_id: int,
    tree: TreeStore = Depends(get_tree_store),
    current_user: User = Depends(get_current_user),
):
    return tree.breadcrumbs(folder_id, current_user.id)


@router.patch("/{folder_id}", response_model=FolderRead)
def update_folder(
    folder_id: int,
    body: Any = Body(...),
    tree: TreeStore = Depends(get_tree_store),
    current_user: User = Depends(get_current_user),
):
    op = parse_body(_folder_update, body)

    if isinstance(op, RenameOp):
        return tree.rename_folder(folder_id, op.name, current_user.id)
    if isinstance(op, MoveFolderOp):
        return tree.move_folder(folder_id, op.parent_id, current_user.id)
    return tree.set_folder_visibility(folder_id, op.is_public, current_user.id)


@router.delete("/{folder_id}", response_model=DeleteReportRead)
def delete_folder(
    folder_id: int,
    recursive: bool = Query(False, description="Also delete all subfolders and files"),
    tree: TreeStore = Depends(get_tree_store),
    current_user: User = Depends(get_current_user),
):
    report = tree.delete_folder(folder_id, current_user.id, recursive=recursive)
    message = "Folder deleted successfully"
    if report.partial:
        message = "Folder deleted; some stored content could not be removed"
    return {
        "message": message,
        "folders_deleted": report.folders_deleted,
        "files_deleted": report.files_deleted,
        "storage_failures": [vars(f) for f in report.storage_failures],
    }

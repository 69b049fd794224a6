"""
Folder/file hierarchy operations.

All reads and writes of the tree go through ``TreeStore``. Folder names
are unique among siblings of the same owner, and parent links never form
a cycle. Moves and recursive deletes hold a per-owner write lock while
they read the parent map. Uniqueness is checked inside the write
transaction and backed by database constraints, so a racing writer
surfaces as ``ConflictError`` at commit time instead of a duplicate row.
"""

import logging
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from drive_server.core.errors import (
    ConflictError,
    InvalidOperationError,
    NotEmptyError,
    NotFoundError,
)
from drive_server.models.file import File
from drive_server.models.folder import Folder
from drive_server.models.user import User
from drive_server.schemas.ops import validate_node_name
from drive_server.services.mime import classify_mime_type, guess_mime_type
from drive_server.services.storage import new_storage_path

logger = logging.getLogger(__name__)


@dataclass
class StorageFailure:
    storage_path: str
    error: str


@dataclass
class DeleteReport:
    """Outcome of a delete. Non-empty ``storage_failures`` means a partial effect."""

    folders_deleted: int = 0
    files_deleted: int = 0
    storage_failures: list[StorageFailure] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.storage_failures)


def _clean_name(name: str) -> str:
    try:
        return validate_node_name(name or "")
    except ValueError as e:
        raise InvalidOperationError(f"Invalid name: {e}", details={"name": name}) from e


def _parent_filter(parent_id: Optional[int]):
    if parent_id is None:
        return Folder.parent_id.is_(None)
    return Folder.parent_id == parent_id


class TreeStore:
    def __init__(self, db: Session, storage):
        self.db = db
        self.storage = storage

    # ------------------------------------------------------------------
    # lookups
    # ------------------------------------------------------------------

    def _owned_folder(
        self,
        folder_id: int,
        owner_id: int,
        *,
        lock: bool = False,
        label: str = "Folder",
    ) -> Folder:
        query = self.db.query(Folder).filter(
            Folder.id == folder_id,
            Folder.owner_id == owner_id,
        )
        if lock:
            # serializes writers under the same parent; ignored by SQLite
            query = query.with_for_update()
        folder = query.first()
        if folder is None:
            raise NotFoundError(f"{label} not found", details={"folder_id": folder_id})
        return folder

    def _owned_file(self, file_id: int, owner_id: int) -> File:
        file = (
            self.db.query(File)
            .filter(File.id == file_id, File.owner_id == owner_id)
            .first()
        )
        if file is None:
            raise NotFoundError("File not found", details={"file_id": file_id})
        return file

    def get_folder(self, folder_id: int, owner_id: int) -> Folder:
        """Fetch a folder the user owns, or a public one."""
        folder = self.db.query(Folder).filter(Folder.id == folder_id).first()
        if folder is None or (folder.owner_id != owner_id and not folder.is_public):
            raise NotFoundError("Folder not found", details={"folder_id": folder_id})
        return folder

    def get_file(self, file_id: int, owner_id: int) -> File:
        file = self.db.query(File).filter(File.id == file_id).first()
        if file is None or (file.owner_id != owner_id and not file.is_public):
            raise NotFoundError("File not found", details={"file_id": file_id})
        return file

    def _parent_map(self, owner_id: int) -> dict[int, Optional[int]]:
        rows = (
            self.db.query(Folder.id, Folder.parent_id)
            .filter(Folder.owner_id == owner_id)
            .all()
        )
        return {folder_id: parent_id for folder_id, parent_id in rows}

    @staticmethod
    def _ancestor_chain(folder_id: int, parents: dict[int, Optional[int]]) -> list[int]:
        """Ids from ``folder_id`` up to its root-level ancestor, inclusive."""
        chain = []
        current: Optional[int] = folder_id
        # a well-formed tree is never deeper than its folder count
        while current is not None and len(chain) <= len(parents):
            chain.append(current)
            current = parents.get(current)
        return chain

    def _name_taken(
        self,
        owner_id: int,
        parent_id: Optional[int],
        name: str,
        exclude_id: Optional[int] = None,
    ) -> bool:
        query = self.db.query(Folder.id).filter(
            Folder.owner_id == owner_id,
            Folder.name == name,
            _parent_filter(parent_id),
        )
        if exclude_id is not None:
            query = query.filter(Folder.id != exclude_id)
        return query.first() is not None

    @contextmanager
    def _owner_tree_locked(self, owner_id: int):
        """
        Hold the write lock for one owner's tree until commit or rollback.

        Moves and recursive deletes read the whole parent map before
        writing; a second structural write for the same owner waits here
        until the first has finished. SQLite has no row locks, so the
        database write lock is taken up front instead.
        """
        if self.db.get_bind().dialect.name == "sqlite":
            connection = self.db.connection()
            # a pending write already holds the lock
            if not connection.connection.dbapi_connection.in_transaction:
                connection.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            (
                self.db.query(User.id)
                .filter(User.id == owner_id)
                .with_for_update()
                .first()
            )

        try:
            yield
        except Exception:
            self.db.rollback()
            raise

    def _commit(self, conflict_message: str, **details) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.info("Write rejected by constraint: %s", e.orig)
            raise ConflictError(conflict_message, details=details, cause=e) from e

    # ------------------------------------------------------------------
    # listings
    # ------------------------------------------------------------------

    def list_root(self, owner_id: int) -> tuple[list[Folder], list[File]]:
        folders = (
            self.db.query(Folder)
            .filter(Folder.owner_id == owner_id, Folder.parent_id.is_(None))
            .order_by(Folder.name.asc())
            .all()
        )
        files = (
            self.db.query(File)
            .filter(File.owner_id == owner_id, File.folder_id.is_(None))
            .order_by(File.created_at.desc(), File.id.desc())
            .all()
        )
        return folders, files

    def list_folder(
        self,
        folder_id: int,
        owner_id: int,
    ) -> tuple[Folder, list[Folder], list[File]]:
        folder = self.get_folder(folder_id, owner_id)

        subfolders = self.db.query(Folder).filter(Folder.parent_id == folder.id)
        files = self.db.query(File).filter(File.folder_id == folder.id)
        if folder.owner_id != owner_id:
            subfolders = subfolders.filter(Folder.is_public.is_(True))
            files = files.filter(File.is_public.is_(True))

        return (
            folder,
            subfolders.order_by(Folder.name.asc()).all(),
            files.order_by(File.created_at.desc(), File.id.desc()).all(),
        )

    def breadcrumbs(self, folder_id: int, owner_id: int) -> list[Folder]:
        """Folders from the root level down to ``folder_id``."""
        folder = self.get_folder(folder_id, owner_id)
        chain = self._ancestor_chain(folder.id, self._parent_map(folder.owner_id))
        by_id = {
            f.id: f
            for f in self.db.query(Folder).filter(Folder.id.in_(chain)).all()
        }

        trail = []
        for ancestor_id in chain:
            ancestor = by_id[ancestor_id]
            if ancestor.owner_id != owner_id and not ancestor.is_public:
                break
            trail.append(ancestor)
        trail.reverse()
        return trail

    # ------------------------------------------------------------------
    # folder mutations
    # ------------------------------------------------------------------

    def create_folder(
        self,
        name: str,
        parent_id: Optional[int],
        owner_id: int,
        is_public: bool = False,
    ) -> Folder:
        name = _clean_name(name)
        if parent_id is not None:
            self._owned_folder(parent_id, owner_id, lock=True, label="Parent folder")

        if self._name_taken(owner_id, parent_id, name):
            raise ConflictError(
                "A folder with this name already exists in this location",
                details={"name": name, "parent_id": parent_id},
            )

        folder = Folder(
            name=name,
            parent_id=parent_id,
            owner_id=owner_id,
            is_public=is_public,
        )
        self.db.add(folder)
        self._commit(
            "A folder with this name already exists in this location",
            name=name,
            parent_id=parent_id,
        )
        self.db.refresh(folder)

        logger.info("Created folder %d (%r) under %s for user %d", folder.id, name, parent_id, owner_id)
        return folder

    def rename_folder(self, folder_id: int, new_name: str, owner_id: int) -> Folder:
        new_name = _clean_name(new_name)
        folder = self._owned_folder(folder_id, owner_id, lock=True)
        if folder.parent_id is not None:
            self._owned_folder(folder.parent_id, owner_id, lock=True, label="Parent folder")

        if folder.name == new_name:
            return folder

        if self._name_taken(owner_id, folder.parent_id, new_name, exclude_id=folder.id):
            raise ConflictError(
                "A folder with this name already exists in this location",
                details={"name": new_name, "parent_id": folder.parent_id},
            )

        old_name = folder.name
        folder.name = new_name
        self._commit(
            "A folder with this name already exists in this location",
            name=new_name,
            parent_id=folder.parent_id,
        )
        self.db.refresh(folder)

        logger.info("Renamed folder %d from %r to %r", folder.id, old_name, new_name)
        return folder

    def move_folder(
        self,
        folder_id: int,
        target_parent_id: Optional[int],
        owner_id: int,
    ) -> Folder:
        with self._owner_tree_locked(owner_id):
            folder = self._owned_folder(folder_id, owner_id, lock=True)

            if target_parent_id == folder.id:
                raise InvalidOperationError(
                    "A folder cannot be its own parent",
                    details={"folder_id": folder.id},
                )

            if target_parent_id is not None:
                self._owned_folder(target_parent_id, owner_id, lock=True, label="Target folder")
                # parent map is read under the owner lock, so no other move can interleave
                chain = self._ancestor_chain(target_parent_id, self._parent_map(owner_id))
                if folder.id in chain:
                    raise InvalidOperationError(
                        "Cannot move a folder into its own descendant",
                        details={"folder_id": folder.id, "target_parent_id": target_parent_id},
                    )

            if folder.parent_id == target_parent_id:
                self.db.commit()
                return folder

            if self._name_taken(owner_id, target_parent_id, folder.name, exclude_id=folder.id):
                raise ConflictError(
                    "A folder with this name already exists in the target location",
                    details={"name": folder.name, "parent_id": target_parent_id},
                )

            old_parent_id = folder.parent_id
            folder.parent_id = target_parent_id
            self._commit(
                "A folder with this name already exists in the target location",
                name=folder.name,
                parent_id=target_parent_id,
            )
        self.db.refresh(folder)

        logger.info("Moved folder %d from %s to %s", folder.id, old_parent_id, target_parent_id)
        return folder

    def set_folder_visibility(self, folder_id: int, is_public: bool, owner_id: int) -> Folder:
        folder = self._owned_folder(folder_id, owner_id)
        folder.is_public = is_public
        self.db.commit()
        self.db.refresh(folder)
        return folder

    def delete_folder(self, folder_id: int, owner_id: int, recursive: bool = False) -> DeleteReport:
        report = DeleteReport()

        with self._owner_tree_locked(owner_id):
            folder = self._owned_folder(folder_id, owner_id)

            subfolder_count = (
                self.db.query(func.count(Folder.id))
                .filter(Folder.parent_id == folder.id)
                .scalar()
            )
            file_count = (
                self.db.query(func.count(File.id))
                .filter(File.folder_id == folder.id)
                .scalar()
            )
            if (subfolder_count or file_count) and not recursive:
                raise NotEmptyError(folder.id, subfolder_count, file_count)

            levels = self._subtree_levels(folder.id, owner_id)
            folder_ids = [fid for level in levels for fid in level]

            files = self.db.query(File).filter(File.folder_id.in_(folder_ids)).all()
            file_ids = [f.id for f in files]

            # TODO: add a reconciliation sweep for rows whose storage object was
            # removed before a crash interrupted the metadata delete below.
            for file in files:
                self._remove_storage(file.storage_path, report)

            if file_ids:
                self.db.query(File).filter(File.id.in_(file_ids)).delete(
                    synchronize_session=False
                )
            # children before parents
            for level in reversed(levels):
                self.db.query(Folder).filter(Folder.id.in_(level)).delete(
                    synchronize_session=False
                )
            self.db.commit()

        report.files_deleted = len(file_ids)
        report.folders_deleted = len(folder_ids)
        logger.info(
            "Deleted folder %d (%d folders, %d files, %d storage failures)",
            folder_id,
            report.folders_deleted,
            report.files_deleted,
            len(report.storage_failures),
        )
        return report

    def _subtree_levels(self, folder_id: int, owner_id: int) -> list[list[int]]:
        """Breadth-first levels of the subtree rooted at ``folder_id``."""
        children: dict[Optional[int], list[int]] = defaultdict(list)
        for child_id, parent_id in self._parent_map(owner_id).items():
            children[parent_id].append(child_id)

        levels = [[folder_id]]
        while True:
            next_level = [c for fid in levels[-1] for c in children.get(fid, ())]
            if not next_level:
                return levels
            levels.append(next_level)

    # ------------------------------------------------------------------
    # file mutations
    # ------------------------------------------------------------------

    def upload_file(
        self,
        owner_id: int,
        folder_id: Optional[int],
        filename: str,
        content: bytes,
        mime_type: Optional[str] = None,
    ) -> File:
        """
        Persist content to storage, then record its metadata.

        A storage failure aborts before any metadata is written. When the
        metadata write fails the stored object is removed again.
        """
        # browsers may send a relative path; keep the last segment only
        name = _clean_name(PurePosixPath((filename or "").replace("\\", "/")).name)
        if folder_id is not None:
            self._owned_folder(folder_id, owner_id, label="Target folder")

        mime_type = guess_mime_type(name, mime_type)
        storage_path = new_storage_path(owner_id, name)
        self.storage.write(storage_path, content)

        record = File(
            name=name,
            original_name=name,
            file_type=classify_mime_type(mime_type),
            mime_type=mime_type,
            size_bytes=len(content),
            storage_path=storage_path,
            folder_id=folder_id,
            owner_id=owner_id,
            is_public=False,
        )
        self.db.add(record)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Metadata write failed, rolling back storage upload: %s", storage_path)
            self._remove_storage(storage_path, DeleteReport())
            if isinstance(e, IntegrityError):
                raise ConflictError(
                    "Upload conflicts with the current tree state",
                    details={"folder_id": folder_id},
                    cause=e,
                ) from e
            raise
        self.db.refresh(record)

        logger.info("Uploaded file %d (%r, %d bytes) to %s", record.id, name, record.size_bytes, storage_path)
        return record

    def rename_file(self, file_id: int, new_name: str, owner_id: int) -> File:
        new_name = _clean_name(new_name)
        file = self._owned_file(file_id, owner_id)
        file.name = new_name
        self.db.commit()
        self.db.refresh(file)
        logger.info("Renamed file %d to %r", file.id, new_name)
        return file

    def move_file(self, file_id: int, target_folder_id: Optional[int], owner_id: int) -> File:
        file = self._owned_file(file_id, owner_id)
        if target_folder_id is not None:
            self._owned_folder(target_folder_id, owner_id, label="Target folder")

        file.folder_id = target_folder_id
        self._commit("Target folder changed concurrently", folder_id=target_folder_id)
        self.db.refresh(file)
        logger.info("Moved file %d to folder %s", file.id, target_folder_id)
        return file

    def set_file_visibility(self, file_id: int, is_public: bool, owner_id: int) -> File:
        file = self._owned_file(file_id, owner_id)
        file.is_public = is_public
        self.db.commit()
        self.db.refresh(file)
        return file

    def delete_file(self, file_id: int, owner_id: int) -> DeleteReport:
        file = self._owned_file(file_id, owner_id)
        report = DeleteReport()

        self._remove_storage(file.storage_path, report)
        self.db.delete(file)
        self.db.commit()

        report.files_deleted = 1
        logger.info("Deleted file %d", file_id)
        return report

    def _remove_storage(self, storage_path: str, report: DeleteReport) -> None:
        """Best-effort removal; failures are logged and recorded, never raised."""
        try:
            if not self.storage.delete(storage_path):
                logger.warning("Storage object already missing: %s", storage_path)
        except Exception as e:
            logger.exception("Failed to delete storage object (orphaned): %s", storage_path)
            report.storage_failures.append(StorageFailure(storage_path, str(e)))

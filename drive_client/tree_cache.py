"""
Client-side cache of the folder tree.

Nodes are stored flat, keyed by id, with parent -> children indices.
Listings from the server replace one level at a time; nothing here is
authoritative and any level can be reloaded.
"""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class FolderNode:
    id: int
    name: str
    parent_id: Optional[int]
    is_public: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "FolderNode":
        return cls(
            id=data["id"],
            name=data["name"],
            parent_id=data.get("parent_id"),
            is_public=data.get("is_public", False),
        )


@dataclass
class FileNode:
    id: int
    name: str
    folder_id: Optional[int]
    file_type: str = "other"
    size_bytes: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "FileNode":
        return cls(
            id=data["id"],
            name=data["name"],
            folder_id=data.get("folder_id"),
            file_type=data.get("file_type", "other"),
            size_bytes=data.get("size_bytes", 0),
        )


class TreeCache:
    def __init__(self) -> None:
        self.folders: dict[int, FolderNode] = {}
        self.files: dict[int, FileNode] = {}
        self._child_folders: dict[Optional[int], set[int]] = {}
        self._child_files: dict[Optional[int], set[int]] = {}

    # ---- loading ----

    def load_root(self, listing: dict[str, Any]) -> None:
        """Replace the root level with a ``GET /folders`` response."""
        self._replace_level(None, listing.get("folders", []), listing.get("files", []))

    def load_folder(self, listing: dict[str, Any]) -> None:
        """Replace one folder's level with a ``GET /folders/{id}`` response."""
        folder = FolderNode.from_api(listing["folder"])
        self._put_folder(folder)
        self._replace_level(folder.id, listing.get("subfolders", []), listing.get("files", []))

    def load_breadcrumbs(self, trail: list[dict[str, Any]]) -> None:
        for data in trail:
            self._put_folder(FolderNode.from_api(data))

    def _replace_level(
        self,
        parent_id: Optional[int],
        folders: list[dict[str, Any]],
        files: list[dict[str, Any]],
    ) -> None:
        fresh_folders = [FolderNode.from_api(f) for f in folders]
        fresh_files = [FileNode.from_api(f) for f in files]

        stale_folders = self._child_folders.get(parent_id, set()) - {f.id for f in fresh_folders}
        for folder_id in stale_folders:
            self.forget_folder(folder_id)
        for file_id in list(self._child_files.get(parent_id, set())):
            self.forget_file(file_id)

        for folder in fresh_folders:
            self._put_folder(folder)
        for file in fresh_files:
            self._put_file(file)

    def _put_folder(self, folder: FolderNode) -> None:
        previous = self.folders.get(folder.id)
        if previous is not None and previous.parent_id != folder.parent_id:
            self._child_folders.get(previous.parent_id, set()).discard(folder.id)
        self.folders[folder.id] = folder
        self._child_folders.setdefault(folder.parent_id, set()).add(folder.id)

    def _put_file(self, file: FileNode) -> None:
        previous = self.files.get(file.id)
        if previous is not None and previous.folder_id != file.folder_id:
            self._child_files.get(previous.folder_id, set()).discard(file.id)
        self.files[file.id] = file
        self._child_files.setdefault(file.folder_id, set()).add(file.id)

    # ---- removal ----

    def forget_file(self, file_id: int) -> None:
        file = self.files.pop(file_id, None)
        if file is not None:
            self._child_files.get(file.folder_id, set()).discard(file_id)

    def forget_folder(self, folder_id: int) -> None:
        """Drop a folder and everything cached beneath it."""
        stack = [folder_id]
        while stack:
            current = stack.pop()
            stack.extend(self._child_folders.pop(current, ()))
            for file_id in self._child_files.pop(current, ()):
                self.files.pop(file_id, None)
            folder = self.folders.pop(current, None)
            if folder is not None:
                self._child_folders.get(folder.parent_id, set()).discard(current)

    # ---- queries ----

    def subfolders(self, folder_id: Optional[int]) -> list[FolderNode]:
        ids = self._child_folders.get(folder_id, ())
        return sorted((self.folders[i] for i in ids), key=lambda f: f.name.lower())

    def files_in(self, folder_id: Optional[int]) -> list[FileNode]:
        ids = self._child_files.get(folder_id, ())
        return sorted((self.files[i] for i in ids), key=lambda f: f.name.lower())

    def breadcrumbs(self, folder_id: Optional[int]) -> list[FolderNode]:
        """
        Cached folders from the root level down to ``folder_id``.

        Stops early at the first ancestor that is not cached.
        """
        trail = []
        current = folder_id
        while current is not None and current in self.folders and len(trail) <= len(self.folders):
            folder = self.folders[current]
            trail.append(folder)
            current = folder.parent_id
        trail.reverse()
        return trail

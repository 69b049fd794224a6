from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from drive_server.schemas.file import FileRead
from drive_server.schemas.ops import MAX_NAME_LENGTH, RenameOp, VisibilityOp, validate_node_name


class FolderBase(BaseModel):
    name: str = Field(..., max_length=MAX_NAME_LENGTH)
    parent_id: Optional[int] = None


class FolderCreate(FolderBase):
    is_public: bool = False

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        return validate_node_name(value)


class FolderRead(FolderBase):
    id: int
    owner_id: int
    is_public: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MoveFolderOp(BaseModel):
    op: Literal["move"]
    parent_id: Optional[int] = None


FolderUpdate = Annotated[
    Union[RenameOp, MoveFolderOp, VisibilityOp],
    Field(discriminator="op"),
]


class FolderContents(BaseModel):
    folder: FolderRead
    subfolders: list[FolderRead]
    files: list[FileRead]


class RootListing(BaseModel):
    folders: list[FolderRead]
    files: list[FileRead]


class StorageFailureRead(BaseModel):
    storage_path: str
    error: str


class DeleteReportRead(BaseModel):
    message: str
    folders_deleted: int = 0
    files_deleted: int = 0
    storage_failures: list[StorageFailureRead] = []

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from drive_server.schemas.ops import RenameOp, VisibilityOp


class FileBase(BaseModel):
    name: str
    folder_id: Optional[int] = None


class FileRead(FileBase):
    id: int
    original_name: str
    file_type: str
    mime_type: str
    size_bytes: int
    owner_id: int
    is_public: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MoveFileOp(BaseModel):
    op: Literal["move"]
    folder_id: Optional[int] = None


FileUpdate = Annotated[
    Union[RenameOp, MoveFileOp, VisibilityOp],
    Field(discriminator="op"),
]

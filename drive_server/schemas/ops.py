from typing import Literal

from pydantic import BaseModel, Field, field_validator

MAX_NAME_LENGTH = 255


def validate_node_name(value: str) -> str:
    """Strip surrounding whitespace and reject names that cannot be path segments."""
    value = value.strip()
    if not value:
        raise ValueError("name must not be empty")
    if len(value) > MAX_NAME_LENGTH:
        raise ValueError(f"name must be at most {MAX_NAME_LENGTH} characters")
    if "/" in value or "\\" in value:
        raise ValueError("name must not contain path separators")
    if value in (".", ".."):
        raise ValueError("name must not be '.' or '..'")
    return value


class RenameOp(BaseModel):
    op: Literal["rename"]
    name: str = Field(..., max_length=MAX_NAME_LENGTH)

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        return validate_node_name(value)


class VisibilityOp(BaseModel):
    op: Literal["set_visibility"]
    is_public: bool

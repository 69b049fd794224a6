from typing import Any

from fastapi import Depends
from fastapi.exceptions import RequestValidationError
from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from drive_server.db.session import get_db
from drive_server.services.storage import LocalDiskStorage, get_storage
from drive_server.services.tree_store import TreeStore


def get_tree_store(
    db: Session = Depends(get_db),
    storage: LocalDiskStorage = Depends(get_storage),
) -> TreeStore:
    return TreeStore(db, storage)


def parse_body(adapter: TypeAdapter, body: Any):
    """Validate a raw JSON body against a tagged union, reporting errors as a 422."""
    try:
        return adapter.validate_python(body)
    except ValidationError as e:
        raise RequestValidationError(
            [{**err, "loc": ("body", *err["loc"])} for err in e.errors(include_url=False)]
        ) from e

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from drive_server.api.routes import files, folders, users
from drive_server.core.config import settings
from drive_server.core.errors import DriveError, status_code_for
from drive_server.core.logging_config import setup_logging
from drive_server.db.base import Base
from drive_server.db.session import engine
import drive_server.models  # noqa: F401  # import models so metadata is populated

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    Path(settings.STORAGE_DIR).mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(bind=engine)
    logger.info("%s started (storage at %s)", settings.PROJECT_NAME, settings.STORAGE_DIR)
    yield


async def drive_error_handler(request: Request, exc: DriveError):
    return JSONResponse(
        status_code=status_code_for(exc),
        content={"error": exc.kind, "message": exc.message, "details": exc.details},
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "message": "Internal database error", "details": {}},
    )


def create_app() -> FastAPI:
    app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

    # include routers
    app.include_router(users.router)
    app.include_router(folders.router)
    app.include_router(files.router)

    app.add_exception_handler(DriveError, drive_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()

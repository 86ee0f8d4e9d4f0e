import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from config import Settings, get_settings
from error_monitoring import ErrorMonitor, setup_logging
from init_db import initialize, migrate_legacy_notes
from llm_utils import NoteAssistant
from services.ai_adapter import build_ai_adapter
from services.ai_router import router as ai_router
from services.auth_router import router as auth_router
from services.auth_service import UserStore
from services.errors import NotesError
from services.note_store import NoteStore
from services.notes_router import router as notes_router
from services.upload_router import router as upload_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database, wire the stores and import legacy data."""
    settings: Settings = app.state.settings
    setup_logging(settings)
    logger.info("Starting notes service...")

    db = initialize(settings)
    app.state.db = db
    app.state.note_store = NoteStore(db)
    app.state.user_store = UserStore(db)
    app.state.assistant = NoteAssistant(build_ai_adapter(settings))

    migrate_legacy_notes(settings, app.state.note_store, app.state.user_store)
    logger.info("Notes service started")

    yield

    logger.info("Shutting down notes service...")
    db.close_all_connections()


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Notes API",
        description="Personal notes with full-text search and AI assistance",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.error_monitor = ErrorMonitor(settings.logs_dir / "errors.jsonl")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(NotesError)
    async def notes_error_handler(request: Request, exc: NotesError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": _first_validation_message(exc)})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        request.app.state.error_monitor.capture_error(
            exc,
            component="http",
            context={"url": str(request.url), "method": request.method},
        )
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    app.include_router(auth_router)
    app.include_router(notes_router)
    app.include_router(ai_router)
    app.include_router(upload_router)

    @app.get("/api/health")
    def health(request: Request):
        db_health = request.app.state.db.health_check()
        monitor_health = request.app.state.error_monitor.health_check()
        status = "healthy" if db_health["connection_test"] else "unhealthy"
        return {
            "status": status,
            "database": db_health,
            "errors": monitor_health,
        }

    settings.uploads_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=str(settings.uploads_dir)), name="uploads")

    return app


if __name__ == "__main__":
    import uvicorn

    # uvicorn app:create_app --factory
    uvicorn.run("app:create_app", factory=True, host="0.0.0.0", port=3001, reload=False)

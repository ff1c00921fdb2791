"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from file_service.config import Settings, get_settings
from file_service.database import build_engine, build_session_factory, create_tables
from file_service.errors import register_error_handlers, safe_error_message
from file_service.logging_config import setup_logging
from file_service.middleware import RequestDeadlineMiddleware
from file_service.repositories.file_repository import FileRepository
from file_service.routes.files import get_file_service, router as files_router
from file_service.services.file_service import FileService
from file_service.services.file_storage import create_object_store
from file_service.services.summarizer import create_summary_provider

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application. Adapters are created in the lifespan and owned by app.state."""
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables and the bucket on startup, wire the coordinator."""
        engine = build_engine(settings)
        await create_tables(engine)

        storage = create_object_store(settings)
        await storage.ensure_bucket(storage.bucket)
        logger.info(f"Bucket {storage.bucket!r} is ready ({settings.FILE_STORAGE_TYPE})")

        app.state.file_service = FileService(
            repository=FileRepository(build_session_factory(engine)),
            storage=storage,
            summarizer=create_summary_provider(settings),
            max_analysis_chars=settings.ANALYSIS_MAX_CHARS,
        )

        yield

        # Cleanup
        await engine.dispose()

    app = FastAPI(
        title="File Service API",
        version="1.0.0",
        description="Upload files to object storage, track their metadata and summarize their content.",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Deadline first so CORS wraps it and its 504 carries CORS headers
    app.add_middleware(RequestDeadlineMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS)

    # CORS
    origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    @app.get("/api/health")
    async def health_check(service: FileService = Depends(get_file_service)):
        """Verify API and database connectivity."""
        try:
            await service.ping()
            return {"status": "ok", "database": "connected"}
        except Exception as e:
            return {"status": "error", "database": safe_error_message(e)}

    app.include_router(files_router)
    return app


app = create_app()


def main() -> None:
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.API_PORT)


if __name__ == "__main__":
    main()

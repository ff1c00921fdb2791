"""Error taxonomy for the file service and its FastAPI exception handler.

Every failure the coordinator or its adapters can surface is a subclass of
FileServiceError. Each class carries the single HTTP status it maps to, so
route handlers never translate errors themselves.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class FileServiceError(Exception):
    """Base class for all file service errors."""

    status_code: int = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class InvalidRequest(FileServiceError):
    """Malformed client input (missing multipart field, non-integer id)."""

    status_code = 400


# ── Object storage ───────────────────────────────────────────────

class StoreError(FileServiceError):
    """Base for object-storage failures."""


class StoreUnavailable(StoreError):
    """The storage backend could not be reached."""


class StoreWriteFailed(StoreError):
    """The backend rejected a write or delete."""


class StoreProvisionFailed(StoreError):
    """The backend refused to create the bucket."""


class StoreObjectNotFound(StoreError):
    """No object exists under the requested key."""

    status_code = 404

    def __init__(self, object_key: str, message: str = ""):
        super().__init__(message or f"Object not found: {object_key}")
        self.object_key = object_key


# ── Relational metadata ──────────────────────────────────────────

class PersistenceError(FileServiceError):
    """Base for metadata store failures."""


class PersistenceWriteFailed(PersistenceError):
    """Insert, update or delete failed on a constraint or connectivity error."""


class PersistenceReadFailed(PersistenceError):
    """A query against the metadata store failed."""


class RecordNotFound(FileServiceError):
    """No file record has the requested id."""

    status_code = 404

    def __init__(self, record_id: int, message: str = ""):
        super().__init__(message or f"File not found: {record_id}")
        self.record_id = record_id


# ── Summaries ────────────────────────────────────────────────────

class SummarizationFailed(FileServiceError):
    """The text-completion provider failed or returned nothing usable."""


def safe_error_message(e: Exception, fallback: str = "Operation failed") -> str:
    """Extract a meaningful error message from an exception.

    Some exceptions (especially from third-party SDKs) produce an empty
    str(e). This helper falls back to the exception class name.
    """
    msg = str(e).strip()
    if not msg:
        msg = f"{type(e).__name__}: {fallback}"
    return msg


async def handle_file_service_error(request: Request, exc: FileServiceError) -> JSONResponse:
    """Render a FileServiceError as {"detail": ...} with its mapped status."""
    detail: Optional[str] = exc.message or safe_error_message(exc)
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed: %s", request.method, request.url.path, detail,
            exc_info=(type(exc), exc, exc.__traceback__),
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": detail})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FileServiceError, handle_file_service_error)

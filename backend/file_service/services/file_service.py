"""File lifecycle coordinator.

Keeps the object store and the metadata table consistent across the
two-system operations. Neither system shares a transaction with the other,
so each operation is a short saga with a fixed ordering:

    upload:  write object -> insert row   (row failure deletes the object)
    upload and analyze: write object -> summarize -> insert row with resume
             (summary or row failure deletes the object)
    delete:  remove object -> delete row  (row failure leaves the row behind)
    analyze: read object  -> update row   (any failure mutates nothing)

Nothing records in-progress state. A crash between the two steps can leave
an object without a row, or a row whose object is gone; nothing reconciles
those afterwards.
"""
import asyncio
import io
import logging
import uuid
from datetime import datetime, timezone
from typing import BinaryIO, Optional

from file_service.errors import RecordNotFound, safe_error_message
from file_service.models.file_record import DEFAULT_MIME_TYPE, FileRecord
from file_service.repositories.file_repository import FileRepository
from file_service.services.file_storage import BaseObjectStore, ObjectStream
from file_service.services.summarizer import BaseSummaryProvider

logger = logging.getLogger(__name__)

MAX_ANALYSIS_CONTENT_LEN = 100_000


def generate_object_key(filename: str, now: Optional[datetime] = None) -> str:
    """Build `YYYY/MM/DD/<uuid4>_<basename>`.

    The random token makes keys unique even for identical names uploaded at
    the same instant; the date prefix is only for browsing the bucket.
    """
    now = now or datetime.now(timezone.utc)
    basename = filename.replace("\\", "/").rsplit("/", 1)[-1] or "unnamed"
    return f"{now:%Y/%m/%d}/{uuid.uuid4()}_{basename}"


class FileService:
    """Coordinates FileRepository, an object store and a summary provider."""

    def __init__(
        self,
        repository: FileRepository,
        storage: BaseObjectStore,
        summarizer: BaseSummaryProvider,
        max_analysis_chars: int = MAX_ANALYSIS_CONTENT_LEN,
    ):
        self.repository = repository
        self.storage = storage
        self.summarizer = summarizer
        self.max_analysis_chars = max_analysis_chars

    async def upload(
        self,
        filename: str,
        content: BinaryIO,
        size: int,
        content_type: Optional[str] = None,
    ) -> FileRecord:
        """Store the bytes, then the metadata row. Returns the persisted record."""
        content_type = content_type or DEFAULT_MIME_TYPE
        object_key = generate_object_key(filename)

        await self.storage.upload(object_key, content, size, content_type)

        try:
            record = await self.repository.create(
                name=filename,
                size=size,
                mime_type=content_type,
                object_key=object_key,
            )
        except BaseException:
            # Includes cancellation by the request deadline
            await self._discard_object(object_key, "failed insert")
            raise

        logger.info(f"Uploaded file {record.id} ({size} bytes) as {object_key}")
        return record

    async def upload_and_analyze(
        self,
        filename: str,
        content: BinaryIO,
        size: int,
        content_type: Optional[str] = None,
    ) -> FileRecord:
        """Store the bytes, summarize them, then insert the row with its resume.

        A summary or insert failure removes the stored object, so no row ever
        exists without a resume on this path.
        """
        content_type = content_type or DEFAULT_MIME_TYPE
        object_key = generate_object_key(filename)
        data = content.read()

        await self.storage.upload(object_key, io.BytesIO(data), size, content_type)

        try:
            resume = await self.summarizer.summarize(self._analysis_text(data))
        except BaseException:
            await self._discard_object(object_key, "failed summary")
            raise

        try:
            record = await self.repository.create(
                name=filename,
                size=size,
                mime_type=content_type,
                object_key=object_key,
                resume=resume,
            )
        except BaseException:
            await self._discard_object(object_key, "failed insert")
            raise

        logger.info(f"Uploaded and analyzed file {record.id} ({size} bytes) as {object_key}")
        return record

    async def _discard_object(self, object_key: str, reason: str) -> None:
        """Compensating delete. Its own failure must not mask the original error.

        Shielded so a second cancellation cannot interrupt the delete itself.
        """
        try:
            await asyncio.shield(self.storage.delete(object_key))
        except Exception as e:
            logger.warning(
                f"Could not remove orphaned object {object_key} after {reason}: "
                f"{safe_error_message(e)}"
            )
        else:
            logger.info(f"Removed object {object_key} after {reason}")

    def _analysis_text(self, content: bytes) -> str:
        text = content.decode("utf-8", errors="replace")
        if len(text) > self.max_analysis_chars:
            logger.debug(f"Truncating {len(text)} characters to {self.max_analysis_chars}")
            text = text[: self.max_analysis_chars]
        return text

    async def list_files(self) -> list[FileRecord]:
        return await self.repository.list()

    async def get_file(self, file_id: int) -> FileRecord:
        return await self.repository.get_by_id(file_id)

    async def open_download(self, file_id: int) -> tuple[FileRecord, ObjectStream]:
        """Return the record and an open stream of its bytes. The caller closes the stream."""
        record = await self.repository.get_by_id(file_id)
        stream = await self.storage.download(record.object_key)
        return record, stream

    async def delete(self, file_id: int) -> None:
        """Remove the object first, then the row.

        If the object delete fails the row stays, so the file is still listed
        while its bytes may exist. If the row delete fails after the object is
        gone, the row is left pointing at nothing; the object is not restored.
        """
        record = await self.repository.get_by_id(file_id)

        await self.storage.delete(record.object_key)

        try:
            await self.repository.delete(file_id)
        except RecordNotFound:
            logger.warning(f"Row {file_id} was deleted concurrently after its object was removed")
            raise
        except Exception as e:
            logger.error(
                f"Object {record.object_key} removed but row {file_id} was not deleted: "
                f"{safe_error_message(e)}"
            )
            raise

        logger.info(f"Deleted file {file_id} ({record.object_key})")

    async def analyze(self, file_id: int) -> FileRecord:
        """Summarize the file's content and store the result as its resume."""
        record = await self.repository.get_by_id(file_id)

        async with await self.storage.download(record.object_key) as stream:
            content = await stream.read()

        resume = await self.summarizer.summarize(self._analysis_text(content))

        updated = await self.repository.update_resume(file_id, resume)
        logger.info(f"Stored resume for file {file_id} ({len(resume)} characters)")
        return updated

    async def ping(self) -> None:
        """Check metadata store connectivity."""
        await self.repository.ping()

"""CRUD over the files table.

Each method opens its own session from the injected factory, so the
repository can be shared across concurrent requests.
"""
import logging
from typing import Optional

from sqlalchemy import delete, desc, func, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from file_service.errors import (
    PersistenceReadFailed,
    PersistenceWriteFailed,
    RecordNotFound,
)
from file_service.models.file_record import FileRecord

logger = logging.getLogger(__name__)


class FileRepository:
    """Metadata store for uploaded files."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(
        self,
        name: str,
        size: int,
        mime_type: str,
        object_key: str,
        resume: Optional[str] = None,
    ) -> FileRecord:
        """Insert a row and return it with id and timestamps populated."""
        record = FileRecord(
            name=name,
            size=size,
            mime_type=mime_type,
            object_key=object_key,
            resume=resume,
        )
        async with self._session_factory() as db:
            try:
                db.add(record)
                await db.commit()
                await db.refresh(record)
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Insert of file record for {object_key} failed: {e}")
                raise PersistenceWriteFailed(f"save file record: {e}") from e
        return record

    async def list(self) -> list[FileRecord]:
        """All records, most recent first."""
        async with self._session_factory() as db:
            try:
                result = await db.execute(
                    select(FileRecord).order_by(desc(FileRecord.created_at), desc(FileRecord.id))
                )
            except SQLAlchemyError as e:
                raise PersistenceReadFailed(f"list files: {e}") from e
            return list(result.scalars().all())

    async def get_by_id(self, file_id: int) -> FileRecord:
        async with self._session_factory() as db:
            try:
                record = await db.get(FileRecord, file_id)
            except SQLAlchemyError as e:
                raise PersistenceReadFailed(f"get file by id: {e}") from e
        if record is None:
            raise RecordNotFound(file_id)
        return record

    async def update_resume(self, file_id: int, resume: str) -> FileRecord:
        """Overwrite the summary in a single statement and return the updated row."""
        stmt = (
            update(FileRecord)
            .where(FileRecord.id == file_id)
            .values(resume=resume, updated_at=func.now())
            .returning(FileRecord)
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as db:
            try:
                result = await db.execute(stmt)
                record = result.scalar_one_or_none()
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise PersistenceWriteFailed(f"update resume: {e}") from e
        if record is None:
            raise RecordNotFound(file_id)
        return record

    async def delete(self, file_id: int) -> None:
        async with self._session_factory() as db:
            try:
                result = await db.execute(delete(FileRecord).where(FileRecord.id == file_id))
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise PersistenceWriteFailed(f"delete file record: {e}") from e
        if result.rowcount == 0:
            raise RecordNotFound(file_id, f"File with id {file_id} not found")

    async def ping(self) -> None:
        """Round-trip to the database; raises on connectivity failure."""
        async with self._session_factory() as db:
            await db.execute(text("SELECT 1"))

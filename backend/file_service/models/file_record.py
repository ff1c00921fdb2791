"""FileRecord model - file metadata (actual bytes live in the object store)."""
from typing import Optional
from sqlalchemy import BigInteger, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from file_service.models.base import Base, TimestampMixin

DEFAULT_MIME_TYPE = "application/octet-stream"


class FileRecord(Base, TimestampMixin):
    __tablename__ = "files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False, default=DEFAULT_MIME_TYPE)
    object_key: Mapped[str] = mapped_column(String(1024), nullable=False, unique=True)
    resume: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_files_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<FileRecord id={self.id} name={self.name!r} object_key={self.object_key!r}>"

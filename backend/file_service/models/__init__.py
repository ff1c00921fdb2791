"""Import all models so SQLAlchemy metadata knows about them."""
from file_service.models.base import Base
from file_service.models.file_record import FileRecord

__all__ = ["Base", "FileRecord"]

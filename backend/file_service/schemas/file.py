"""File response schemas."""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class FileResponse(BaseModel):
    id: int
    name: str
    size: int
    mime_type: str
    object_key: str
    created_at: datetime
    updated_at: datetime
    resume: Optional[str] = Field(default=None, description="AI-generated overview, absent until analyzed")

    model_config = {"from_attributes": True}

"""Note domain model."""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime, timezone
from uuid import uuid4


class NoteUpdate(BaseModel):
    """Partial update for a note. Only fields that are set get merged."""
    title: Optional[str] = None
    content: Optional[str] = None


class Note(BaseModel):
    """A titled rich-text document.

    ``content`` is the editor's serialized document and is never interpreted here.
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str = ""
    content: str = ""
    last_modified: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

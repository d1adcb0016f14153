"""Workspace-level models: persisted snapshot and status reporting."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.models.domain.message import Message
from app.models.domain.note import Note
from app.models.enums import NoteField, SaveState


class WorkspaceSnapshot(BaseModel):
    """Everything that survives a restart. The active selection does not."""

    notes: list[Note] = Field(default_factory=list)
    messages: dict[str, list[Message]] = Field(default_factory=dict)


class FieldSaveStatus(BaseModel):
    """Autosave status for one (note, field) pair."""

    note_id: str
    field: NoteField
    state: SaveState = SaveState.IDLE
    saved_at: Optional[datetime] = None


class PersistenceStatus(BaseModel):
    """Outcome of the most recent snapshot write."""

    ok: bool = True
    last_saved_at: Optional[datetime] = None
    last_error: Optional[str] = None


class ActiveNoteRequest(BaseModel):
    """Payload for selecting the active note."""

    note_id: Optional[str] = None


class ActiveNoteResponse(BaseModel):
    note_id: Optional[str] = None

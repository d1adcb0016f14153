"""Domain models: notes, their conversation threads and workspace state."""

from app.models.domain.note import Note, NoteUpdate
from app.models.domain.message import Message, MessageStateError
from app.models.domain.chat import ChatMessageRequest, TurnOutcome, ThreadResponse
from app.models.domain.workspace import (
    WorkspaceSnapshot,
    FieldSaveStatus,
    PersistenceStatus,
    ActiveNoteRequest,
    ActiveNoteResponse,
)

__all__ = [
    "Note", "NoteUpdate",
    "Message", "MessageStateError",
    "ChatMessageRequest", "TurnOutcome", "ThreadResponse",
    "WorkspaceSnapshot", "FieldSaveStatus", "PersistenceStatus",
    "ActiveNoteRequest", "ActiveNoteResponse",
]

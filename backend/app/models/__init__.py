"""
Inkwell models.

Usage:
    from app.models import Note, NoteUpdate, Message
    from app.models import MessageRole, MessageStatus, TurnState
    from app.models import GenerationResult
"""

# --- Enums ---
from app.models.enums import (
    MessageRole,
    MessageStatus,
    TurnState,
    SaveState,
    NoteField,
)

# --- Domain models ---
from app.models.domain import (
    Note, NoteUpdate,
    Message, MessageStateError,
    ChatMessageRequest, TurnOutcome, ThreadResponse,
    WorkspaceSnapshot, FieldSaveStatus, PersistenceStatus,
    ActiveNoteRequest, ActiveNoteResponse,
)

# --- Result models ---
from app.models.results import GenerationResult

__all__ = [
    # Enums
    "MessageRole", "MessageStatus", "TurnState", "SaveState", "NoteField",
    # Domain
    "Note", "NoteUpdate",
    "Message", "MessageStateError",
    "ChatMessageRequest", "TurnOutcome", "ThreadResponse",
    "WorkspaceSnapshot", "FieldSaveStatus", "PersistenceStatus",
    "ActiveNoteRequest", "ActiveNoteResponse",
    # Results
    "GenerationResult",
]

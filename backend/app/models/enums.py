"""
Enum definitions for the Inkwell API.
"""
from enum import Enum


class MessageRole(str, Enum):
    """Who authored a chat message."""
    USER = "user"
    ASSISTANT = "assistant"


class MessageStatus(str, Enum):
    """Lifecycle of a single message.

    User messages are born COMPLETE. Assistant messages start PENDING
    (the "Thinking..." placeholder) and settle exactly once.
    """
    PENDING = "pending"
    COMPLETE = "complete"
    FAILED = "failed"


class TurnState(str, Enum):
    """Where one assistant turn is in its lifecycle."""
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    RESOLVED = "resolved"
    FAILED = "failed"


class SaveState(str, Enum):
    """Autosave status of one editable field."""
    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"


class NoteField(str, Enum):
    """Editable note fields that autosave independently."""
    TITLE = "title"
    CONTENT = "content"

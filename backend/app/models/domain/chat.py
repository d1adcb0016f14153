"""Request/response models for assistant turns."""

from pydantic import BaseModel, Field
from typing import Optional

from app.models.domain.message import Message
from app.models.enums import TurnState


class ChatMessageRequest(BaseModel):
    """Payload for submitting a user message to a note's assistant."""

    message: str = Field(max_length=12000)
    wait: bool = False


class TurnOutcome(BaseModel):
    """What happened to one submitted turn.

    ``state`` is IDLE when the input was rejected, AWAITING_RESPONSE when the
    turn was started in the background, RESOLVED or FAILED once settled.
    """

    note_id: str
    state: TurnState
    user_message: Optional[Message] = None
    assistant_message: Optional[Message] = None
    error: Optional[str] = None


class ThreadResponse(BaseModel):
    """A note's thread together with the assistant's turn state for it."""

    note_id: str
    state: TurnState
    messages: list[Message] = Field(default_factory=list)

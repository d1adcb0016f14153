"""Chat message domain model."""

from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.enums import MessageRole, MessageStatus


class MessageStateError(ValueError):
    """Raised for a message transition that the lifecycle does not allow."""


class Message(BaseModel):
    """One entry of a note's conversation thread.

    Messages are immutable; settling a placeholder produces a new instance
    with the same id, which the conversation store swaps in place.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    content: str
    role: MessageRole
    status: MessageStatus = MessageStatus.COMPLETE

    @model_validator(mode="after")
    def _user_messages_are_final(self):
        if self.role == MessageRole.USER and self.status != MessageStatus.COMPLETE:
            raise MessageStateError("User messages are always complete")
        return self

    @property
    def is_loading(self) -> bool:
        return self.status == MessageStatus.PENDING

    @property
    def is_settled(self) -> bool:
        return self.status != MessageStatus.PENDING

    @classmethod
    def from_user(cls, content: str) -> "Message":
        return cls(content=content, role=MessageRole.USER)

    @classmethod
    def placeholder(cls, content: str) -> "Message":
        return cls(content=content, role=MessageRole.ASSISTANT, status=MessageStatus.PENDING)

    def _settle(self, content: str, status: MessageStatus) -> "Message":
        if not self.is_loading:
            raise MessageStateError(f"Message {self.id} is already {self.status.value}")
        return self.model_copy(update={"content": content, "status": status})

    def resolve(self, content: str) -> "Message":
        """Settle a placeholder with the generated answer."""
        return self._settle(content, MessageStatus.COMPLETE)

    def fail(self, content: str) -> "Message":
        """Settle a placeholder with a user-visible error text."""
        return self._settle(content, MessageStatus.FAILED)

"""Prompt builders shared across services."""

from collections.abc import Sequence

from app.models import Message, MessageRole

ROLE_LABELS: dict[MessageRole, str] = {
    MessageRole.USER: "User",
    MessageRole.ASSISTANT: "Assistant",
}


def build_conversation_prompt(
    thread: Sequence[Message],
    utterance: str,
    max_messages: int | None = None,
) -> str:
    """Flatten a note's thread plus a new utterance into one prompt string.

    ``thread`` must not already contain the new utterance. Pending placeholders
    are skipped, then only the last ``max_messages`` survive (``None`` or 0
    keeps everything, which lets the prompt grow with the thread). With no
    surviving history the utterance is sent bare.
    """
    history = [message for message in thread if not message.is_loading]
    if max_messages:
        history = history[-max_messages:]

    if not history:
        return utterance

    lines = [f"{ROLE_LABELS[message.role]}: {message.content}" for message in history]
    lines.append(f"User: {utterance}")
    lines.append("Assistant:")
    return "\n".join(lines)


def build_assistant_description() -> str:
    return (
        "You are a helpful writing assistant attached to a personal notebook. "
        "Conversation history is supplied inline as 'User:' and 'Assistant:' lines. "
        "Answer the last user line and keep answers concise."
    )

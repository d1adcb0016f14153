"""Per-note conversation threads."""

from collections.abc import Callable, Mapping, Sequence

from app.logging import get_logger
from app.models import Message, MessageStateError

logger = get_logger("services.conversations")

ThreadListener = Callable[[str, Message], None]


class ConversationStore:
    """Ordered message threads keyed by note id.

    ``append_or_replace`` is the only write path: a message whose id is
    already in the thread replaces it in place, anything else is appended.
    """

    def __init__(self):
        self._threads: dict[str, list[Message]] = {}
        self._listeners: list[ThreadListener] = []

    def subscribe(self, listener: ThreadListener) -> None:
        self._listeners.append(listener)

    def _notify(self, note_id: str, message: Message) -> None:
        for listener in list(self._listeners):
            listener(note_id, message)

    def load(self, threads: Mapping[str, Sequence[Message]]) -> None:
        self._threads = {note_id: list(messages) for note_id, messages in threads.items()}

    def snapshot(self) -> dict[str, list[Message]]:
        return {note_id: list(messages) for note_id, messages in self._threads.items()}

    def append_or_replace(self, note_id: str, message: Message) -> None:
        thread = self._threads.setdefault(note_id, [])
        for index, existing in enumerate(thread):
            if existing.id != message.id:
                continue
            if existing.is_settled:
                if existing == message:
                    return
                raise MessageStateError(
                    f"Message {message.id} is already {existing.status.value} and cannot change"
                )
            thread[index] = message
            self._notify(note_id, message)
            return
        thread.append(message)
        self._notify(note_id, message)

    def get_thread(self, note_id: str) -> list[Message]:
        return list(self._threads.get(note_id, ()))

    def get_message(self, note_id: str, message_id: str) -> Message | None:
        for message in self._threads.get(note_id, ()):
            if message.id == message_id:
                return message
        return None

    def drop_thread(self, note_id: str) -> bool:
        removed = self._threads.pop(note_id, None) is not None
        if removed:
            logger.debug("Dropped thread for note %s", note_id)
        return removed

"""Note collection and active-note selection."""

from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from uuid import uuid4

from app.logging import get_logger
from app.models import Note, NoteUpdate

logger = get_logger("services.notes")

NoteListener = Callable[[str, str], None]


class UnknownNoteError(LookupError):
    """Raised when an operation that validates ids gets an unknown note id."""

    def __init__(self, note_id: str):
        super().__init__(f"Note not found: {note_id}")
        self.note_id = note_id


def _now() -> datetime:
    return datetime.now(timezone.utc)


class NoteStore:
    """In-memory notes in collection (creation) order plus the active pointer.

    Not safe for concurrent writers; all calls are expected on the event loop.
    Listeners receive ``(action, note_id)`` after each committed mutation,
    with action one of ``created``, ``updated``, ``deleted``.
    """

    def __init__(self, default_title: str = "", clock: Callable[[], datetime] = _now):
        self.default_title = default_title
        self._clock = clock
        self._notes: list[Note] = []
        self._active_note_id: str | None = None
        self._listeners: list[NoteListener] = []

    def subscribe(self, listener: NoteListener) -> None:
        self._listeners.append(listener)

    def _notify(self, action: str, note_id: str) -> None:
        for listener in list(self._listeners):
            listener(action, note_id)

    def _index_of(self, note_id: str) -> int | None:
        for index, note in enumerate(self._notes):
            if note.id == note_id:
                return index
        return None

    def load(self, notes: Iterable[Note]) -> None:
        """Replace the collection wholesale (rehydrate). Clears the selection."""
        self._notes = [note.model_copy() for note in notes]
        self._active_note_id = None

    def snapshot(self) -> list[Note]:
        return [note.model_copy() for note in self._notes]

    def create_note(self) -> str:
        note = Note(
            id=str(uuid4()),
            title=self.default_title,
            content="",
            last_modified=self._clock(),
        )
        self._notes.append(note)
        logger.debug("Created note %s", note.id)
        self._notify("created", note.id)
        return note.id

    def get_note(self, note_id: str) -> Note | None:
        index = self._index_of(note_id)
        return self._notes[index].model_copy() if index is not None else None

    def has_note(self, note_id: str) -> bool:
        return self._index_of(note_id) is not None

    def update_note(self, note_id: str, data: NoteUpdate) -> Note | None:
        index = self._index_of(note_id)
        if index is None:
            return None
        existing = self._notes[index]
        fields = data.model_dump(exclude_unset=True, exclude_none=True)
        if not fields:
            return existing.model_copy()
        # Wall clocks can step backwards; last_modified never does.
        fields["last_modified"] = max(self._clock(), existing.last_modified)
        updated = existing.model_copy(update=fields)
        self._notes[index] = updated
        self._notify("updated", note_id)
        return updated.model_copy()

    def delete_note(self, note_id: str) -> bool:
        index = self._index_of(note_id)
        if index is None:
            return False
        del self._notes[index]
        if self._active_note_id == note_id:
            self._active_note_id = self._notes[0].id if self._notes else None
            logger.debug("Active note reassigned to %s", self._active_note_id)
        self._notify("deleted", note_id)
        return True

    @property
    def active_note_id(self) -> str | None:
        return self._active_note_id

    def active_note(self) -> Note | None:
        if self._active_note_id is None:
            return None
        return self.get_note(self._active_note_id)

    def set_active_note(self, note_id: str) -> None:
        if not self.has_note(note_id):
            raise UnknownNoteError(note_id)
        self._active_note_id = note_id

    def clear_active_note(self) -> None:
        self._active_note_id = None

    def list_notes(self, search: str | None = None) -> list[Note]:
        """Notes whose title contains ``search`` (case-insensitive), newest first.

        Ties keep collection order: ``sorted`` is stable even with reverse=True.
        """
        term = (search or "").casefold()
        matches = [note for note in self._notes if term in note.title.casefold()]
        ordered = sorted(matches, key=lambda note: note.last_modified, reverse=True)
        return [note.model_copy() for note in ordered]

    def __len__(self) -> int:
        return len(self._notes)

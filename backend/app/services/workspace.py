"""
The notes workspace: stores, autosave, persistence and the assistant wired together.

One ``Workspace`` is built per process in the FastAPI lifespan and injected
into routes; there is no module-level state. ``open()`` rehydrates from the
snapshot slot and ``close()`` flushes pending edits and writes a final
snapshot.
"""

import asyncio
from collections.abc import Callable, Coroutine
from datetime import datetime, timezone
from typing import Any

from app.config import Settings, settings
from app.logging import get_logger
from app.models import (
    FieldSaveStatus,
    Message,
    Note,
    NoteField,
    NoteUpdate,
    PersistenceStatus,
    WorkspaceSnapshot,
)
from app.services.assistant import AssistantOrchestrator
from app.services.autosave import AutosaveScheduler, CallLater, FieldKey, loop_call_later
from app.services.conversations import ConversationStore
from app.services.events import EventPublisher
from app.services.generation import GenerationService
from app.services.notes import NoteStore, UnknownNoteError
from app.services.persistence import SnapshotStore

logger = get_logger("services.workspace")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class EditorSession:
    """One editable surface bound to one note.

    Edits autosave after the quiet period. Leaving the session cancels
    whatever is still pending so nothing commits against a note that is no
    longer on screen.
    """

    def __init__(self, workspace: "Workspace", note_id: str):
        self.workspace = workspace
        self.note_id = note_id
        self.closed = False

    def __enter__(self) -> "EditorSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _edit(self, field: NoteField, value: str) -> None:
        if self.closed:
            raise RuntimeError(f"Editor session for note {self.note_id} is closed")
        self.workspace.schedule_edit(self.note_id, field, value)

    def edit_title(self, title: str) -> None:
        self._edit(NoteField.TITLE, title)

    def edit_content(self, content: str) -> None:
        self._edit(NoteField.CONTENT, content)

    def status(self, field: NoteField) -> FieldSaveStatus:
        return self.workspace.autosave.status(FieldKey(self.note_id, field))

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.workspace.autosave.cancel_note(self.note_id)


class Workspace:
    """Notes, threads, autosave and the assistant for one user."""

    def __init__(
        self,
        *,
        snapshots: SnapshotStore,
        generation: GenerationService,
        events: EventPublisher | None = None,
        config: Settings = settings,
        call_later: CallLater = loop_call_later,
        clock: Callable[[], datetime] = _now,
    ):
        self.config = config
        self.snapshots = snapshots
        self.events = events or EventPublisher()
        self.notes = NoteStore(default_title=config.DEFAULT_NOTE_TITLE, clock=clock)
        self.conversations = ConversationStore()
        self.autosave = AutosaveScheduler(
            config.AUTOSAVE_DELAY_SECONDS,
            call_later=call_later,
            clock=clock,
        )
        self.assistant = AssistantOrchestrator(
            self.notes,
            self.conversations,
            generation,
            context_window=config.CONTEXT_WINDOW_MESSAGES or None,
            placeholder_text=config.PLACEHOLDER_TEXT,
            failure_message=config.ASSISTANT_FAILURE_MESSAGE,
        )
        self.persistence_status = PersistenceStatus()
        self._clock = clock
        self._persist_dirty = False
        self._persist_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()

        self.notes.subscribe(self._on_note_changed)
        self.conversations.subscribe(self._on_message_changed)
        self.autosave.subscribe(self._on_save_status)

    # ── Lifecycle ──

    async def open(self) -> None:
        await self.snapshots.initialize()
        snapshot = await self.snapshots.load()
        if snapshot is not None and self._restore(snapshot):
            self._request_persist()

    def _restore(self, snapshot: WorkspaceSnapshot) -> bool:
        """Load a snapshot into the stores. Returns True when it had to be repaired."""
        repaired = 0
        threads: dict[str, list[Message]] = {}
        for note_id, messages in snapshot.messages.items():
            thread = []
            for message in messages:
                # A placeholder from a previous process will never be answered.
                if message.is_loading:
                    message = message.fail(self.config.ASSISTANT_FAILURE_MESSAGE)
                    repaired += 1
                thread.append(message)
            threads[note_id] = thread
        self.notes.load(snapshot.notes)
        self.conversations.load(threads)
        if repaired:
            logger.warning("Settled %d orphaned placeholders from the previous session", repaired)
        logger.info("Workspace restored with %d notes", len(self.notes))
        return repaired > 0

    async def close(self) -> None:
        flushed = self.autosave.flush()
        if flushed:
            logger.info("Flushed %d pending autosaves on shutdown", flushed)
        self.autosave.close()
        await self.assistant.close()
        await self.persist()
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ── Background work ──

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            return None
        task = loop.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _publish(self, event: str, data: dict[str, Any], note_id: str | None = None) -> None:
        self._spawn(self.events.publish(event, data, note_id))

    def _request_persist(self) -> None:
        self._persist_dirty = True
        if self._persist_task is None or self._persist_task.done():
            self._persist_task = self._spawn(self._persist_loop())

    async def _persist_loop(self) -> None:
        # Single writer: requests that arrive mid-write collapse into one more
        # write of the latest state.
        while self._persist_dirty:
            self._persist_dirty = False
            try:
                await self.snapshots.save(self.snapshot())
            except Exception as e:
                logger.error(f"Snapshot write failed: {e}")
                self.persistence_status = PersistenceStatus(
                    ok=False,
                    last_saved_at=self.persistence_status.last_saved_at,
                    last_error=str(e),
                )
            else:
                self.persistence_status = PersistenceStatus(ok=True, last_saved_at=self._clock())
            self._publish("persistence_status", self.persistence_status.model_dump(mode="json"))

    async def persist(self) -> PersistenceStatus:
        """Write the current state now (or wait for the write in progress)."""
        self._request_persist()
        if self._persist_task is not None:
            await self._persist_task
        return self.persistence_status

    def snapshot(self) -> WorkspaceSnapshot:
        return WorkspaceSnapshot(
            notes=self.notes.snapshot(),
            messages=self.conversations.snapshot(),
        )

    # ── Store listeners ──

    def _on_note_changed(self, action: str, note_id: str) -> None:
        self._request_persist()
        self._publish("note_changed", {"action": action, "note_id": note_id}, note_id)

    def _on_message_changed(self, note_id: str, message: Message) -> None:
        self._request_persist()
        self._publish(
            "thread_updated",
            {"note_id": note_id, "message": message.model_dump(mode="json")},
            note_id,
        )

    def _on_save_status(self, status: FieldSaveStatus) -> None:
        self._publish("save_status", status.model_dump(mode="json"), status.note_id)

    # ── Notes ──

    def create_note(self) -> Note:
        note_id = self.notes.create_note()
        return self.notes.get_note(note_id)

    def update_note(self, note_id: str, data: NoteUpdate) -> Note | None:
        return self.notes.update_note(note_id, data)

    def delete_note(self, note_id: str) -> bool:
        deleted = self.notes.delete_note(note_id)
        if deleted:
            self.autosave.forget_note(note_id)
            self.conversations.drop_thread(note_id)
        return deleted

    def set_active_note(self, note_id: str | None) -> None:
        if note_id is None:
            self.notes.clear_active_note()
        else:
            self.notes.set_active_note(note_id)

    # ── Editing ──

    def schedule_edit(self, note_id: str, field: NoteField, value: str) -> FieldSaveStatus:
        if not self.notes.has_note(note_id):
            raise UnknownNoteError(note_id)
        update = NoteUpdate(**{field.value: value})
        self.autosave.schedule(
            FieldKey(note_id, field),
            lambda: self.notes.update_note(note_id, update),
        )
        return self.autosave.status(FieldKey(note_id, field))

    def flush_edits(self, note_id: str) -> int:
        return sum(self.autosave.flush(FieldKey(note_id, field)) for field in NoteField)

    def save_status(self, note_id: str) -> list[FieldSaveStatus]:
        return [self.autosave.status(FieldKey(note_id, field)) for field in NoteField]

    def edit_session(self, note_id: str) -> EditorSession:
        if not self.notes.has_note(note_id):
            raise UnknownNoteError(note_id)
        return EditorSession(self, note_id)

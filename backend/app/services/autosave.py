"""Debounced autosave: one commit per field after a quiet period."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, NamedTuple, Protocol

from app.logging import get_logger
from app.models import FieldSaveStatus, NoteField, SaveState

logger = get_logger("services.autosave")


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


CallLater = Callable[[float, Callable[[], None]], TimerHandle]
StatusListener = Callable[[FieldSaveStatus], None]


class FieldKey(NamedTuple):
    note_id: str
    field: NoteField


@dataclass
class _PendingSave:
    handle: TimerHandle
    commit: Callable[[], Any]


def loop_call_later(delay: float, callback: Callable[[], None]) -> TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class AutosaveScheduler:
    """Coalesce bursts of edits into a single delayed commit per key.

    Scheduling a key cancels its pending timer and starts a fresh one, so only
    the last commit of a burst runs. Timers come from ``call_later`` (the
    running loop's by default) so tests can drive a simulated clock.
    """

    def __init__(
        self,
        delay_seconds: float,
        call_later: CallLater = loop_call_later,
        clock: Callable[[], datetime] = _now,
    ):
        self.delay_seconds = delay_seconds
        self._call_later = call_later
        self._clock = clock
        self._pending: dict[FieldKey, _PendingSave] = {}
        self._saved_at: dict[FieldKey, datetime] = {}
        self._listeners: list[StatusListener] = []

    def subscribe(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def _notify(self, key: FieldKey) -> None:
        status = self.status(key)
        for listener in list(self._listeners):
            listener(status)

    def schedule(self, key: FieldKey, commit: Callable[[], Any]) -> None:
        previous = self._pending.pop(key, None)
        if previous is not None:
            previous.handle.cancel()
        handle = self._call_later(self.delay_seconds, lambda: self._fire(key))
        self._pending[key] = _PendingSave(handle=handle, commit=commit)
        if previous is None:
            self._notify(key)

    def _fire(self, key: FieldKey) -> None:
        pending = self._pending.pop(key, None)
        if pending is None:
            return
        try:
            pending.commit()
        except Exception:
            logger.exception("Autosave commit failed note_id=%s field=%s", key.note_id, key.field.value)
            self._saved_at.pop(key, None)
        else:
            self._saved_at[key] = self._clock()
        self._notify(key)

    def cancel(self, key: FieldKey) -> bool:
        pending = self._pending.pop(key, None)
        if pending is None:
            return False
        pending.handle.cancel()
        self._notify(key)
        return True

    def cancel_note(self, note_id: str) -> int:
        """Drop every pending save of one note (its editor went away)."""
        keys = [key for key in self._pending if key.note_id == note_id]
        for key in keys:
            self.cancel(key)
        if keys:
            logger.debug("Cancelled %d pending autosaves for note %s", len(keys), note_id)
        return len(keys)

    def flush(self, key: FieldKey | None = None) -> int:
        """Run pending commits now instead of waiting for their timers."""
        keys = [key] if key is not None else list(self._pending)
        flushed = 0
        for pending_key in keys:
            pending = self._pending.get(pending_key)
            if pending is None:
                continue
            pending.handle.cancel()
            self._fire(pending_key)
            flushed += 1
        return flushed

    def forget_note(self, note_id: str) -> None:
        self.cancel_note(note_id)
        for key in [key for key in self._saved_at if key.note_id == note_id]:
            del self._saved_at[key]

    def is_pending(self, key: FieldKey) -> bool:
        return key in self._pending

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def status(self, key: FieldKey) -> FieldSaveStatus:
        saved_at = self._saved_at.get(key)
        if key in self._pending:
            state = SaveState.SAVING
        elif saved_at is not None:
            state = SaveState.SAVED
        else:
            state = SaveState.IDLE
        return FieldSaveStatus(note_id=key.note_id, field=key.field, state=state, saved_at=saved_at)

    def close(self) -> None:
        """Cancel everything still pending without committing it."""
        for pending in self._pending.values():
            pending.handle.cancel()
        self._pending.clear()

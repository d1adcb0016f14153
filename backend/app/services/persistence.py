"""Whole-workspace snapshot persistence (one JSON value in a key-value slot)."""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from app.database.db import init_db, read_slot, write_slot
from app.logging import get_logger
from app.models import Message, MessageRole, MessageStatus, Note, WorkspaceSnapshot

logger = get_logger("services.persistence")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _parse_timestamp(raw: Any) -> datetime:
    if not raw:
        return _EPOCH
    parsed = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _note_to_record(note: Note) -> dict[str, Any]:
    return {
        "id": note.id,
        "title": note.title,
        "content": note.content,
        "lastModified": note.last_modified.isoformat(),
    }


def _record_to_note(record: dict[str, Any]) -> Note:
    return Note(
        id=str(record["id"]),
        title=record.get("title") or "",
        content=record.get("content") or "",
        last_modified=_parse_timestamp(record.get("lastModified")),
    )


def _message_to_record(message: Message) -> dict[str, Any]:
    return {
        "id": message.id,
        "content": message.content,
        "role": message.role.value,
        "status": message.status.value,
        "isLoading": message.is_loading,
    }


def _record_to_message(record: dict[str, Any]) -> Message:
    raw_status = record.get("status")
    if raw_status:
        status = MessageStatus(raw_status)
    elif record.get("isLoading"):
        status = MessageStatus.PENDING
    else:
        status = MessageStatus.COMPLETE
    return Message(
        id=str(record["id"]),
        content=record.get("content") or "",
        role=MessageRole(record["role"]),
        status=status,
    )


def encode_snapshot(snapshot: WorkspaceSnapshot) -> str:
    payload = {
        "notes": [_note_to_record(note) for note in snapshot.notes],
        "messages": {
            note_id: [_message_to_record(message) for message in messages]
            for note_id, messages in snapshot.messages.items()
        },
    }
    return json.dumps(payload, ensure_ascii=False)


def decode_snapshot(raw: str) -> WorkspaceSnapshot:
    """Parse a stored snapshot. Raises ValueError when it is not one."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Stored snapshot is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Stored snapshot must be a JSON object")
    # Older writers wrapped the payload as {"state": {...}, "version": n}.
    if "state" in data and isinstance(data["state"], dict):
        data = data["state"]
    try:
        notes = [_record_to_note(record) for record in data.get("notes") or []]
        messages = {
            str(note_id): [_record_to_message(record) for record in records or []]
            for note_id, records in (data.get("messages") or {}).items()
        }
    except (KeyError, TypeError, AttributeError) as e:
        raise ValueError(f"Stored snapshot has an unexpected shape: {e}") from e
    return WorkspaceSnapshot(notes=notes, messages=messages)


class SnapshotStore:
    """Reads and writes the workspace snapshot under a fixed storage key.

    Writes are serialized; each one replaces the previous value entirely.
    """

    def __init__(self, db_path: str | Path, storage_key: str):
        self.db_path = str(db_path)
        self.storage_key = storage_key
        self._write_lock = asyncio.Lock()

    async def initialize(self) -> None:
        await init_db(self.db_path)

    async def load(self) -> WorkspaceSnapshot | None:
        raw = await read_slot(self.db_path, self.storage_key)
        if raw is None:
            logger.info("No stored snapshot under %r; starting empty", self.storage_key)
            return None
        try:
            snapshot = decode_snapshot(raw)
        except ValueError as e:
            logger.warning("Ignoring unreadable snapshot %r: %s", self.storage_key, e)
            return None
        logger.info(
            "Loaded snapshot %r: %d notes, %d threads",
            self.storage_key,
            len(snapshot.notes),
            len(snapshot.messages),
        )
        return snapshot

    async def save(self, snapshot: WorkspaceSnapshot) -> None:
        payload = encode_snapshot(snapshot)
        async with self._write_lock:
            await write_slot(self.db_path, self.storage_key, payload)
        logger.debug("Saved snapshot %r (%d bytes)", self.storage_key, len(payload))

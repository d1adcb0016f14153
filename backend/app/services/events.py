"""Realtime notifications for the editing surface over Socket.IO."""

from typing import Any

import socketio

from app.logging import get_logger

logger = get_logger("services.events")


class EventPublisher:
    """Emit workspace events to the Socket.IO room of the affected note.

    Clients join a room per note (``noteId`` query parameter on connect);
    events without a note go to everyone.
    """

    def __init__(self, sio: socketio.AsyncServer | None = None):
        self.sio = sio

    async def publish(self, event: str, data: dict[str, Any], note_id: str | None = None) -> None:
        if self.sio is None:
            return
        try:
            await self.sio.emit(event, data, room=note_id)
        except Exception as e:
            logger.warning(f"Failed to emit {event} for note {note_id}: {e}")

"""Assistant turn lifecycle for a note's conversation."""

import asyncio
from collections import Counter

from app.logging import get_logger
from app.models import GenerationResult, Message, TurnOutcome, TurnState
from app.services.conversations import ConversationStore
from app.services.generation import GenerationService
from app.services.notes import NoteStore, UnknownNoteError
from app.services.prompts import build_conversation_prompt

logger = get_logger("services.assistant")


class AssistantOrchestrator:
    """Runs user turns: user message, placeholder, generation, settlement.

    Generation failures never escape a turn; the placeholder is settled with
    ``failure_message`` instead and the thread carries the failure.
    """

    def __init__(
        self,
        notes: NoteStore,
        conversations: ConversationStore,
        generation: GenerationService,
        *,
        context_window: int | None,
        placeholder_text: str,
        failure_message: str,
    ):
        self.notes = notes
        self.conversations = conversations
        self.generation = generation
        self.context_window = context_window
        self.placeholder_text = placeholder_text
        self.failure_message = failure_message
        self._in_flight: Counter[str] = Counter()
        self._tasks: set[asyncio.Task] = set()

    def state_for(self, note_id: str) -> TurnState:
        if self._in_flight[note_id] > 0:
            return TurnState.AWAITING_RESPONSE
        return TurnState.IDLE

    def _begin(self, note_id: str, text: str) -> tuple[Message, Message, str] | None:
        if not text.strip():
            return None
        if not self.notes.has_note(note_id):
            raise UnknownNoteError(note_id)

        # Context comes from the thread as it was before this turn.
        prompt = build_conversation_prompt(
            self.conversations.get_thread(note_id),
            text,
            self.context_window,
        )
        user_message = Message.from_user(text)
        placeholder = Message.placeholder(self.placeholder_text)
        self.conversations.append_or_replace(note_id, user_message)
        self.conversations.append_or_replace(note_id, placeholder)
        self._in_flight[note_id] += 1
        return user_message, placeholder, prompt

    async def _generate(self, prompt: str) -> GenerationResult:
        try:
            return await self.generation.generate(prompt)
        except Exception as e:
            logger.exception("Generation transport raised instead of failing closed")
            return GenerationResult(success=False, error=str(e))

    async def _complete(
        self,
        note_id: str,
        user_message: Message,
        placeholder: Message,
        prompt: str,
    ) -> TurnOutcome:
        try:
            result = await self._generate(prompt)
            if result.success and result.response:
                settled = placeholder.resolve(result.response)
                state = TurnState.RESOLVED
            else:
                settled = placeholder.fail(self.failure_message)
                state = TurnState.FAILED
                logger.warning("Assistant turn failed note_id=%s: %s", note_id, result.error)

            if not self.notes.has_note(note_id):
                logger.info("Dropping reply for deleted note %s", note_id)
                return TurnOutcome(
                    note_id=note_id,
                    state=state,
                    user_message=user_message,
                    assistant_message=settled,
                    error="Note was deleted before the reply arrived",
                )

            self.conversations.append_or_replace(note_id, settled)
            return TurnOutcome(
                note_id=note_id,
                state=state,
                user_message=user_message,
                assistant_message=settled,
                error=None if state == TurnState.RESOLVED else result.error,
            )
        finally:
            self._in_flight[note_id] -= 1
            if self._in_flight[note_id] <= 0:
                del self._in_flight[note_id]

    async def submit(self, note_id: str, text: str) -> TurnOutcome:
        """Run a whole turn and return once the placeholder is settled."""
        begun = self._begin(note_id, text)
        if begun is None:
            return TurnOutcome(note_id=note_id, state=TurnState.IDLE, error="Message is empty")
        return await self._complete(note_id, *begun)

    def start_turn(self, note_id: str, text: str) -> TurnOutcome:
        """Append the user message and placeholder, then settle in the background."""
        begun = self._begin(note_id, text)
        if begun is None:
            return TurnOutcome(note_id=note_id, state=TurnState.IDLE, error="Message is empty")
        user_message, placeholder, _ = begun
        task = asyncio.create_task(self._complete(note_id, *begun))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return TurnOutcome(
            note_id=note_id,
            state=TurnState.AWAITING_RESPONSE,
            user_message=user_message,
            assistant_message=placeholder,
        )

    async def close(self) -> None:
        """Wait for background turns so their replies are not lost."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

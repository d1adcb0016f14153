"""Assistant chat routes."""

from fastapi import APIRouter, HTTPException

from app.dependencies import AssistantDep, WorkspaceDep
from app.models import ChatMessageRequest, ThreadResponse, TurnOutcome, TurnState

router = APIRouter()


@router.get("/{note_id}/messages", response_model=ThreadResponse)
async def get_thread(note_id: str, workspace: WorkspaceDep):
    return ThreadResponse(
        note_id=note_id,
        state=workspace.assistant.state_for(note_id),
        messages=workspace.conversations.get_thread(note_id),
    )


@router.post("/{note_id}/messages", response_model=TurnOutcome)
async def send_message(
    note_id: str,
    body: ChatMessageRequest,
    assistant: AssistantDep,
):
    try:
        if body.wait:
            outcome = await assistant.submit(note_id, body.message)
        else:
            outcome = assistant.start_turn(note_id, body.message)
    except LookupError as exc:
        raise HTTPException(404, str(exc)) from exc
    if outcome.state == TurnState.IDLE:
        raise HTTPException(400, outcome.error or "Message is empty")
    return outcome

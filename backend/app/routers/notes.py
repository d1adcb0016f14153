"""Note routes: CRUD, active selection and debounced edits."""

from typing import Optional

from fastapi import APIRouter, HTTPException

from app.dependencies import WorkspaceDep
from app.models import (
    ActiveNoteRequest,
    ActiveNoteResponse,
    FieldSaveStatus,
    Note,
    NoteField,
    NoteUpdate,
    PersistenceStatus,
)
from app.services.notes import UnknownNoteError

router = APIRouter()


@router.post("/notes", response_model=Note, status_code=201)
async def create_note(workspace: WorkspaceDep, activate: bool = False):
    note = workspace.create_note()
    if activate:
        workspace.set_active_note(note.id)
    return note


@router.get("/notes", response_model=list[Note])
async def list_notes(workspace: WorkspaceDep, search: Optional[str] = None):
    return workspace.notes.list_notes(search)


@router.get("/notes/active", response_model=ActiveNoteResponse)
async def get_active_note(workspace: WorkspaceDep):
    return ActiveNoteResponse(note_id=workspace.notes.active_note_id)


@router.put("/notes/active", response_model=ActiveNoteResponse)
async def set_active_note(body: ActiveNoteRequest, workspace: WorkspaceDep):
    try:
        workspace.set_active_note(body.note_id)
    except LookupError as exc:
        raise HTTPException(404, str(exc)) from exc
    return ActiveNoteResponse(note_id=workspace.notes.active_note_id)


@router.get("/persistence", response_model=PersistenceStatus)
async def get_persistence_status(workspace: WorkspaceDep):
    return workspace.persistence_status


@router.get("/notes/{note_id}", response_model=Note)
async def get_note(note_id: str, workspace: WorkspaceDep):
    note = workspace.notes.get_note(note_id)
    if not note:
        raise HTTPException(404, "Note not found")
    return note


@router.put("/notes/{note_id}", response_model=Note)
async def update_note(note_id: str, body: NoteUpdate, workspace: WorkspaceDep):
    note = workspace.update_note(note_id, body)
    if not note:
        raise HTTPException(404, "Note not found")
    return note


@router.delete("/notes/{note_id}")
async def delete_note(note_id: str, workspace: WorkspaceDep):
    deleted = workspace.delete_note(note_id)
    if not deleted:
        raise HTTPException(404, "Note not found")
    return {
        "status": "deleted",
        "id": note_id,
        "active_note_id": workspace.notes.active_note_id,
    }


@router.post("/notes/{note_id}/edits", response_model=list[FieldSaveStatus], status_code=202)
async def schedule_edit(note_id: str, body: NoteUpdate, workspace: WorkspaceDep):
    """Record an editor change; it is committed after the quiet period."""
    fields = body.model_dump(exclude_unset=True, exclude_none=True)
    if not fields:
        raise HTTPException(400, "Provide a title or content edit")
    try:
        return [
            workspace.schedule_edit(note_id, NoteField(field), value)
            for field, value in fields.items()
        ]
    except UnknownNoteError as exc:
        raise HTTPException(404, str(exc)) from exc


@router.post("/notes/{note_id}/edits/flush", response_model=list[FieldSaveStatus])
async def flush_edits(note_id: str, workspace: WorkspaceDep):
    if not workspace.notes.has_note(note_id):
        raise HTTPException(404, "Note not found")
    workspace.flush_edits(note_id)
    return workspace.save_status(note_id)


@router.delete("/notes/{note_id}/edits", response_model=list[FieldSaveStatus])
async def cancel_edits(note_id: str, workspace: WorkspaceDep):
    """The editing surface for this note went away; drop pending edits."""
    workspace.autosave.cancel_note(note_id)
    return workspace.save_status(note_id)


@router.get("/notes/{note_id}/save-status", response_model=list[FieldSaveStatus])
async def get_save_status(note_id: str, workspace: WorkspaceDep):
    if not workspace.notes.has_note(note_id):
        raise HTTPException(404, "Note not found")
    return workspace.save_status(note_id)
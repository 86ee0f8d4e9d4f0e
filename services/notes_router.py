"""
Notes Router

CRUD and full-text search over the caller's notes.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from models import Note, NoteIn, SaveNoteResponse, User
from services.dependencies import get_current_user, get_note_store
from services.note_store import NoteStore

router = APIRouter(prefix="/api/notes", tags=["notes"])


@router.get("", response_model=List[Note])
def list_notes(
    q: Optional[str] = Query(None, description="Full-text search over title and content"),
    current_user: User = Depends(get_current_user),
    store: NoteStore = Depends(get_note_store),
):
    return store.list_notes(current_user.id, q)


@router.post("", response_model=SaveNoteResponse)
def save_note(
    payload: NoteIn,
    current_user: User = Depends(get_current_user),
    store: NoteStore = Depends(get_note_store),
):
    """Create a note when no id is given, otherwise update the caller's note."""
    note = store.save_note(current_user.id, payload)
    return SaveNoteResponse(success=True, data=note)


@router.delete("/{note_id}")
def delete_note(
    note_id: str,
    current_user: User = Depends(get_current_user),
    store: NoteStore = Depends(get_note_store),
):
    store.delete_note(current_user.id, note_id)
    return {"success": True}

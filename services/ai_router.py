"""
AI Router

Summaries, tag suggestions, note chat and Markdown formatting. Failures are
raised as domain errors and rendered by the app-level handler.
"""
import logging

from fastapi import APIRouter, Depends

from llm_utils import NoteAssistant
from models import AIRequest, User
from services.dependencies import get_assistant, get_current_user

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/ai", tags=["ai"])


@router.post("/summarize")
def summarize(
    request: AIRequest,
    current_user: User = Depends(get_current_user),
    assistant: NoteAssistant = Depends(get_assistant),
):
    return {"summary": assistant.summarize(request.content)}


@router.post("/tags")
def suggest_tags(
    request: AIRequest,
    current_user: User = Depends(get_current_user),
    assistant: NoteAssistant = Depends(get_assistant),
):
    return {"tags": assistant.suggest_tags(request.content)}


@router.post("/chat")
def chat(
    request: AIRequest,
    current_user: User = Depends(get_current_user),
    assistant: NoteAssistant = Depends(get_assistant),
):
    history = [m.model_dump() for m in request.history]
    logger.debug(f"Chat from user {current_user.id} with {len(history)} history turns")
    return {"answer": assistant.chat(request.content, request.question, history)}


@router.post("/format")
def format_content(
    request: AIRequest,
    current_user: User = Depends(get_current_user),
    assistant: NoteAssistant = Depends(get_assistant),
):
    return {"formatted": assistant.format(request.content)}

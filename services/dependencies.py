"""
Request-scoped accessors for the objects built once in create_app().
"""
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer

from config import Settings
from llm_utils import NoteAssistant
from models import User
from services.auth_service import UserStore, decode_access_token
from services.note_store import NoteStore

# auto_error=False so a missing header reaches decode_access_token as None
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_note_store(request: Request) -> NoteStore:
    return request.app.state.note_store


def get_user_store(request: Request) -> UserStore:
    return request.app.state.user_store


def get_assistant(request: Request) -> NoteAssistant:
    return request.app.state.assistant


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    settings: Settings = Depends(get_app_settings),
) -> User:
    return decode_access_token(token, settings)

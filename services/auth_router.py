"""
Auth Router

Registration and bearer-token login.
"""
from fastapi import APIRouter, Depends

from config import Settings
from models import Credentials, LoginResponse
from services.auth_service import UserStore, create_access_token
from services.dependencies import get_app_settings, get_user_store

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register")
def register(payload: Credentials, users: UserStore = Depends(get_user_store)):
    users.create_user(payload.username, payload.password)
    return {"success": True, "message": "Registration successful"}


@router.post("/login", response_model=LoginResponse)
def login(
    payload: Credentials,
    users: UserStore = Depends(get_user_store),
    settings: Settings = Depends(get_app_settings),
):
    user = users.authenticate(payload.username, payload.password)
    return LoginResponse(token=create_access_token(user, settings), user=user)

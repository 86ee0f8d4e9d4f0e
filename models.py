from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Literal

DEFAULT_CATEGORY = "default"

class User(BaseModel):
    id: str
    username: str

class UserInDB(User):
    password_hash: str

class Credentials(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None

class LoginResponse(BaseModel):
    success: bool = True
    token: str
    user: User

class Note(BaseModel):
    """A persisted note as returned to clients."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str = ""
    content: str = ""
    category: str = DEFAULT_CATEGORY
    tags: List[str] = []
    pinned: bool = False
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")

class NoteIn(BaseModel):
    """Partial note sent by clients; omit id to create.

    createdAt/updatedAt are server-assigned and ignored if present.
    """
    id: Optional[str] = None
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    pinned: Optional[bool] = None

class SaveNoteResponse(BaseModel):
    success: bool = True
    data: Note

class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str

class AIRequest(BaseModel):
    content: Optional[str] = None
    question: Optional[str] = None
    history: List[ChatMessage] = []

"""
User accounts and bearer-token authentication.

Passwords are hashed with passlib (PBKDF2-SHA256) and sessions are signed
JWTs carrying the user id and username.
"""
import logging
import sqlite3
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from config import Settings
from database import DatabaseManager
from models import User, UserInDB
from services.errors import Conflict, Internal, InvalidInput, NotFound, Unauthorized

logger = logging.getLogger(__name__)

# PBKDF2 avoids bcrypt backend/version issues and the 72-byte bcrypt limit
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


class UserStore:
    """Persistence for user accounts."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def _row_to_user(self, row) -> UserInDB:
        return UserInDB(id=row["id"], username=row["username"], password_hash=row["password_hash"])

    def create_user(self, username: str, password: str) -> User:
        if not username or not password:
            raise InvalidInput("Username and password are required")
        user_id = str(uuid.uuid4())
        try:
            with self.db.transaction() as conn:
                conn.execute(
                    "INSERT INTO users (id, username, password_hash) VALUES (?, ?, ?)",
                    (user_id, username, get_password_hash(password)),
                )
        except sqlite3.IntegrityError as e:
            raise Conflict("Username already exists") from e
        except sqlite3.Error as e:
            logger.error(f"Creating user {username!r} failed: {e}")
            raise Internal("Registration failed") from e
        logger.info(f"Registered user {username!r}")
        return User(id=user_id, username=username)

    def get_by_username(self, username: str) -> Optional[UserInDB]:
        row = self.db.get_connection().execute(
            "SELECT id, username, password_hash FROM users WHERE username = ?",
            (username,),
        ).fetchone()
        return self._row_to_user(row) if row else None

    def get_by_id(self, user_id: str) -> Optional[UserInDB]:
        row = self.db.get_connection().execute(
            "SELECT id, username, password_hash FROM users WHERE id = ?",
            (user_id,),
        ).fetchone()
        return self._row_to_user(row) if row else None

    def authenticate(self, username: Optional[str], password: Optional[str]) -> User:
        user = self.get_by_username(username) if username else None
        if not user or not password or not verify_password(password, user.password_hash):
            raise Unauthorized("Invalid username or password")
        return User(id=user.id, username=user.username)

    def delete_user(self, user_id: str) -> None:
        """Remove a user; their notes (and index rows) go with them."""
        with self.db.transaction() as conn:
            deleted = conn.execute("DELETE FROM users WHERE id = ?", (user_id,)).rowcount
        if deleted == 0:
            raise NotFound("User not found")
        logger.info(f"Deleted user {user_id}")


def create_access_token(user: User, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode = {"sub": user.id, "username": user.username, "exp": expire}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: Optional[str], settings: Settings) -> User:
    """Resolve a bearer token to its user.

    A missing token is 401; a token that fails verification is 403.
    """
    if not token:
        raise Unauthorized("Please log in first")
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as e:
        raise Unauthorized("Session expired, please log in again", status_code=403) from e
    user_id = payload.get("sub")
    username = payload.get("username")
    if not user_id or not username:
        raise Unauthorized("Session expired, please log in again", status_code=403)
    return User(id=user_id, username=username)

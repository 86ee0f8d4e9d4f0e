"""
Shared fixtures: a fresh SQLite database per test, two users, the stores
and a fake AI adapter that never touches the network.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config import Settings
from database import DatabaseManager
from services.auth_service import UserStore
from services.errors import ProviderFailure
from services.note_store import NoteStore


class FakeAdapter:
    """Stands in for AIAdapter: records prompts and returns canned replies."""

    def __init__(self, reply="fake reply", error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    @property
    def configured(self):
        return True

    def call_ai(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        db_path=tmp_path / "notes.db",
        uploads_dir=tmp_path / "uploads",
        logs_dir=tmp_path / "logs",
        legacy_notes_path=tmp_path / "notes.json",
        secret_key="test-secret-key",
        openai_api_key=None,
        gemini_api_key=None,
        environment="test",
    )


@pytest.fixture
def db(settings):
    manager = DatabaseManager(settings.db_path)
    manager.initialize_database()
    yield manager
    manager.close_all_connections()


@pytest.fixture
def store(db):
    return NoteStore(db)


@pytest.fixture
def users(db):
    return UserStore(db)


@pytest.fixture
def alice(users):
    return users.create_user("alice", "alice-password")


@pytest.fixture
def bob(users):
    return users.create_user("bob", "bob-password")


@pytest.fixture
def fake_adapter():
    return FakeAdapter()


@pytest.fixture
def failing_adapter():
    return FakeAdapter(error=ProviderFailure("Primary provider failed: boom"))

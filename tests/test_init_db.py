import json

from init_db import initialize, migrate_legacy_notes
from models import NoteIn


def write_legacy(settings, notes):
    settings.legacy_notes_path.write_text(json.dumps(notes, ensure_ascii=False), encoding="utf-8")


def test_initialize_creates_schema(settings):
    db = initialize(settings)
    try:
        tables = {row[0] for row in db.get_connection().execute(
            "SELECT name FROM sqlite_master WHERE type IN ('table', 'trigger')")}
    finally:
        db.close_all_connections()

    assert {"users", "notes", "notes_fts", "notes_ai", "notes_ad", "notes_au"} <= tables


def test_no_legacy_file_is_a_no_op(settings, store, users):
    assert migrate_legacy_notes(settings, store, users) is None
    assert users.get_by_username("admin") is None


def test_imports_into_empty_database(settings, store, users):
    write_legacy(settings, [
        {"id": "n1", "title": "第一条", "content": "hello", "category": "旧", "pinned": True},
        {"title": "untitled"},
    ])

    assert migrate_legacy_notes(settings, store, users) == 2

    admin = users.authenticate("admin", "admin123")
    notes = store.list_notes(admin.id)
    assert [n.title for n in notes] == ["第一条", "untitled"]
    assert notes[0].category == "旧"
    assert not settings.legacy_notes_path.exists()
    assert settings.legacy_notes_path.with_name("notes.json.bak").exists()


def test_existing_notes_block_import_but_file_is_archived(settings, store, users, alice):
    store.save_note(alice.id, NoteIn(title="already here"))
    write_legacy(settings, [{"title": "ignored"}])

    assert migrate_legacy_notes(settings, store, users) is None

    assert store.count_notes() == 1
    assert settings.legacy_notes_path.with_name("notes.json.bak").exists()


def test_reuses_existing_admin_account(settings, store, users):
    existing = users.create_user("admin", "custom-password")
    write_legacy(settings, [{"title": "mine"}])

    migrate_legacy_notes(settings, store, users)

    assert [n.title for n in store.list_notes(existing.id)] == ["mine"]


def test_failed_import_leaves_everything_untouched(settings, store, users):
    write_legacy(settings, [{"id": "same"}, {"id": "same"}])

    assert migrate_legacy_notes(settings, store, users) is None

    assert store.count_notes() == 0
    assert settings.legacy_notes_path.exists()


def test_unreadable_file_is_logged_not_raised(settings, store, users):
    settings.legacy_notes_path.write_text("{not json", encoding="utf-8")

    assert migrate_legacy_notes(settings, store, users) is None
    assert settings.legacy_notes_path.exists()

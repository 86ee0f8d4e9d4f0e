from datetime import timedelta

import pytest
from jose import jwt

from services.auth_service import (
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)
from services.errors import Conflict, InvalidInput, NotFound, Unauthorized


def test_password_hash_round_trip():
    hashed = get_password_hash("s3cret")

    assert hashed != "s3cret"
    assert verify_password("s3cret", hashed)
    assert not verify_password("wrong", hashed)


def test_create_user_stores_hash_not_password(users):
    user = users.create_user("carol", "carol-password")

    stored = users.get_by_username("carol")
    assert stored.id == user.id
    assert stored.password_hash != "carol-password"
    assert users.get_by_id(user.id).username == "carol"


def test_duplicate_username_conflicts(users, alice):
    with pytest.raises(Conflict):
        users.create_user("alice", "another")


@pytest.mark.parametrize("username,password", [("", "pw"), ("dave", ""), (None, "pw")])
def test_missing_credentials_rejected(users, username, password):
    with pytest.raises(InvalidInput):
        users.create_user(username, password)


def test_authenticate(users, alice):
    assert users.authenticate("alice", "alice-password").id == alice.id

    with pytest.raises(Unauthorized) as exc_info:
        users.authenticate("alice", "nope")
    assert exc_info.value.status_code == 401

    with pytest.raises(Unauthorized):
        users.authenticate("nobody", "alice-password")


def test_delete_unknown_user(users):
    with pytest.raises(NotFound):
        users.delete_user("missing")


def test_token_round_trip(settings, alice):
    token = create_access_token(alice, settings)

    user = decode_access_token(token, settings)

    assert user.id == alice.id
    assert user.username == "alice"


def test_missing_token_is_401(settings):
    with pytest.raises(Unauthorized) as exc_info:
        decode_access_token(None, settings)
    assert exc_info.value.status_code == 401


def test_expired_token_is_403(settings, alice):
    token = create_access_token(alice, settings, expires_delta=timedelta(seconds=-5))

    with pytest.raises(Unauthorized) as exc_info:
        decode_access_token(token, settings)
    assert exc_info.value.status_code == 403


def test_token_signed_with_other_key_is_403(settings, alice):
    forged = jwt.encode({"sub": alice.id, "username": "alice"}, "other-key", algorithm="HS256")

    with pytest.raises(Unauthorized) as exc_info:
        decode_access_token(forged, settings)
    assert exc_info.value.status_code == 403


def test_token_without_subject_is_403(settings):
    token = jwt.encode({"username": "ghost"}, settings.secret_key, algorithm=settings.algorithm)

    with pytest.raises(Unauthorized) as exc_info:
        decode_access_token(token, settings)
    assert exc_info.value.status_code == 403

import threading
from datetime import timedelta

import bcrypt
import pytest

from backoffice.auth.security import create_access_token, decode_token, get_password_hash, verify_password
from backoffice.errors import Conflict, ExpiredToken, InvalidToken, ValidationError
from backoffice.repositories.base import utcnow
from backoffice.schemas.auth import UserRole


def test_password_hashing_roundtrip():
    hashed = get_password_hash("hunter22")
    assert hashed.startswith("$pbkdf2-sha256$")
    assert verify_password("hunter22", hashed)
    assert not verify_password("hunter23", hashed)


def test_legacy_bcrypt_hashes_still_verify():
    legacy = bcrypt.hashpw(b"old-password", bcrypt.gensalt(rounds=4)).decode()
    assert verify_password("old-password", legacy)
    assert not verify_password("new-password", legacy)


def test_garbage_hash_does_not_verify():
    assert not verify_password("anything", "not-a-hash")


def test_access_token_carries_subject_and_role():
    token = create_access_token("u1", "ADMIN")
    payload = decode_token(token)
    assert payload["sub"] == "u1"
    assert payload["role"] == "ADMIN"


def test_create_and_authenticate(credentials):
    user = credentials.create_user({"email": "Mehmet@Example.com", "name": "Mehmet", "password": "secret1"})
    assert user.role == UserRole.user
    assert user.password_hash != "secret1"
    assert credentials.authenticate("mehmet@example.com", "secret1").id == user.id
    assert credentials.authenticate("mehmet@example.com", "wrong") is None
    assert credentials.authenticate("nobody@example.com", "secret1") is None


def test_email_is_unique_ignoring_case(credentials):
    credentials.create_user({"email": "a@example.com", "name": "A", "password": "secret1"})
    with pytest.raises(Conflict):
        credentials.create_user({"email": "A@EXAMPLE.COM", "name": "B", "password": "secret2"})


def test_short_password_rejected(credentials):
    with pytest.raises(ValidationError):
        credentials.create_user({"email": "a@example.com", "name": "A", "password": "123"})


def test_register_always_creates_plain_user(credentials):
    user = credentials.register({"email": "r@example.com", "name": "R", "password": "secret1", "role": "ADMIN"})
    assert user.role == UserRole.user


def test_update_user_rehashes_password(credentials):
    user = credentials.create_user({"email": "u@example.com", "name": "U", "password": "secret1"})
    updated = credentials.update_user(user.id, {"password": "secret2", "name": "Renamed"})
    assert updated.name == "Renamed"
    assert credentials.authenticate("u@example.com", "secret2") is not None
    assert credentials.authenticate("u@example.com", "secret1") is None


# ---------- reset tokens ----------
@pytest.fixture
def member(credentials):
    return credentials.create_user({"email": "member@example.com", "name": "Member", "password": "secret1"})


def test_reset_token_for_unknown_email_is_none(credentials):
    assert credentials.issue_reset_token("ghost@example.com") is None


def test_reset_token_is_single_use(credentials, member):
    issued = credentials.issue_reset_token("member@example.com")
    assert issued.expires_at > utcnow()

    credentials.consume_reset_token(issued.token, "brand-new")
    assert credentials.authenticate("member@example.com", "brand-new") is not None
    assert credentials.reset_tokens.find(issued.token) is None

    with pytest.raises(InvalidToken):
        credentials.consume_reset_token(issued.token, "another-one")


def test_new_token_replaces_previous(credentials, member):
    first = credentials.issue_reset_token("member@example.com")
    second = credentials.issue_reset_token("member@example.com")
    assert first.token != second.token
    assert [t.token for t in credentials.reset_tokens.list()] == [second.token]
    with pytest.raises(InvalidToken):
        credentials.consume_reset_token(first.token, "brand-new")


def test_expired_token_is_rejected(credentials, member):
    credentials.reset_tokens.replace("member@example.com", "stale", utcnow() - timedelta(minutes=1))
    with pytest.raises(ExpiredToken):
        credentials.consume_reset_token("stale", "brand-new")
    assert credentials.authenticate("member@example.com", "secret1") is not None


def test_unknown_token_is_invalid(credentials, member):
    with pytest.raises(InvalidToken):
        credentials.consume_reset_token("no-such-token", "brand-new")


def test_token_delete_failure_keeps_new_password(credentials, member, monkeypatch):
    issued = credentials.issue_reset_token("member@example.com")

    def fail(token):
        raise Conflict("busy")

    monkeypatch.setattr(credentials.reset_tokens, "delete", fail)
    credentials.consume_reset_token(issued.token, "brand-new")
    assert credentials.authenticate("member@example.com", "brand-new") is not None
    with pytest.raises(InvalidToken):
        credentials.consume_reset_token(issued.token, "sneaky-one")
    assert credentials.authenticate("member@example.com", "brand-new") is not None


def test_concurrent_resets_with_one_token_have_one_winner(credentials, member):
    issued = credentials.issue_reset_token("member@example.com")
    barrier = threading.Barrier(2)
    outcomes = {}

    def reset(password):
        barrier.wait()
        try:
            credentials.consume_reset_token(issued.token, password)
            outcomes[password] = "ok"
        except InvalidToken:
            outcomes[password] = "invalid"

    threads = [threading.Thread(target=reset, args=(p,)) for p in ("first-pass", "second-pass")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes.values()) == ["invalid", "ok"]
    winner = next(p for p, outcome in outcomes.items() if outcome == "ok")
    loser = next(p for p, outcome in outcomes.items() if outcome == "invalid")
    assert credentials.authenticate("member@example.com", winner) is not None
    assert credentials.authenticate("member@example.com", loser) is None
    assert credentials.reset_tokens.list() == []


def test_token_is_usable_at_its_exact_expiry(credentials, member, monkeypatch):
    issued = credentials.issue_reset_token("member@example.com")
    monkeypatch.setattr("backoffice.auth.credentials.utcnow", lambda: issued.expires_at)
    credentials.consume_reset_token(issued.token, "brand-new")
    assert credentials.authenticate("member@example.com", "brand-new") is not None


def test_failed_password_update_releases_the_claim(credentials, member, monkeypatch):
    issued = credentials.issue_reset_token("member@example.com")
    original = credentials.users.update

    def fail(user_id, data):
        raise Conflict("busy")

    monkeypatch.setattr(credentials.users, "update", fail)
    with pytest.raises(Conflict):
        credentials.consume_reset_token(issued.token, "brand-new")
    assert credentials.reset_tokens.find(issued.token).claimed is False

    monkeypatch.setattr(credentials.users, "update", original)
    credentials.consume_reset_token(issued.token, "brand-new")
    assert credentials.authenticate("member@example.com", "brand-new") is not None

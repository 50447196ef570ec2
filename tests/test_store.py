"""Unit tests for auth/store.py -- user persistence and session slots.

Covers:
- create_user / get_by_id / find_user by username, email, or both
- in-memory URLs pin a StaticPool so every thread sees one database
- exists() collision rule (username OR email)
- UNIQUE constraint races surface as ConflictError
- set_refresh_token overwrite and clear
- rotate_refresh_token compare-and-swap semantics
- set_password_hash with and without session revocation
- SQLAlchemy failures surface as StorageError
"""

import threading

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

from auth.errors import ConflictError, StorageError
from auth.models import UserIdentity
from auth.store import UserStore


def _user(username="alice", email="a@x.com") -> UserIdentity:
    return UserIdentity(username=username, email=email, fullname="Alice Example", hashed_password="$2b$04$hash")


def test_create_and_get_by_id(store):
    user_id = store.create_user(_user())
    user = store.get_by_id(user_id)
    assert user is not None
    assert user.username == "alice"
    assert user.email == "a@x.com"
    assert user.refresh_token is None
    assert user.created_at
    assert user.updated_at


def test_get_by_id_missing(store):
    assert store.get_by_id(999) is None


@pytest.mark.parametrize("lookup", [{"username": "alice"}, {"email": "a@x.com"}, {"username": "alice", "email": "a@x.com"}])
def test_find_user_by_username_or_email(store, lookup):
    user_id = store.create_user(_user())
    found = store.find_user(**lookup)
    assert found is not None
    assert found.id == user_id


def test_find_user_unknown(store):
    store.create_user(_user())
    assert store.find_user(username="bob") is None
    assert store.find_user() is None


def test_find_user_matches_each_field_against_its_own_column(store):
    squatter_id = store.create_user(_user(username="bob@x.com", email="a@a.com"))
    owner_id = store.create_user(_user(username="bob", email="bob@x.com"))
    assert store.find_user(email="bob@x.com").id == owner_id
    assert store.find_user(username="bob@x.com").id == squatter_id
    assert store.find_user(username="bob", email="a@a.com") is None


def test_exists_by_username_or_email(store):
    store.create_user(_user())
    assert store.exists("alice", "other@x.com") is True
    assert store.exists("other", "a@x.com") is True
    assert store.exists("other", "other@x.com") is False


@pytest.mark.parametrize(
    "duplicate",
    [_user(username="alice", email="new@x.com"), _user(username="newname", email="a@x.com")],
)
def test_unique_constraint_raises_conflict(store, duplicate):
    store.create_user(_user())
    with pytest.raises(ConflictError):
        store.create_user(duplicate)


def test_list_users_ordered_by_username(store):
    store.create_user(_user("carol", "c@x.com"))
    store.create_user(_user("alice", "a@x.com"))
    store.create_user(_user("bob", "b@x.com"))
    assert [u.username for u in store.list_users()] == ["alice", "bob", "carol"]


def test_set_refresh_token_overwrites_and_clears(store):
    user_id = store.create_user(_user())
    assert store.set_refresh_token(user_id, "first") is True
    assert store.get_by_id(user_id).refresh_token == "first"
    store.set_refresh_token(user_id, "second")
    assert store.get_by_id(user_id).refresh_token == "second"
    store.set_refresh_token(user_id, None)
    assert store.get_by_id(user_id).refresh_token is None


def test_set_refresh_token_unknown_user(store):
    assert store.set_refresh_token(123, "token") is False


def test_rotate_succeeds_only_for_current_token(store):
    user_id = store.create_user(_user())
    store.set_refresh_token(user_id, "current")
    assert store.rotate_refresh_token(user_id, "current", "next") is True
    assert store.get_by_id(user_id).refresh_token == "next"


def test_rotate_is_single_use(store):
    """A second swap from the same expected token loses the race."""
    user_id = store.create_user(_user())
    store.set_refresh_token(user_id, "current")
    assert store.rotate_refresh_token(user_id, "current", "winner") is True
    assert store.rotate_refresh_token(user_id, "current", "loser") is False
    assert store.get_by_id(user_id).refresh_token == "winner"


def test_rotate_after_logout_fails(store):
    user_id = store.create_user(_user())
    store.set_refresh_token(user_id, "current")
    store.set_refresh_token(user_id, None)
    assert store.rotate_refresh_token(user_id, "current", "next") is False
    assert store.get_by_id(user_id).refresh_token is None


def test_password_hash_round_trip(store):
    user_id = store.create_user(_user())
    assert store.get_password_hash(user_id) == "$2b$04$hash"
    assert store.get_password_hash(999) is None


def test_set_password_hash_revokes_session(store):
    user_id = store.create_user(_user())
    store.set_refresh_token(user_id, "session")
    store.set_password_hash(user_id, "$2b$04$new")
    user = store.get_by_id(user_id)
    assert user.hashed_password == "$2b$04$new"
    assert user.refresh_token is None


def test_set_password_hash_can_keep_session(store):
    user_id = store.create_user(_user())
    store.set_refresh_token(user_id, "session")
    store.set_password_hash(user_id, "$2b$04$new", revoke_session=False)
    assert store.get_by_id(user_id).refresh_token == "session"


def test_ping(store):
    assert store.ping() is True


@pytest.mark.parametrize(
    "db_url",
    ["sqlite:///:memory:", "sqlite:///file:pool_check?mode=memory&cache=shared&uri=true"],
)
def test_memory_urls_share_one_connection(db_url):
    s = UserStore(db_url)
    try:
        assert isinstance(s.engine.pool, StaticPool)
        user_id = s.create_user(_user())
        found = []
        worker = threading.Thread(target=lambda: found.append(s.get_by_id(user_id)))
        worker.start()
        worker.join()
        assert found[0] is not None
    finally:
        s.close()


def test_driver_failure_becomes_storage_error(store, monkeypatch):
    def broken_connect():
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    monkeypatch.setattr(store.engine, "connect", broken_connect)
    with pytest.raises(StorageError) as exc_info:
        store.get_by_id(1)
    assert exc_info.value.status_code == 500
    assert "locked" not in exc_info.value.public_message
    assert store.ping() is False

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from partnerhub.database import API_KEY_PREFIX, Database, resolve_database_path
from partnerhub.errors import ConflictError, ValidationError
from partnerhub.models import UserRecord
from partnerhub.permissions import ALL_PERMISSIONS, Permission


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db_path = tmp_path / "partnerhub.sqlite3"
    db = Database(db_path)
    db.initialize()
    return db


def _record(app_id: int, username: str, email: str) -> UserRecord:
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return UserRecord(
        app_id=app_id,
        username=username,
        email_address=email,
        password_hash="hash",
        created_at=now,
        updated_at=now,
    )


def test_create_and_authenticate_api_key(database: Database) -> None:
    app, api_key = database.create_app("Partner One")

    assert api_key.startswith(API_KEY_PREFIX)
    assert app.permissions == ALL_PERMISSIONS
    retrieved = database.authenticate_api_key(api_key)
    assert retrieved is not None
    assert retrieved.id == app.id

    assert database.authenticate_api_key(API_KEY_PREFIX + "invalid_key") is None
    assert database.authenticate_api_key("") is None


def test_app_requires_non_empty_name(database: Database) -> None:
    with pytest.raises(ValueError):
        database.create_app("  ")


def test_app_permissions_round_trip(database: Database) -> None:
    app, _ = database.create_app("Reader", {Permission.GET_USERS, Permission.LIST_USERS})

    stored = database.get_app(app.id)
    assert stored is not None
    assert stored.permissions == frozenset({Permission.GET_USERS, Permission.LIST_USERS})


def test_rotate_api_key_invalidates_previous_key(database: Database) -> None:
    app, old_key = database.create_app("Partner One")

    _, new_key = database.rotate_api_key(app.id)

    assert database.authenticate_api_key(old_key) is None
    authenticated = database.authenticate_api_key(new_key)
    assert authenticated is not None
    assert authenticated.id == app.id


def test_save_and_get_user(database: Database) -> None:
    app, _ = database.create_app("Partner One")
    record = database.save(_record(app.id, "alice", "alice@example.com"))

    stored = database.get_user(record.id)
    assert stored == record


def test_unique_index_rejects_live_duplicates(database: Database) -> None:
    app, _ = database.create_app("Partner One")
    database.save(_record(app.id, "alice", "alice@example.com"))

    with pytest.raises(ConflictError) as excinfo:
        database.save(_record(app.id, "alice", "other@example.com"))
    assert excinfo.value.field == "username"

    with pytest.raises(ConflictError) as excinfo:
        database.save(_record(app.id, "bob", "alice@example.com"))
    assert excinfo.value.field == "emailAddress"


def test_unique_index_ignores_deleted_rows(database: Database) -> None:
    app, _ = database.create_app("Partner One")
    first = _record(app.id, "alice", "alice@example.com")
    first.deleted_at = datetime(2024, 2, 1, tzinfo=timezone.utc)
    database.save(first)

    second = database.save(_record(app.id, "alice", "alice@example.com"))

    assert [user.id for user in database.list_users(app.id)] == [second.id]
    assert len(database.list_users(app.id, include_deleted=True)) == 2


def test_save_never_clears_deleted_at(database: Database) -> None:
    app, _ = database.create_app("Partner One")
    record = _record(app.id, "alice", "alice@example.com")
    deleted_at = datetime(2024, 2, 1, tzinfo=timezone.utc)
    record.deleted_at = deleted_at
    database.save(record)

    record.deleted_at = None
    database.save(record)

    stored = database.get_user(record.id, include_deleted=True)
    assert stored is not None
    assert stored.deleted_at == deleted_at


def test_find_by_username_or_email(database: Database) -> None:
    app, _ = database.create_app("Partner One")
    other, _ = database.create_app("Partner Two")
    alice = database.save(_record(app.id, "alice", "alice@example.com"))

    assert database.find_by_username_or_email(app.id, "alice", "x@example.com") == alice
    assert database.find_by_username_or_email(app.id, "x", "alice@example.com") == alice
    assert database.find_by_username_or_email(other.id, "alice", "alice@example.com") is None
    assert database.find_by_username_or_email(app.id, "alice", None, exclude_id=alice.id) is None


def test_resolve_database_path_uses_env_value(tmp_path: Path) -> None:
    target = tmp_path / "custom.sqlite3"
    assert resolve_database_path(str(target)) == target.resolve()
    assert resolve_database_path(None).name == "partnerhub.sqlite3"


def test_list_users_applies_limit_and_offset(database: Database) -> None:
    app, _ = database.create_app("Partner One")
    saved = [database.save(_record(app.id, f"user{index}", f"user{index}@example.com")) for index in range(3)]

    assert [user.id for user in database.list_users(app.id, limit=2)] == [saved[0].id, saved[1].id]
    assert [user.id for user in database.list_users(app.id, limit=2, offset=2)] == [saved[2].id]
    assert len(database.list_users(app.id)) == 3


def test_save_for_missing_app_is_a_validation_error(database: Database) -> None:
    with pytest.raises(ValidationError) as excinfo:
        database.save(_record(999, "alice", "alice@example.com"))

    assert excinfo.value.field == "app"
    assert database.list_users(999, include_deleted=True) == []

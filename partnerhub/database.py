"""SQLite-backed persistence for partner Apps and their remote users."""
from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from .errors import ConflictError, ValidationError
from .models import App, UserRecord
from .permissions import Permission, parse_permissions, serialize_permissions

API_KEY_PREFIX = "phk_"
_API_KEY_ROUNDS = 200_000


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "partnerhub.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _generate_api_key() -> str:
    return API_KEY_PREFIX + secrets.token_urlsafe(32)


def _hash_api_key(api_key: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", api_key.encode("utf-8"), salt, _API_KEY_ROUNDS)


def _key_lookup_prefix(api_key: str) -> str:
    return api_key[len(API_KEY_PREFIX):][:8] if api_key.startswith(API_KEY_PREFIX) else api_key[:8]


class Database:
    """Simple wrapper around SQLite for persisting Apps and remote users."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS apps (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    api_key_prefix TEXT NOT NULL,
                    api_key_hash TEXT NOT NULL,
                    api_key_salt TEXT NOT NULL,
                    permissions TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    app_id INTEGER NOT NULL REFERENCES apps(id) ON DELETE CASCADE,
                    username TEXT NOT NULL,
                    email_address TEXT NOT NULL,
                    password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    deleted_at TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_apps_api_key_prefix ON apps(api_key_prefix);
                CREATE INDEX IF NOT EXISTS idx_users_app_id ON users(app_id);
                CREATE UNIQUE INDEX IF NOT EXISTS uniq_users_app_username
                    ON users(app_id, username) WHERE deleted_at IS NULL;
                CREATE UNIQUE INDEX IF NOT EXISTS uniq_users_app_email
                    ON users(app_id, email_address) WHERE deleted_at IS NULL;
                """
            )

    # ------------------------------------------------------------------
    # App management
    # ------------------------------------------------------------------
    def create_app(
        self,
        name: str,
        permissions: Optional[Iterable[Permission]] = None,
    ) -> Tuple[App, str]:
        """Register a partner App and return it along with its API key."""

        normalized_name = name.strip()
        if not normalized_name:
            raise ValueError("App name must not be empty")
        if len(normalized_name) > 100:
            raise ValueError("App name must be at most 100 characters")

        granted = frozenset(permissions) if permissions is not None else parse_permissions(None)
        created_at = _current_timestamp()
        api_key = _generate_api_key()
        salt = secrets.token_bytes(16)
        hash_bytes = _hash_api_key(api_key, salt)
        prefix = _key_lookup_prefix(api_key)

        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO apps (name, api_key_prefix, api_key_hash, api_key_salt, permissions, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    normalized_name,
                    prefix,
                    base64.b64encode(hash_bytes).decode("ascii"),
                    base64.b64encode(salt).decode("ascii"),
                    serialize_permissions(granted),
                    _serialize_datetime(created_at),
                ),
            )
            app_id = cursor.lastrowid

        app = App(
            id=int(app_id),
            name=normalized_name,
            api_key_prefix=prefix,
            created_at=created_at,
            permissions=granted,
        )
        return app, api_key

    def get_app(self, app_id: int) -> Optional[App]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM apps WHERE id = ?", (app_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_app(row)

    def list_apps(self) -> List[App]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM apps ORDER BY id").fetchall()
        return [self._row_to_app(row) for row in rows]

    def authenticate_api_key(self, api_key: str) -> Optional[App]:
        if not api_key or not api_key.startswith(API_KEY_PREFIX):
            return None
        prefix = _key_lookup_prefix(api_key)
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM apps WHERE api_key_prefix = ?",
                (prefix,),
            ).fetchall()

        for row in rows:
            salt = base64.b64decode(row["api_key_salt"])
            expected_hash = base64.b64decode(row["api_key_hash"])
            calculated = _hash_api_key(api_key, salt)
            if hmac.compare_digest(expected_hash, calculated):
                return self._row_to_app(row)
        return None

    def rotate_api_key(self, app_id: int) -> Tuple[App, str]:
        if self.get_app(app_id) is None:
            raise ValueError("App not found")

        api_key = _generate_api_key()
        salt = secrets.token_bytes(16)
        hash_bytes = _hash_api_key(api_key, salt)
        prefix = _key_lookup_prefix(api_key)

        with self._connect() as conn:
            conn.execute(
                """
                UPDATE apps
                   SET api_key_prefix = ?, api_key_hash = ?, api_key_salt = ?
                 WHERE id = ?
                """,
                (
                    prefix,
                    base64.b64encode(hash_bytes).decode("ascii"),
                    base64.b64encode(salt).decode("ascii"),
                    app_id,
                ),
            )

        refreshed = self.get_app(app_id)
        if refreshed is None:
            raise ValueError("App not found")
        return refreshed, api_key

    # ------------------------------------------------------------------
    # Remote user records
    # ------------------------------------------------------------------
    def save(self, record: UserRecord) -> UserRecord:
        """Insert or update ``record``.

        ``id``, ``app_id`` and ``created_at`` are written once and never
        changed by later saves.
        """

        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    UPDATE users
                       SET username = ?, email_address = ?, password_hash = ?, updated_at = ?,
                           deleted_at = COALESCE(deleted_at, ?)
                     WHERE id = ?
                    """,
                    (
                        record.username,
                        record.email_address,
                        record.password_hash,
                        _serialize_datetime(record.updated_at),
                        _serialize_datetime(record.deleted_at),
                        record.id,
                    ),
                )
                if cursor.rowcount == 0:
                    conn.execute(
                        """
                        INSERT INTO users (
                            id, app_id, username, email_address, password_hash,
                            created_at, updated_at, deleted_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            record.id,
                            record.app_id,
                            record.username,
                            record.email_address,
                            record.password_hash,
                            _serialize_datetime(record.created_at),
                            _serialize_datetime(record.updated_at),
                            _serialize_datetime(record.deleted_at),
                        ),
                    )
            except sqlite3.IntegrityError as exc:
                message = str(exc)
                if "username" in message:
                    raise ConflictError("This username is already used.", field="username") from exc
                if "email_address" in message:
                    raise ConflictError("This email address is already used.", field="emailAddress") from exc
                if "FOREIGN KEY" in message:
                    raise ValidationError("This App does not exist.", field="app") from exc
                raise
        return record

    def get_user(self, user_id: str, *, include_deleted: bool = False) -> Optional[UserRecord]:
        query = "SELECT * FROM users WHERE id = ?"
        if not include_deleted:
            query += " AND deleted_at IS NULL"
        with self._connect() as conn:
            row = conn.execute(query, (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def list_users(
        self,
        app_id: int,
        *,
        include_deleted: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[UserRecord]:
        query = "SELECT * FROM users WHERE app_id = ?"
        params: List[object] = [app_id]
        if not include_deleted:
            query += " AND deleted_at IS NULL"
        query += " ORDER BY created_at, username, id"
        if limit is not None:
            query += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_user(row) for row in rows]

    def find_by_username_or_email(
        self,
        app_id: int,
        username: Optional[str],
        email_address: Optional[str],
        *,
        exclude_id: Optional[str] = None,
    ) -> Optional[UserRecord]:
        """Return a live record of ``app_id`` using either value, if any."""

        query = (
            "SELECT * FROM users WHERE app_id = ? AND deleted_at IS NULL"
            " AND (username = ? OR email_address = ?)"
        )
        params: List[object] = [app_id, username, email_address]
        if exclude_id is not None:
            query += " AND id != ?"
            params.append(exclude_id)
        query += " ORDER BY created_at LIMIT 1"
        with self._connect() as conn:
            row = conn.execute(query, params).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_app(self, row: sqlite3.Row) -> App:
        return App(
            id=int(row["id"]),
            name=str(row["name"]),
            api_key_prefix=str(row["api_key_prefix"]),
            created_at=_parse_datetime(str(row["created_at"])),
            permissions=parse_permissions(str(row["permissions"])),
        )

    def _row_to_user(self, row: sqlite3.Row) -> UserRecord:
        return UserRecord(
            id=str(row["id"]),
            app_id=int(row["app_id"]),
            username=str(row["username"]),
            email_address=str(row["email_address"]),
            password_hash=str(row["password_hash"]),
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(row["updated_at"])),
            deleted_at=_parse_datetime(row["deleted_at"]),
        )


__all__ = ["API_KEY_PREFIX", "Database", "resolve_database_path"]

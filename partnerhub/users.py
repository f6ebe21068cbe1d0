"""Lifecycle of remote-user records: create, update, soft delete.

Timestamps and soft deletion are explicit calls on :class:`UserService`.
Plain passwords only ever travel as arguments; the record keeps the derived
hash.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol

from . import validation
from .errors import ConflictError, NotFoundError, Violation
from .models import App, UserRecord, generate_user_id
from .passwords import hash_password

logger = logging.getLogger("partnerhub.users")

DEFAULT_ITEMS_PER_PAGE = 30
MAX_ITEMS_PER_PAGE = 100


class UserStore(Protocol):
    """Persistence operations the lifecycle depends on."""

    def find_by_username_or_email(
        self,
        app_id: int,
        username: Optional[str],
        email_address: Optional[str],
        *,
        exclude_id: Optional[str] = None,
    ) -> Optional[UserRecord]: ...

    def save(self, record: UserRecord) -> UserRecord: ...

    def get_user(self, user_id: str, *, include_deleted: bool = False) -> Optional[UserRecord]: ...

    def list_users(
        self,
        app_id: int,
        *,
        include_deleted: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[UserRecord]: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserService:
    """Validate and persist remote users on behalf of partner Apps."""

    def __init__(self, store: UserStore, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._store = store
        self._clock = clock or _utcnow

    def _now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def get(self, app: App, user_id: str) -> UserRecord:
        record = self._store.get_user(user_id)
        if record is None or record.app_id != app.id:
            raise NotFoundError(f"User {user_id} not found")
        return record

    def list(
        self,
        app: App,
        *,
        page: int = 1,
        items_per_page: int = DEFAULT_ITEMS_PER_PAGE,
    ) -> List[UserRecord]:
        """Return one page of live records, oldest first. Pages start at 1."""

        violations: List[Violation] = []
        if page < 1:
            violations.append(Violation("page", "This value should be greater than or equal to 1."))
        if not 1 <= items_per_page <= MAX_ITEMS_PER_PAGE:
            violations.append(
                Violation("itemsPerPage", f"This value should be between 1 and {MAX_ITEMS_PER_PAGE}.")
            )
        validation.raise_for_violations(violations)
        return self._store.list_users(
            app.id,
            limit=items_per_page,
            offset=(page - 1) * items_per_page,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def create(
        self,
        username: Optional[str],
        email_address: Optional[str],
        plain_password: Optional[str],
        plain_password_confirm: Optional[str],
        owning_app: Optional[App],
    ) -> UserRecord:
        username = validation.normalize_username(username)
        email_address = validation.normalize_email(email_address)

        violations: List[Violation] = []
        if owning_app is None:
            violations.append(Violation("app", "This value should not be null."))
        validation.check_username(violations, username)
        validation.check_email_address(violations, email_address)
        validation.check_password_pair(violations, plain_password, plain_password_confirm)
        self._reject(violations, "create")

        assert owning_app is not None and plain_password is not None
        self._ensure_unique(owning_app.id, username, email_address)

        now = self._now()
        record = UserRecord(
            id=generate_user_id(),
            app_id=owning_app.id,
            username=username,
            email_address=email_address,
            password_hash=hash_password(plain_password),
            created_at=now,
            updated_at=now,
        )
        self._store.save(record)
        logger.info("Created user %s for app %s", record.id, owning_app.id)
        return record

    def update(
        self,
        record: UserRecord,
        *,
        username: Optional[str] = None,
        email_address: Optional[str] = None,
        plain_password: Optional[str] = None,
        plain_password_confirm: Optional[str] = None,
    ) -> UserRecord:
        """Apply the supplied fields to ``record``; ``None`` leaves a field as is."""

        if record.is_deleted:
            raise NotFoundError(f"User {record.id} not found")

        new_username = validation.normalize_username(username) if username is not None else record.username
        new_email = (
            validation.normalize_email(email_address) if email_address is not None else record.email_address
        )

        violations: List[Violation] = []
        validation.check_username(violations, new_username)
        validation.check_email_address(violations, new_email)
        validation.check_password_change(violations, plain_password, plain_password_confirm)
        self._reject(violations, "update", record.id)

        self._ensure_unique(record.app_id, new_username, new_email, exclude_id=record.id)

        candidate = replace(record, username=new_username, email_address=new_email)
        if plain_password is not None:
            candidate.password_hash = hash_password(plain_password)
        candidate.updated_at = self._now()
        self._store.save(candidate)

        record.username = candidate.username
        record.email_address = candidate.email_address
        record.password_hash = candidate.password_hash
        record.updated_at = candidate.updated_at
        logger.info("Updated user %s for app %s", record.id, record.app_id)
        return record

    def soft_delete(self, record: UserRecord) -> UserRecord:
        """Mark ``record`` deleted. A second call keeps the first timestamp."""

        if record.deleted_at is not None:
            logger.debug("User %s already deleted at %s", record.id, record.deleted_at.isoformat())
            return record

        record.deleted_at = self._now()
        self._store.save(record)
        logger.info("Soft deleted user %s for app %s", record.id, record.app_id)
        return record

    def validate_password_change(
        self,
        record: UserRecord,
        plain_password: Optional[str],
        plain_password_confirm: Optional[str],
    ) -> None:
        """Check a pending password change without writing anything."""

        violations: List[Violation] = []
        validation.check_password_change(violations, plain_password, plain_password_confirm)
        validation.raise_for_violations(violations)
        record.updated_at = self._now()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _reject(self, violations: List[Violation], action: str, user_id: Optional[str] = None) -> None:
        if not violations:
            return
        logger.warning(
            "Rejected %s of user %s: %s",
            action,
            user_id or "<new>",
            ", ".join(f"{violation.field}: {violation.message}" for violation in violations),
        )
        validation.raise_for_violations(violations)

    def _ensure_unique(
        self,
        app_id: int,
        username: str,
        email_address: str,
        *,
        exclude_id: Optional[str] = None,
    ) -> None:
        existing = self._store.find_by_username_or_email(
            app_id, username, email_address, exclude_id=exclude_id
        )
        if existing is None:
            return
        if existing.username == username:
            logger.warning("Username conflict in app %s", app_id)
            raise ConflictError("This username is already used.", field="username")
        logger.warning("Email address conflict in app %s", app_id)
        raise ConflictError("This email address is already used.", field="emailAddress")


__all__ = ["UserService", "UserStore"]

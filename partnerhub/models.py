"""Domain models for partner applications and their remote users."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, Optional

from .permissions import ALL_PERMISSIONS, Permission


@dataclass(frozen=True)
class App:
    """A partner application that owns remote users."""

    id: int
    name: str
    api_key_prefix: str
    created_at: datetime
    permissions: FrozenSet[Permission] = ALL_PERMISSIONS


def generate_user_id() -> str:
    return str(uuid.uuid4())


@dataclass
class UserRecord:
    """Someone who used a partner's App.

    This is not a principal of the service itself. Plain passwords are never
    stored here; only the derived ``password_hash`` is.
    """

    app_id: int
    username: str
    email_address: str
    password_hash: str
    created_at: datetime
    updated_at: datetime
    id: str = field(default_factory=generate_user_id)
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


__all__ = ["App", "UserRecord", "generate_user_id"]

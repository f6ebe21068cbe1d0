"""Remote users of partner applications."""

from __future__ import annotations

from typing import Any

from .database import Database, resolve_database_path
from .errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from .models import App, UserRecord
from .users import UserService


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the HTTP application."""

    from .api import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "App",
    "ConflictError",
    "Database",
    "NotFoundError",
    "PermissionDeniedError",
    "UserRecord",
    "UserService",
    "ValidationError",
    "create_app",
    "resolve_database_path",
]

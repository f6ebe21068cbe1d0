"""Exceptions raised by the remote-user lifecycle and persistence layers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Violation:
    """A single failed field constraint."""

    field: Optional[str]
    message: str

    def as_dict(self) -> Dict[str, Optional[str]]:
        return {"field": self.field, "message": self.message}


class PartnerHubError(Exception):
    """Base class for caller-visible errors."""

    code = "ERROR"
    status_code = 400

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def as_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "field": self.field}


class ValidationError(PartnerHubError):
    """Raised when a field is blank, out of bounds, malformed or mismatched."""

    code = "VALIDATION_ERROR"
    status_code = 422

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        violations: Optional[List[Violation]] = None,
    ) -> None:
        super().__init__(message, field=field)
        self.violations: List[Violation] = list(violations or [Violation(field, message)])

    @classmethod
    def from_violations(cls, violations: List[Violation]) -> "ValidationError":
        first = violations[0]
        return cls(first.message, field=first.field, violations=violations)

    def as_dict(self) -> Dict[str, Any]:
        payload = super().as_dict()
        payload["violations"] = [violation.as_dict() for violation in self.violations]
        return payload


class ConflictError(PartnerHubError):
    """Raised when a uniqueness constraint would be broken by a write."""

    code = "CONFLICT"
    status_code = 409


class NotFoundError(PartnerHubError):
    """Raised when a record does not exist or has been soft deleted."""

    code = "NOT_FOUND"
    status_code = 404


class PermissionDeniedError(PartnerHubError):
    """Raised when an App is not granted the permission it needs."""

    code = "PERMISSION_DENIED"
    status_code = 403


__all__ = [
    "ConflictError",
    "NotFoundError",
    "PartnerHubError",
    "PermissionDeniedError",
    "ValidationError",
    "Violation",
]

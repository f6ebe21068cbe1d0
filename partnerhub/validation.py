"""Field constraints for remote-user records.

Each ``check_*`` helper appends :class:`~partnerhub.errors.Violation` entries
to a list instead of raising, so that one call can report every problem with
a payload. :func:`raise_for_violations` turns a non-empty list into a
:class:`~partnerhub.errors.ValidationError`.
"""
from __future__ import annotations

from typing import List, Optional

from email_validator import EmailNotValidError, validate_email

from .errors import ValidationError, Violation

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 100
EMAIL_MAX_LENGTH = 255

BLANK_MESSAGE = "This value should not be blank."


def normalize_username(value: Optional[str]) -> Optional[str]:
    return value.strip() if value is not None else None


def normalize_email(value: Optional[str]) -> Optional[str]:
    return value.strip().lower() if value is not None else None


def check_not_blank(violations: List[Violation], field: str, value: Optional[str]) -> bool:
    if value is None or value == "":
        violations.append(Violation(field, BLANK_MESSAGE))
        return False
    return True


def check_username(violations: List[Violation], value: Optional[str]) -> None:
    if not check_not_blank(violations, "username", value):
        return
    assert value is not None
    if len(value) < USERNAME_MIN_LENGTH:
        violations.append(
            Violation(
                "username",
                f"This value is too short. It should have {USERNAME_MIN_LENGTH} characters or more.",
            )
        )
    elif len(value) > USERNAME_MAX_LENGTH:
        violations.append(
            Violation(
                "username",
                f"This value is too long. It should have {USERNAME_MAX_LENGTH} characters or less.",
            )
        )


def check_email_address(violations: List[Violation], value: Optional[str]) -> None:
    if not check_not_blank(violations, "emailAddress", value):
        return
    assert value is not None
    if len(value) > EMAIL_MAX_LENGTH:
        violations.append(
            Violation(
                "emailAddress",
                f"This value is too long. It should have {EMAIL_MAX_LENGTH} characters or less.",
            )
        )
        return
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        violations.append(Violation("emailAddress", "This value is not a valid email address."))


def check_password_pair(
    violations: List[Violation],
    plain_password: Optional[str],
    plain_password_confirm: Optional[str],
) -> None:
    """Creation rules: both values required, and they must be equal."""

    password_present = check_not_blank(violations, "plainPassword", plain_password)
    confirm_present = check_not_blank(violations, "plainPasswordConfirm", plain_password_confirm)
    if password_present and confirm_present and plain_password != plain_password_confirm:
        violations.append(Violation("plainPasswordConfirm", "Password mismatched"))


def check_password_change(
    violations: List[Violation],
    plain_password: Optional[str],
    plain_password_confirm: Optional[str],
) -> None:
    """Update rules: only enforced when a new password is supplied."""

    if plain_password is None:
        return
    if plain_password == "":
        violations.append(Violation("plainPassword", BLANK_MESSAGE))
        return
    if plain_password_confirm is None:
        violations.append(Violation("plainPasswordConfirm", "Missing plainPasswordConfirm"))
        return
    if plain_password != plain_password_confirm:
        violations.append(Violation("plainPasswordConfirm", "Password mismatched"))


def raise_for_violations(violations: List[Violation]) -> None:
    if violations:
        raise ValidationError.from_violations(violations)


__all__ = [
    "EMAIL_MAX_LENGTH",
    "USERNAME_MAX_LENGTH",
    "USERNAME_MIN_LENGTH",
    "check_email_address",
    "check_not_blank",
    "check_password_change",
    "check_password_pair",
    "check_username",
    "normalize_email",
    "normalize_username",
    "raise_for_violations",
]

from __future__ import annotations

from typing import List

import pytest

from partnerhub.errors import ValidationError, Violation
from partnerhub.validation import (
    check_email_address,
    check_password_change,
    check_password_pair,
    check_username,
    raise_for_violations,
)


def _messages(violations: List[Violation]) -> List[str]:
    return [violation.message for violation in violations]


@pytest.mark.parametrize("value", ["abc", "a" * 100, "alice_01"])
def test_username_within_bounds(value: str) -> None:
    violations: List[Violation] = []
    check_username(violations, value)
    assert violations == []


def test_username_bounds_messages() -> None:
    violations: List[Violation] = []
    check_username(violations, "ab")
    check_username(violations, "a" * 101)
    check_username(violations, None)
    assert _messages(violations) == [
        "This value is too short. It should have 3 characters or more.",
        "This value is too long. It should have 100 characters or less.",
        "This value should not be blank.",
    ]


@pytest.mark.parametrize("value", ["alice@example.com", "first.last+tag@sub.example.org"])
def test_valid_email_addresses(value: str) -> None:
    violations: List[Violation] = []
    check_email_address(violations, value)
    assert violations == []


@pytest.mark.parametrize("value", ["alice", "alice@", "@example.com", "alice@@example.com"])
def test_invalid_email_addresses(value: str) -> None:
    violations: List[Violation] = []
    check_email_address(violations, value)
    assert _messages(violations) == ["This value is not a valid email address."]


def test_password_pair_requires_equal_values() -> None:
    violations: List[Violation] = []
    check_password_pair(violations, "secret1", "secret2")
    assert violations == [Violation("plainPasswordConfirm", "Password mismatched")]


def test_password_change_is_optional() -> None:
    violations: List[Violation] = []
    check_password_change(violations, None, None)
    check_password_change(violations, None, "ignored")
    check_password_change(violations, "secret1", "secret1")
    assert violations == []

    check_password_change(violations, "secret1", None)
    check_password_change(violations, "secret1", "other")
    assert _messages(violations) == ["Missing plainPasswordConfirm", "Password mismatched"]


def test_raise_for_violations_uses_first_violation() -> None:
    raise_for_violations([])

    with pytest.raises(ValidationError) as excinfo:
        raise_for_violations([Violation("username", "first"), Violation("emailAddress", "second")])

    assert excinfo.value.field == "username"
    assert excinfo.value.message == "first"
    assert len(excinfo.value.violations) == 2


@pytest.mark.parametrize("value", ["alice@host.local", "alice@example.test", "alice@localhost"])
def test_special_use_domains_are_rejected(value: str) -> None:
    violations: List[Violation] = []
    check_email_address(violations, value)
    assert _messages(violations) == ["This value is not a valid email address."]

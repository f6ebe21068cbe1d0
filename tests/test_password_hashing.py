"""Tests for remote-user password hashing."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from partnerhub.passwords import hash_password, verify_password


class PasswordHashingTests(unittest.TestCase):
    def test_hash_and_verify(self) -> None:
        hashed = hash_password("supersecurepassword")
        self.assertTrue(hashed.startswith("$pbkdf2-sha256$"))
        self.assertNotIn("supersecurepassword", hashed)
        self.assertTrue(verify_password("supersecurepassword", hashed))
        self.assertFalse(verify_password("incorrect", hashed))

    def test_hashes_are_salted(self) -> None:
        self.assertNotEqual(hash_password("samepassword"), hash_password("samepassword"))

    def test_empty_password_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            hash_password("")

    def test_unrecognised_hash_does_not_verify(self) -> None:
        self.assertFalse(verify_password("anything", "not-a-hash"))
        self.assertFalse(verify_password("anything", ""))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()

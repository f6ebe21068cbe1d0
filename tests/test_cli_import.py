"""Regression tests for importing the data layer without the HTTP stack."""

from __future__ import annotations

import importlib
import sys
import types
import unittest
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class CLIImportTests(unittest.TestCase):
    def tearDown(self) -> None:
        self._clear_package_modules()

    @staticmethod
    def _clear_package_modules() -> None:
        for name in [m for m in list(sys.modules.keys()) if m == "partnerhub" or m.startswith("partnerhub.")]:
            sys.modules.pop(name, None)

    def test_import_lifecycle_without_fastapi(self) -> None:
        """The CLI paths must not pull in FastAPI until the server is started."""

        self._clear_package_modules()

        fastapi_module: types.ModuleType | None = sys.modules.pop("fastapi", None)
        sys.modules["fastapi"] = None
        try:
            database_module = importlib.import_module("partnerhub.database")
            users_module = importlib.import_module("partnerhub.users")
            self.assertTrue(hasattr(database_module, "Database"))
            self.assertTrue(hasattr(users_module, "UserService"))

            package = sys.modules.get("partnerhub")
            self.assertIsNotNone(package)
            self.assertTrue(hasattr(package, "UserService"))
        finally:
            sys.modules.pop("fastapi", None)
            if fastapi_module is not None:
                sys.modules["fastapi"] = fastapi_module


if __name__ == "__main__":  # pragma: no cover
    unittest.main()

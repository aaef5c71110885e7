"""
Pytest configuration for the `egress-policy` test suite.

We keep tests importing `egress_policy...` normally (no importlib file loaders).
To make that work in a fresh checkout without requiring an editable install,
we add the local `backend/src` directory to `sys.path`.
"""

from __future__ import annotations

import sys
from pathlib import Path


def pytest_configure() -> None:
    """
    Ensure local `egress_policy` package is importable for tests.

    This is intentionally minimal and only affects the test runtime.
    """

    repo_root = Path(__file__).resolve().parent.parent
    backend_src = repo_root / "backend" / "src"

    if backend_src.is_dir():
        # Prepend so local sources win over any globally installed package.
        sys.path.insert(0, str(backend_src))

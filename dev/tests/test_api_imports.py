"""Ensure mod_intake.app.api stays importable without GUI bindings."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


def test_app_api_import_lightweight() -> None:
    code = (
        "import sys; import importlib; "
        "importlib.import_module('mod_intake.app.api'); "
        "mods = {'PySide6','PyQt5','tkinter'}; "
        "print(','.join(sorted(m for m in sys.modules if m in mods)))"
    )
    result = subprocess.run(
        [sys.executable, "-c", code],
        capture_output=True,
        text=True,
        cwd=str(ROOT),
    )
    assert result.returncode == 0
    assert result.stdout.strip() == ""


def test_api_exports_resolve() -> None:
    from mod_intake.app import api

    missing = [name for name in api.__all__ if not hasattr(api, name)]
    assert missing == []
    assert "ConflictResolver" in api.__all__

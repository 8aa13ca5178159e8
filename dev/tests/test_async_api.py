from __future__ import annotations

import asyncio
import json
from pathlib import Path

from mod_intake.app.async_api import async_commit_scan, async_detect_archives, async_scan_preview
from mod_intake.app.backend import LocalBackend
from mod_intake.app.models import ConfirmedScanItem
from mod_intake.database.mod_store import ModStore
from mod_intake.utils.result import error_message, is_err, is_ok, unwrap


def test_async_scan_then_commit(mods_root: Path, make_mod, catalog) -> None:
    make_mod(mods_root, "Albedo Summer")
    backend = LocalBackend(str(mods_root), store=ModStore())
    catalog_json = json.dumps([e.to_dict() for e in catalog])

    scan_result = asyncio.run(async_scan_preview(backend, "g", str(mods_root), catalog_json))
    assert is_ok(scan_result)
    (item,) = unwrap(scan_result)

    confirmed = ConfirmedScanItem(
        folder_path=item.folder_path,
        display_name=item.display_name,
        is_disabled=item.is_disabled,
        matched_object=item.matched_object,
    )
    commit_result = asyncio.run(async_commit_scan(backend, "g", [confirmed]))
    assert is_ok(commit_result)
    assert unwrap(commit_result).new_mods == 1


def test_async_errors_come_back_as_err(tmp_path: Path) -> None:
    backend = LocalBackend(str(tmp_path), store=ModStore())

    result = asyncio.run(async_detect_archives(backend, str(tmp_path / "missing")))

    assert is_err(result)
    assert error_message(result)

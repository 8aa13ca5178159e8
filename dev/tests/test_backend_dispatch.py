from __future__ import annotations

import json
import sqlite3

import pytest

from mod_intake.app.backend import COMMAND_NAMES, LocalBackend, dispatch, to_jsonable
from mod_intake.core.scoring import Confidence
from mod_intake.database.mod_store import ModStore


@pytest.fixture
def backend(mods_root):
    return LocalBackend(str(mods_root), store=ModStore())


def test_command_names_cover_backend_calls():
    assert set(COMMAND_NAMES) == {
        "detect_archives",
        "extract_archive",
        "scan_preview",
        "commit_scan",
        "score_candidates",
        "get_conflict_details",
        "resolve_conflict",
        "set_watcher_suppression",
    }


def test_unknown_command_and_missing_argument(backend):
    unknown = dispatch(backend, "format_disk", {})
    assert unknown["ok"] is False
    assert unknown["error"]["error_code"] == "UNKNOWN_COMMAND"

    missing = dispatch(backend, "score_candidates", {})
    assert missing["ok"] is False
    assert missing["error"]["error_code"] == "MISSING_ARGUMENT"


def test_scan_preview_then_commit_round(backend, mods_root, make_mod, catalog):
    make_mod(mods_root, "Albedo Summer")
    catalog_json = json.dumps([e.to_dict() for e in catalog])

    preview = dispatch(backend, "scan_preview", {
        "game_id": "g", "root_path": str(mods_root), "db_catalog_json": catalog_json,
    })
    assert preview["ok"] is True
    (item,) = preview["result"]
    assert item["matched_object"] == "Albedo"
    assert item["confidence"] in {c.value for c in Confidence}
    json.dumps(preview)

    committed = dispatch(backend, "commit_scan", {"game_id": "g", "confirmed_items": [item]})
    assert committed["ok"] is True
    assert committed["result"]["new_mods"] == 1
    assert backend.store.count_mods("g") == 1


def test_score_candidates(backend, mods_root, make_mod):
    folder = make_mod(mods_root, "Kazuha Hat")
    response = dispatch(backend, "score_candidates", {
        "folder_path": str(folder), "candidate_names": ["Kazuha", "Albedo"],
    })
    assert response["ok"] is True
    assert response["result"]["Kazuha"] > response["result"]["Albedo"]


def test_domain_errors_are_mapped(backend, tmp_path):
    response = dispatch(backend, "resolve_conflict", {
        "keep_path": str(tmp_path / "a"), "duplicate_path": str(tmp_path / "b"), "strategy": "bogus",
    })
    assert response["ok"] is False
    assert "error_code" in response["error"]
    assert "message" in response["error"]


def test_watcher_suppression_flag(backend):
    assert dispatch(backend, "set_watcher_suppression", {"value": True})["ok"]
    assert backend.suppressor.is_suppressed()
    dispatch(backend, "set_watcher_suppression", {"value": False})
    assert not backend.suppressor.is_suppressed()


def test_to_jsonable_handles_nested_values(tmp_path):
    value = {"path": tmp_path, "tags": ("a", "b"), "confidence": Confidence.HIGH}
    assert to_jsonable(value) == {"path": str(tmp_path), "tags": ["a", "b"], "confidence": "High"}


class _LockedBackend(LocalBackend):
    def score_candidates(self, folder_path, candidate_names):
        raise sqlite3.OperationalError("database is locked")


def test_storage_errors_map_to_io_error(mods_root):
    response = dispatch(_LockedBackend(str(mods_root), store=ModStore()), "score_candidates", {
        "folder_path": str(mods_root), "candidate_names": ["Albedo"],
    })
    assert response["ok"] is False
    assert response["error"]["error_code"] == "IO_ERROR"
    assert "locked" in response["error"]["message"]


def test_malformed_arguments_map_to_invalid_argument(backend, mods_root):
    no_path = dispatch(backend, "commit_scan", {
        "game_id": "g", "confirmed_items": [{"display_name": "Albedo", "is_disabled": False}],
    })
    assert no_path["ok"] is False
    assert no_path["error"]["error_code"] == "INVALID_ARGUMENT"

    bad_catalog = dispatch(backend, "scan_preview", {
        "game_id": "g", "root_path": str(mods_root), "db_catalog_json": "{not json",
    })
    assert bad_catalog["ok"] is False
    assert bad_catalog["error"]["error_code"] == "INVALID_ARGUMENT"
    assert backend.store.count_mods("g") == 0

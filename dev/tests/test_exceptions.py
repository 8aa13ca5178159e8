from __future__ import annotations

from mod_intake.exceptions import (
    ArchiveCollisionError,
    ArchiveError,
    ArchivePasswordError,
    BaseError,
    CommitError,
    ConflictResolutionError,
    InvalidTransitionError,
    PipelineBusyError,
    ScanCancelled,
)


def test_error_to_dict_has_code_and_details():
    err = CommitError("boom", ["/a", "/b"])
    payload = err.to_dict()
    assert payload["error_code"] == "COMMIT_ERROR"
    assert payload["message"] == "boom"
    assert payload["details"]["failed_paths"] == ["/a", "/b"]
    assert "timestamp" in payload


def test_archive_hierarchy():
    pw = ArchivePasswordError("need pw", "/x.zip")
    coll = ArchiveCollisionError("exists", "/x.zip", "/out/x")
    assert isinstance(pw, ArchiveError) and isinstance(coll, ArchiveError)
    assert pw.details["archive_path"] == "/x.zip"
    assert coll.details["target_path"] == "/out/x"


def test_scan_cancelled_carries_progress():
    exc = ScanCancelled(3, 10)
    assert isinstance(exc, BaseError)
    assert (exc.processed, exc.total) == (3, 10)
    assert "3/10" in str(exc)


def test_state_errors():
    assert PipelineBusyError("scanning").details == {"state": "scanning"}
    err = InvalidTransitionError("idle", "committing")
    assert err.error_code == "INVALID_TRANSITION"
    assert ConflictResolutionError("x", "separate").details["strategy"] == "separate"

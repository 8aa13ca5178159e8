"""Collaborator boundary used by the pipeline and the drop controller.

``Backend`` is the call contract; ``LocalBackend`` wires it to the local
extractor, scorer, SQLite store and watcher suppressor. ``dispatch`` exposes
the same calls RPC-style: a command name plus a dict of arguments in, a
structured ``{"ok": ..., "result"|"error": ...}`` dict out.
"""

from __future__ import annotations

import dataclasses
import logging
import sqlite3
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from .conflict_controller import get_conflict_details as _get_conflict_details
from .conflict_controller import resolve_conflict as _resolve_conflict
from .models import (
    ArchiveInfo,
    CancelToken,
    CommitReport,
    ConfirmedScanItem,
    ConflictDetails,
    ExtractionResult,
    ResolutionResult,
    ScanEventCallback,
    ScanPreviewItem,
)
from .scan_controller import commit_scan as _commit_scan
from .scan_controller import scan_preview as _scan_preview
from ..core.archive_extractor import detect_archives as _detect_archives
from ..core.archive_extractor import extract_archive as _extract_archive
from ..core.classifier import ARCHIVE_EXTENSIONS
from ..core.scoring import ScoringService
from ..core.walker import DEFAULT_TEMP_DIR_NAME
from ..core.watch_suppression import WatcherSuppressor
from ..database.mod_store import ModStore, parse_catalog
from ..config.models import ConfigModel
from ..exceptions import BaseError, ConfigurationError

logger = logging.getLogger(__name__)


class Backend(Protocol):
    def detect_archives(self, root_path: str) -> List[ArchiveInfo]: ...

    def extract_archive(self, archive_path: str, dest_dir: str, password: Optional[str] = None,
                        overwrite: bool = False) -> ExtractionResult: ...

    def scan_preview(self, game_id: str, root_path: str, db_catalog_json: str,
                     folder_subset: Optional[Sequence[str]] = None,
                     on_event: Optional[ScanEventCallback] = None,
                     cancel_token: Optional[CancelToken] = None) -> List[ScanPreviewItem]: ...

    def commit_scan(self, game_id: str, confirmed_items: Sequence[ConfirmedScanItem],
                    prune_missing: bool = False) -> CommitReport: ...

    def score_candidates(self, folder_path: str, candidate_names: Sequence[str]) -> Dict[str, int]: ...

    def get_conflict_details(self, path_a: str, path_b: str) -> ConflictDetails: ...

    def resolve_conflict(self, keep_path: str, duplicate_path: str, strategy: str) -> ResolutionResult: ...

    def set_watcher_suppression(self, value: bool) -> None: ...


class LocalBackend:
    """In-process implementation of :class:`Backend`."""

    def __init__(
        self,
        mods_root: str,
        game_id: str = "default",
        store: Optional[ModStore] = None,
        scoring: Optional[ScoringService] = None,
        suppressor: Optional[WatcherSuppressor] = None,
        temp_dir_name: str = DEFAULT_TEMP_DIR_NAME,
        archive_extensions: Sequence[str] = tuple(sorted(ARCHIVE_EXTENSIONS)),
    ):
        self.mods_root = str(mods_root)
        self.game_id = game_id
        self.store = store or ModStore()
        self.scoring = scoring or ScoringService()
        self.suppressor = suppressor or WatcherSuppressor()
        self.temp_dir_name = temp_dir_name
        self.archive_extensions = tuple(archive_extensions)

    @classmethod
    def from_config(cls, config: ConfigModel, mods_root: Optional[str] = None,
                    game_id: Optional[str] = None) -> "LocalBackend":
        root = mods_root or config.mods_root
        if not root:
            raise ConfigurationError("mods_root is not configured")
        return cls(
            root,
            game_id=game_id or config.game_id,
            store=ModStore(config.storage.database_path),
            scoring=ScoringService(int(config.pipeline.auto_match_min_score)),
            temp_dir_name=config.archives.temp_dir_name,
            archive_extensions=config.archives.extensions,
        )

    def detect_archives(self, root_path: str) -> List[ArchiveInfo]:
        return _detect_archives(root_path, self.archive_extensions, self.temp_dir_name)

    def extract_archive(self, archive_path: str, dest_dir: str, password: Optional[str] = None,
                        overwrite: bool = False) -> ExtractionResult:
        with self.suppressor.suppressed():
            return _extract_archive(archive_path, dest_dir, password=password, overwrite=overwrite)

    def scan_preview(self, game_id: str, root_path: str, db_catalog_json: str,
                     folder_subset: Optional[Sequence[str]] = None,
                     on_event: Optional[ScanEventCallback] = None,
                     cancel_token: Optional[CancelToken] = None) -> List[ScanPreviewItem]:
        catalog = parse_catalog(db_catalog_json)
        return _scan_preview(
            game_id,
            root_path,
            catalog,
            scoring=self.scoring,
            store=self.store,
            folder_subset=folder_subset,
            on_event=on_event,
            cancel_token=cancel_token,
            temp_dir_name=self.temp_dir_name,
        )

    def commit_scan(self, game_id: str, confirmed_items: Sequence[ConfirmedScanItem],
                    prune_missing: bool = False) -> CommitReport:
        return _commit_scan(game_id, self.mods_root, confirmed_items, self.store,
                            suppressor=self.suppressor, prune_missing=prune_missing)

    def score_candidates(self, folder_path: str, candidate_names: Sequence[str]) -> Dict[str, int]:
        return self.scoring.score_candidates(folder_path, candidate_names)

    def get_conflict_details(self, path_a: str, path_b: str) -> ConflictDetails:
        return _get_conflict_details(path_a, path_b)

    def resolve_conflict(self, keep_path: str, duplicate_path: str, strategy: str) -> ResolutionResult:
        result = _resolve_conflict(keep_path, duplicate_path, strategy, suppressor=self.suppressor)
        if result.removed_path:
            self.store.delete_mods(self.game_id, [result.removed_path])
        if result.renamed_from:
            self.store.rename_mod_path(self.game_id, result.renamed_from, result.surviving_paths[0],
                                       is_disabled=False)
        return result

    def set_watcher_suppression(self, value: bool) -> None:
        self.suppressor.set_suppressed(bool(value))


# ---------------------------------------------------------------------------
# RPC-style dispatch
# ---------------------------------------------------------------------------

def to_jsonable(value: Any) -> Any:
    """Dataclasses, enums, paths and containers to plain JSON types."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in value]
    return value


def _confirmed_items(raw: Sequence[Dict[str, Any]]) -> List[ConfirmedScanItem]:
    names = {f.name for f in dataclasses.fields(ConfirmedScanItem)}
    items = []
    for entry in raw:
        data = {k: v for k, v in entry.items() if k in names}
        data["tags"] = tuple(data.get("tags") or ())
        data["metadata"] = dict(data.get("metadata") or {})
        items.append(ConfirmedScanItem(**data))
    return items


_COMMANDS: Dict[str, Callable[[Backend, Dict[str, Any]], Any]] = {
    "detect_archives": lambda b, a: b.detect_archives(a["root_path"]),
    "extract_archive": lambda b, a: b.extract_archive(
        a["archive_path"], a["dest_dir"], a.get("password"), bool(a.get("overwrite", False))
    ),
    "scan_preview": lambda b, a: b.scan_preview(
        a["game_id"], a["root_path"], a.get("db_catalog_json") or "[]", a.get("folder_subset")
    ),
    "commit_scan": lambda b, a: b.commit_scan(
        a["game_id"], _confirmed_items(a.get("confirmed_items") or []), bool(a.get("prune_missing", False))
    ),
    "score_candidates": lambda b, a: b.score_candidates(a["folder_path"], list(a.get("candidate_names") or [])),
    "get_conflict_details": lambda b, a: b.get_conflict_details(a["path_a"], a["path_b"]),
    "resolve_conflict": lambda b, a: b.resolve_conflict(a["keep_path"], a["duplicate_path"], a["strategy"]),
    "set_watcher_suppression": lambda b, a: b.set_watcher_suppression(bool(a.get("value"))),
}

COMMAND_NAMES = tuple(_COMMANDS)


def dispatch(backend: Backend, command: str, args: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    handler = _COMMANDS.get(command)
    if handler is None:
        return {"ok": False, "error": {"error_code": "UNKNOWN_COMMAND", "message": f"Unknown command: {command}"}}
    try:
        result = handler(backend, dict(args or {}))
    except BaseError as exc:
        logger.warning("%s failed: %s", command, exc)
        return {"ok": False, "error": exc.to_dict()}
    except KeyError as exc:
        return {"ok": False, "error": {"error_code": "MISSING_ARGUMENT", "message": f"Missing argument: {exc}"}}
    except (OSError, sqlite3.Error) as exc:
        logger.warning("%s failed: %s", command, exc)
        return {"ok": False, "error": {"error_code": "IO_ERROR", "message": str(exc)}}
    except (TypeError, ValueError) as exc:
        logger.warning("%s rejected its arguments: %s", command, exc)
        return {"ok": False, "error": {"error_code": "INVALID_ARGUMENT", "message": str(exc)}}
    return {"ok": True, "result": to_jsonable(result)}

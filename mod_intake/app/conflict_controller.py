"""Enabled/disabled naming conflicts: detection, comparison and resolution."""

from __future__ import annotations

import logging
import os
import shutil
import uuid
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Tuple

from .invalidation import InvalidationDispatcher
from .models import (
    CONFLICT_STRATEGIES,
    MUTATION_RESOURCES,
    ConflictDetails,
    ConflictFile,
    ConflictInfo,
    ConflictSide,
    ResolutionResult,
    ResourceId,
)
from ..core.classifier import IMAGE_EXTENSIONS, get_extension
from ..core.naming import base_key, enabled_name, is_disabled_name
from ..core.walker import DEFAULT_TEMP_DIR_NAME
from ..core.watch_suppression import WatcherSuppressor
from ..exceptions import ConflictResolutionError, InvalidPathError

logger = logging.getLogger(__name__)

THUMBNAIL_HINTS = ("preview", "thumb", "icon")
TRASH_PREFIX = ".discard-"

RESOLUTION_RESOURCES: Tuple[ResourceId, ...] = MUTATION_RESOURCES + (ResourceId.CONFLICTS,)


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------

def _sibling_dirs(parent: Path) -> List[Path]:
    with os.scandir(parent) as entries:
        return sorted(
            (Path(e.path) for e in entries if e.is_dir(follow_symlinks=False) and not e.name.startswith(".")),
            key=lambda p: p.name,
        )


def _conflict_for(enabled: Path, disabled: Path) -> ConflictInfo:
    return ConflictInfo(
        base_name=enabled_name(disabled.name),
        existing_path=str(disabled),
        attempted_target=str(enabled),
    )


def detect_naming_conflicts(parent: str | Path) -> List[ConflictInfo]:
    """Conflicts between direct children of ``parent``."""
    root = Path(parent)
    if not root.is_dir():
        raise InvalidPathError(f"Not a directory: {root}", str(root))

    groups: Dict[str, Dict[bool, Path]] = {}
    for child in _sibling_dirs(root):
        groups.setdefault(base_key(child.name), {}).setdefault(is_disabled_name(child.name), child)

    conflicts = [
        _conflict_for(variants[False], variants[True])
        for _, variants in sorted(groups.items())
        if False in variants and True in variants
    ]
    return conflicts


def detect_conflicts_under(mods_root: str | Path,
                           temp_dir_name: str = DEFAULT_TEMP_DIR_NAME) -> List[ConflictInfo]:
    """Conflicts in the mod root and in each of its category folders."""
    root = Path(mods_root)
    found = detect_naming_conflicts(root)
    for child in _sibling_dirs(root):
        if child.name == temp_dir_name:
            continue
        found.extend(detect_naming_conflicts(child))
    return found


def check_rename_conflict(path: str | Path, target_name: str) -> Optional[ConflictInfo]:
    """Conflict that renaming ``path`` to ``target_name`` would create, if any."""
    source = Path(path)
    parent = source.parent
    target = parent / target_name
    target_disabled = is_disabled_name(target_name)
    key = base_key(target_name)
    complement = next(
        (
            sibling for sibling in _sibling_dirs(parent)
            if base_key(sibling.name) == key
            and is_disabled_name(sibling.name) != target_disabled
            and sibling.resolve() != source.resolve()
        ),
        None,
    )
    if complement is None:
        return None
    if target_disabled:
        return _conflict_for(enabled=complement, disabled=target)
    return _conflict_for(enabled=target, disabled=complement)


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------

def _file_sort_key(entry: ConflictFile) -> Tuple[int, str]:
    return (0 if entry.is_ini else 1, entry.name.lower())


def folder_detail(path: str | Path) -> ConflictSide:
    folder = Path(path)
    if not folder.is_dir():
        raise InvalidPathError(f"Path does not exist or is not a directory: {folder}", str(folder))

    files: List[ConflictFile] = []
    images: List[str] = []
    with os.scandir(folder) as entries:
        for entry in entries:
            if not entry.is_file():
                continue
            size = entry.stat().st_size
            files.append(ConflictFile(name=entry.name, size=size, is_ini=entry.name.lower().endswith(".ini")))
            if get_extension(entry.name) in IMAGE_EXTENSIONS:
                images.append(entry.name)

    images.sort(key=str.lower)
    hinted = [n for n in images if any(h in n.lower().rsplit(".", 1)[0] for h in THUMBNAIL_HINTS)]
    thumbnail = (hinted or images or [None])[0]

    files.sort(key=_file_sort_key)
    return ConflictSide(
        path=str(folder),
        folder_name=folder.name,
        is_enabled=not is_disabled_name(folder.name),
        total_size=sum(f.size for f in files),
        file_count=len(files),
        files=files,
        thumbnail_path=str(folder / thumbnail) if thumbnail else None,
    )


def get_conflict_details(path_a: str | Path, path_b: str | Path) -> ConflictDetails:
    return ConflictDetails(side_a=folder_detail(path_a), side_b=folder_detail(path_b))


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def _split_pair(keep: Path, duplicate: Path) -> Tuple[Path, Path]:
    """Return ``(enabled, disabled)`` or raise when the pair is not a conflict."""
    if keep.parent.resolve() != duplicate.parent.resolve():
        raise ConflictResolutionError("Conflicting folders must share a parent directory")
    if base_key(keep.name) != base_key(duplicate.name):
        raise ConflictResolutionError("Folders are not variants of the same mod")
    keep_disabled = is_disabled_name(keep.name)
    if keep_disabled == is_disabled_name(duplicate.name):
        raise ConflictResolutionError("Exactly one folder must be the disabled variant")
    return (duplicate, keep) if keep_disabled else (keep, duplicate)


def _to_trash(folder: Path) -> Path:
    trash = folder.parent / f"{TRASH_PREFIX}{uuid.uuid4().hex[:8]}-{folder.name}"
    folder.rename(trash)
    return trash


def _purge(trash: Path) -> None:
    try:
        shutil.rmtree(trash)
    except OSError as exc:
        logger.warning("Discarded folder left at %s: %s", trash, exc)


def resolve_conflict(
    keep_path: str | Path,
    duplicate_path: str | Path,
    strategy: str,
    suppressor: Optional[WatcherSuppressor] = None,
) -> ResolutionResult:
    """Apply ``keep_enabled``, ``keep_disabled`` or ``separate``.

    The keep strategies leave one folder at the shared enabled name: the
    losing folder is moved aside and deleted, and with ``keep_disabled`` the
    disabled copy is then renamed onto the freed name (``renamed_from``
    records its old path). Both folders are untouched when this raises.
    """
    if strategy not in CONFLICT_STRATEGIES:
        raise ConflictResolutionError(f"Unknown strategy: {strategy}", strategy)

    keep, duplicate = Path(keep_path), Path(duplicate_path)
    for folder in (keep, duplicate):
        if not folder.is_dir():
            raise ConflictResolutionError(f"Path does not exist: {folder}", strategy)

    try:
        enabled, disabled = _split_pair(keep, duplicate)
    except ConflictResolutionError as exc:
        raise ConflictResolutionError(str(exc), strategy) from exc

    if strategy == "separate":
        logger.info("Conflict %s kept as separate folders", enabled.name)
        return ResolutionResult(strategy, [str(enabled), str(disabled)], None, RESOLUTION_RESOURCES)

    loser = disabled if strategy == "keep_enabled" else enabled
    suppressor = suppressor or WatcherSuppressor()
    with suppressor.suppressed():
        try:
            trash = _to_trash(loser)
        except OSError as exc:
            raise ConflictResolutionError(f"Failed to remove {loser.name}: {exc}", strategy) from exc
        renamed_from = None
        if strategy == "keep_disabled":
            try:
                disabled.rename(enabled)
            except OSError as exc:
                trash.rename(enabled)
                raise ConflictResolutionError(
                    f"Failed to rename {disabled.name} to {enabled.name}: {exc}", strategy
                ) from exc
            renamed_from = str(disabled)
        _purge(trash)

    logger.info("Resolved conflict (%s): kept %s under %s", strategy,
                Path(renamed_from).name if renamed_from else enabled.name, enabled.name)
    return ResolutionResult(strategy, [str(enabled)], str(loser), RESOLUTION_RESOURCES, renamed_from)


# ---------------------------------------------------------------------------
# Comparison-first resolver
# ---------------------------------------------------------------------------

def _pair_key(path_a: str | Path, path_b: str | Path) -> FrozenSet[str]:
    return frozenset((os.path.abspath(str(path_a)), os.path.abspath(str(path_b))))


class ConflictResolver:
    """Gate conflict resolution behind a side-by-side comparison.

    ``resolve`` is refused for a pair whose details were not fetched through
    this resolver. A successful resolution forgets the pair and dispatches
    the invalidations reported by the backend.
    """

    def __init__(self, backend, invalidation: Optional[InvalidationDispatcher] = None):
        self.backend = backend
        self.invalidation = invalidation or InvalidationDispatcher()
        self._details: Dict[FrozenSet[str], ConflictDetails] = {}

    def fetch_details(self, path_a: str | Path, path_b: str | Path) -> ConflictDetails:
        details = self.backend.get_conflict_details(str(path_a), str(path_b))
        self._details[_pair_key(path_a, path_b)] = details
        return details

    def details_for(self, path_a: str | Path, path_b: str | Path) -> Optional[ConflictDetails]:
        return self._details.get(_pair_key(path_a, path_b))

    def forget(self, path_a: str | Path, path_b: str | Path) -> None:
        self._details.pop(_pair_key(path_a, path_b), None)

    def resolve(self, keep_path: str | Path, duplicate_path: str | Path, strategy: str) -> ResolutionResult:
        key = _pair_key(keep_path, duplicate_path)
        if key not in self._details:
            raise ConflictResolutionError(
                "Compare both folders before resolving the conflict", strategy,
                {"keep_path": str(keep_path), "duplicate_path": str(duplicate_path)},
            )
        result = self.backend.resolve_conflict(str(keep_path), str(duplicate_path), strategy)
        del self._details[key]
        self.invalidation.dispatch(result.invalidates)
        return result

"""Mod folder discovery under a mod root."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from .naming import is_disabled_name, normalize_display_name
from ..exceptions import InvalidPathError, ScanError

logger = logging.getLogger(__name__)

DEFAULT_TEMP_DIR_NAME = ".intake_temp"
CONTENT_EXTENSIONS = frozenset({"ini", "dds", "txt", "buf", "ib", "vb"})


@dataclass(frozen=True)
class ModCandidate:
    path: Path
    raw_name: str
    display_name: str
    is_disabled: bool


@dataclass
class FolderContent:
    subfolder_names: List[str] = field(default_factory=list)
    file_names: List[str] = field(default_factory=list)
    ini_files: List[Path] = field(default_factory=list)


def make_candidate(path: Path) -> ModCandidate:
    raw_name = path.name
    return ModCandidate(
        path=path,
        raw_name=raw_name,
        display_name=normalize_display_name(raw_name),
        is_disabled=is_disabled_name(raw_name),
    )


def _is_hidden(name: str, temp_dir_name: str) -> bool:
    return name.startswith(".") or name == temp_dir_name


def _has_mod_payload(path: Path) -> bool:
    try:
        with os.scandir(path) as entries:
            for entry in entries:
                if entry.is_file() and entry.name.lower().endswith(".ini"):
                    return True
    except OSError:
        return False
    return False


def _child_dirs(path: Path, temp_dir_name: str) -> List[Path]:
    children: List[Path] = []
    with os.scandir(path) as entries:
        for entry in entries:
            try:
                if not entry.is_dir(follow_symlinks=False):
                    continue
            except OSError as exc:
                logger.warning("Skipping unreadable entry %s: %s", entry.path, exc)
                continue
            if _is_hidden(entry.name, temp_dir_name):
                continue
            children.append(Path(entry.path))
    return children


def scan_mod_folders(mods_path: str | Path, temp_dir_name: str = DEFAULT_TEMP_DIR_NAME) -> List[ModCandidate]:
    """List mod folders under ``mods_path``.

    Direct children that carry an ``.ini`` are mods. Children without one are
    treated as category folders (e.g. one per catalog entity) and their own
    children are listed instead; empty category folders are skipped.
    """
    root = Path(mods_path)
    if not root.exists():
        raise InvalidPathError(f"Mods path does not exist: {root}", str(root))
    if not root.is_dir():
        raise InvalidPathError(f"Mods path is not a directory: {root}", str(root))

    candidates: List[ModCandidate] = []
    try:
        top_level = _child_dirs(root, temp_dir_name)
    except OSError as exc:
        raise ScanError(f"Failed to read mods directory: {exc}", str(root)) from exc

    for child in top_level:
        if _has_mod_payload(child):
            candidates.append(make_candidate(child))
            continue
        try:
            nested = _child_dirs(child, temp_dir_name)
        except OSError as exc:
            logger.warning("Skipping unreadable category folder %s: %s", child, exc)
            continue
        if nested:
            candidates.extend(make_candidate(sub) for sub in nested)
        else:
            candidates.append(make_candidate(child))

    candidates.sort(key=lambda c: str(c.path))
    return candidates


def candidates_for_paths(paths: Iterable[str | Path]) -> List[ModCandidate]:
    """Candidates for an explicit folder subset (drop import, extracted archives)."""
    seen = set()
    result: List[ModCandidate] = []
    for raw in paths:
        path = Path(raw)
        key = str(path)
        if key in seen or not path.is_dir():
            continue
        seen.add(key)
        result.append(make_candidate(path))
    return result


def scan_folder_content(folder: str | Path, max_depth: int = 3,
                        max_files: Optional[int] = 500) -> FolderContent:
    """Collect subfolder names, relevant file names and ini files (no symlinks)."""
    root = Path(folder)
    content = FolderContent()
    base_depth = len(root.parts)

    for current, dirs, files in os.walk(root, followlinks=False):
        depth = len(Path(current).parts) - base_depth
        if depth >= max_depth:
            dirs[:] = []
        dirs.sort()
        content.subfolder_names.extend(dirs)
        for name in sorted(files):
            ext = name.rsplit(".", 1)[-1].lower() if "." in name else ""
            if ext not in CONTENT_EXTENSIONS:
                continue
            content.file_names.append(name)
            if ext == "ini":
                content.ini_files.append(Path(current) / name)
            if max_files is not None and len(content.file_names) >= max_files:
                return content
    return content

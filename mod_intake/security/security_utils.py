#!/usr/bin/env python3
# -*-coding: utf-8-*-
"""Mod Intake - Safety validation.

Path checks shared by the extractor, the drop importer and the conflict
resolver so that no archive member or user supplied name escapes its root.
"""

import os
import re
import logging
import stat
import zipfile
from pathlib import Path, PurePosixPath
from typing import Union

from ..exceptions import InvalidPathError

logger = logging.getLogger(__name__)


def is_valid_directory(path: Union[str, Path], must_exist: bool = True) -> bool:
    """Check whether ``path`` is (or could become) a directory."""
    try:
        path_obj = Path(path).resolve()
    except (OSError, RuntimeError) as e:
        logger.error("Path validation failed for %s: %s", path, e)
        return False

    if must_exist and not path_obj.exists():
        logger.warning("Directory does not exist: %s", path_obj)
        return False

    if path_obj.exists() and not path_obj.is_dir():
        logger.warning("Path is not a directory: %s", path_obj)
        return False

    return True


def sanitize_path(path: str) -> str:
    """Normalise a path string while keeping forward slashes if the input used them."""
    if not path:
        return ""

    orig_sep = '/' if '/' in path and '\\' not in path else os.path.sep
    sanitized = os.path.normpath(path)
    if orig_sep == '/' and os.path.sep == '\\':
        sanitized = sanitized.replace('\\', '/')
    return sanitized


def is_safe_archive_member(member: Union[str, zipfile.ZipInfo]) -> bool:
    """Check for safe archive members (no traversal, no abs paths, no symlinks)."""
    if isinstance(member, zipfile.ZipInfo):
        member_name = member.filename
        mode = stat.S_IFMT(member.external_attr >> 16)
        if mode == stat.S_IFLNK:
            return False
    else:
        member_name = str(member)

    if not member_name:
        return False
    if "\x00" in member_name:
        return False
    if member_name.startswith(('/', '\\')):
        return False
    if re.match(r"^[a-zA-Z]:", member_name):
        return False
    parts = PurePosixPath(member_name.replace("\\", "/")).parts
    return ".." not in parts


def ensure_inside(root: Union[str, Path], candidate: Union[str, Path]) -> Path:
    """Resolve ``candidate`` and make sure it stays below ``root``."""
    root_resolved = Path(root).resolve()
    resolved = Path(candidate).resolve()
    if resolved != root_resolved and root_resolved not in resolved.parents:
        raise InvalidPathError(f"Path escapes {root_resolved}: {candidate}", str(candidate))
    return resolved

"""Folder naming conventions for mod folders.

A mod is disabled by prefixing its folder name with a disable marker. The
canonical marker written by this package is ``DISABLED `` but folders renamed
by hand or by other tools use variants such as ``disabled_`` or ``dis-``.
"""

from __future__ import annotations

import re
import unicodedata
from pathlib import PurePath
from typing import Set

DISABLED_PREFIX = "DISABLED "

_DISABLED_RE = re.compile(r"^(?:disabled|disable|dis)[\s_\-]+", re.IGNORECASE)
_NOISE_PREFIX_RE = re.compile(r"^\s*\[(?:mod|skin|fix|update)\]\s*", re.IGNORECASE)
_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9\s]")
_FORBIDDEN_CHARS_RE = re.compile(r'[\\/:*?"<>|]')


def is_disabled_name(name: str) -> bool:
    return bool(_DISABLED_RE.match(name or ""))


def strip_disabled_prefix(name: str) -> str:
    return _DISABLED_RE.sub("", name or "", count=1)


def normalize_display_name(name: str) -> str:
    """Folder name as shown to the user: no disable marker, no noise tags."""
    stripped = strip_disabled_prefix((name or "").strip())
    stripped = _NOISE_PREFIX_RE.sub("", stripped, count=1)
    return stripped.strip()


def base_key(name: str) -> str:
    """Case-insensitive key shared by the enabled and disabled variant of a mod."""
    return strip_disabled_prefix((name or "").strip()).strip().casefold()


def enabled_name(name: str) -> str:
    return strip_disabled_prefix(name).strip()


def disabled_name(name: str) -> str:
    if is_disabled_name(name):
        return name
    return f"{DISABLED_PREFIX}{name}"


def toggle_disabled(path: str, enable: bool) -> str:
    """Return the path of the complementary variant of ``path``.

    Enabling an enabled path or disabling a disabled one returns it unchanged
    (apart from separators, which are normalised to ``/``).
    """
    normalized = str(path).replace("\\", "/")
    parent, _, name = normalized.rpartition("/")
    new_name = enabled_name(name) if enable else disabled_name(name)
    return f"{parent}/{new_name}" if parent else new_name


def complementary_name(name: str) -> str:
    if is_disabled_name(name):
        return enabled_name(name)
    return disabled_name(name)


def sanitize_folder_name(name: str) -> str:
    """Replace characters that are not allowed in folder names."""
    return _FORBIDDEN_CHARS_RE.sub("_", name or "").strip()


def preprocess_text(text: str) -> Set[str]:
    """Lowercase ASCII token set used for name and content matching."""
    decomposed = unicodedata.normalize("NFKD", text or "")
    ascii_text = decomposed.encode("ascii", "ignore").decode("ascii")
    cleaned = _NON_ALNUM_RE.sub(" ", ascii_text.replace("_", " "))
    return {token for token in cleaned.lower().split() if token}


def folder_name(path: str) -> str:
    return PurePath(str(path).replace("\\", "/")).name

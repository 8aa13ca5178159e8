"""Classification of dropped filesystem paths.

Partitions a drop into folders, archives, mod-definition (.ini) files and
images. Anything else is reported as unsupported and is not imported.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Iterable, List, Optional

ARCHIVE_EXTENSIONS: FrozenSet[str] = frozenset({"zip", "7z", "rar"})
IMAGE_EXTENSIONS: FrozenSet[str] = frozenset({"png", "jpg", "jpeg", "webp", "gif"})
INI_EXTENSIONS: FrozenSet[str] = frozenset({"ini"})

DirectoryPredicate = Callable[[str], bool]


@dataclass
class ClassifiedPaths:
    folders: List[str] = field(default_factory=list)
    archives: List[str] = field(default_factory=list)
    ini_files: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    unsupported: List[str] = field(default_factory=list)

    def supported_count(self) -> int:
        return len(self.folders) + len(self.archives) + len(self.ini_files) + len(self.images)

    def has_archives(self) -> bool:
        return bool(self.archives)

    def only_archives(self) -> bool:
        return bool(self.archives) and not (self.folders or self.ini_files or self.images)

    def has_unsupported(self) -> bool:
        return bool(self.unsupported)

    def all_unsupported(self) -> bool:
        return bool(self.unsupported) and self.supported_count() == 0


def get_extension(path: str) -> str:
    """Lowercased extension of the last path component, without the dot."""
    text = str(path).rstrip("/\\")
    last_dot = text.rfind(".")
    if last_dot == -1:
        return ""
    after_dot = text[last_dot + 1:]
    if "/" in after_dot or "\\" in after_dot:
        return ""
    return after_dot.lower()


def is_archive_path(path: str, extensions: FrozenSet[str] = ARCHIVE_EXTENSIONS) -> bool:
    return get_extension(path) in extensions


def is_image_path(path: str) -> bool:
    return get_extension(path) in IMAGE_EXTENSIONS


def is_ini_path(path: str) -> bool:
    return get_extension(path) in INI_EXTENSIONS


def _default_is_dir(path: str) -> bool:
    if path.endswith(("/", "\\")):
        return True
    if os.path.isdir(path):
        return True
    # Paths that are gone or not yet materialised (drag previews) follow the
    # "no extension means folder" convention unless a file exists there.
    return get_extension(path) == "" and not os.path.isfile(path)


def classify_dropped_paths(
    paths: Iterable[str],
    is_dir: Optional[DirectoryPredicate] = None,
    archive_extensions: FrozenSet[str] = ARCHIVE_EXTENSIONS,
) -> ClassifiedPaths:
    """Partition ``paths`` into categories. Never raises.

    Order: directory, archive, image, ini. Each input path lands in exactly one
    list of the result (``unsupported`` included), input order is preserved.
    """
    check_dir = is_dir or _default_is_dir
    result = ClassifiedPaths()

    for raw in paths:
        p = str(raw)
        try:
            directory = bool(check_dir(p))
        except OSError:
            directory = False
        if directory:
            result.folders.append(p)
        elif is_archive_path(p, archive_extensions):
            result.archives.append(p)
        elif is_image_path(p):
            result.images.append(p)
        elif is_ini_path(p):
            result.ini_files.append(p)
        else:
            result.unsupported.append(p)

    return result

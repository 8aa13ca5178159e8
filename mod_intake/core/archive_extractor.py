"""Archive detection and extraction for dropped or stored mod archives.

Supports ZIP (stdlib), 7z (py7zr) and RAR (rarfile, needs an unrar backend).
Extraction goes to a staging folder first and is renamed into place, so a
failed or wrong-password extraction never leaves a half-written mod folder.
"""

from __future__ import annotations

import logging
import lzma
import os
import shutil
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

import py7zr
import py7zr.exceptions
import rarfile

from .classifier import ARCHIVE_EXTENSIONS, get_extension
from .walker import DEFAULT_TEMP_DIR_NAME
from ..exceptions import ArchiveCollisionError, ArchiveError, ArchivePasswordError
from ..security.security_utils import is_safe_archive_member

logger = logging.getLogger(__name__)

PARTIAL_SUFFIX = ".partial"
BACKUP_DIR_NAME = ".archive_backup"


@dataclass(frozen=True)
class ArchiveInfo:
    path: str
    name: str
    extension: str
    size_bytes: int
    has_ini: Optional[bool] = None


@dataclass(frozen=True)
class ExtractionResult:
    archive_path: str
    dest_path: str
    extracted_folders: List[str] = field(default_factory=list)
    file_count: int = 0
    backup_path: Optional[str] = None


def archive_stem(archive_path: str | Path) -> str:
    name = Path(archive_path).name
    ext = get_extension(name)
    return name[: -(len(ext) + 1)] if ext else name


def _list_members(archive_path: Path, ext: str) -> List[str]:
    if ext == "zip":
        with zipfile.ZipFile(archive_path) as zf:
            return zf.namelist()
    if ext == "7z":
        with py7zr.SevenZipFile(archive_path, "r") as sz:
            return sz.getnames()
    if ext == "rar":
        with rarfile.RarFile(str(archive_path)) as rf:
            return rf.namelist()
    raise ArchiveError(f"Unsupported archive format: {archive_path.name}", str(archive_path))


def detect_archives(
    root_path: str | Path,
    extensions: Iterable[str] = ARCHIVE_EXTENSIONS,
    temp_dir_name: str = DEFAULT_TEMP_DIR_NAME,
) -> List[ArchiveInfo]:
    """List archive files directly below ``root_path`` (sorted by name)."""
    root = Path(root_path)
    wanted = {e.lower().lstrip(".") for e in extensions}
    found: List[ArchiveInfo] = []

    with os.scandir(root) as entries:
        for entry in entries:
            if entry.name == temp_dir_name or not entry.is_file():
                continue
            ext = get_extension(entry.name)
            if ext not in wanted:
                continue
            path = Path(entry.path)
            has_ini: Optional[bool]
            try:
                has_ini = any(m.lower().endswith(".ini") for m in _list_members(path, ext))
            except (OSError, zipfile.BadZipFile, py7zr.exceptions.ArchiveError,
                    rarfile.Error, ArchiveError) as exc:
                logger.debug("Could not list %s: %s", path, exc)
                has_ini = None
            found.append(ArchiveInfo(
                path=str(path),
                name=entry.name,
                extension=ext,
                size_bytes=entry.stat().st_size,
                has_ini=has_ini,
            ))

    found.sort(key=lambda a: a.name.lower())
    return found


def _check_members(archive_path: Path, names: Iterable[str]) -> None:
    for name in names:
        if not is_safe_archive_member(name):
            raise ArchiveError(f"Unsafe archive member blocked: {name}", str(archive_path))


def _extract_zip(archive_path: Path, staging: Path, password: Optional[str]) -> None:
    try:
        with zipfile.ZipFile(archive_path) as zf:
            for info in zf.infolist():
                if not is_safe_archive_member(info):
                    raise ArchiveError(f"Unsafe archive member blocked: {info.filename}", str(archive_path))
            encrypted = any(info.flag_bits & 0x1 for info in zf.infolist())
            if encrypted and not password:
                raise ArchivePasswordError("Password required to extract this archive", str(archive_path))
            zf.extractall(staging, pwd=password.encode("utf-8") if password else None)
    except RuntimeError as exc:
        # zipfile reports both missing and wrong passwords as RuntimeError.
        if "password" in str(exc).lower():
            raise ArchivePasswordError("Wrong password for this archive", str(archive_path),
                                       password_given=bool(password)) from exc
        raise ArchiveError(f"Extraction failed: {exc}", str(archive_path)) from exc
    except zipfile.BadZipFile as exc:
        raise ArchiveError(f"Corrupt ZIP archive: {exc}", str(archive_path)) from exc


def _extract_7z(archive_path: Path, staging: Path, password: Optional[str]) -> None:
    try:
        with py7zr.SevenZipFile(archive_path, "r", password=password or None) as sz:
            if sz.needs_password() and not password:
                raise ArchivePasswordError("Password required to extract this archive", str(archive_path))
            _check_members(archive_path, sz.getnames())
            sz.extractall(path=staging)
    except py7zr.exceptions.PasswordRequired as exc:
        raise ArchivePasswordError("Password required to extract this archive", str(archive_path)) from exc
    except (lzma.LZMAError, py7zr.exceptions.CrcError, py7zr.exceptions.DecompressionError) as exc:
        if password:
            raise ArchivePasswordError("Wrong password for this archive", str(archive_path),
                                       password_given=True) from exc
        raise ArchiveError(f"Extraction failed: {exc}", str(archive_path)) from exc
    except py7zr.exceptions.ArchiveError as exc:
        raise ArchiveError(f"Corrupt 7z archive: {exc}", str(archive_path)) from exc


def _extract_rar(archive_path: Path, staging: Path, password: Optional[str]) -> None:
    try:
        with rarfile.RarFile(str(archive_path)) as rf:
            if rf.needs_password() and not password:
                raise ArchivePasswordError("Password required to extract this archive", str(archive_path))
            if password:
                rf.setpassword(password)
            _check_members(archive_path, rf.namelist())
            rf.extractall(str(staging))
    except rarfile.PasswordRequired as exc:
        raise ArchivePasswordError("Password required to extract this archive", str(archive_path)) from exc
    except rarfile.RarWrongPassword as exc:
        raise ArchivePasswordError("Wrong password for this archive", str(archive_path),
                                   password_given=True) from exc
    except rarfile.Error as exc:
        raise ArchiveError(f"RAR extraction failed: {exc}", str(archive_path)) from exc


def flatten_if_needed(dest_path: Path) -> None:
    """Lift the contents of a single wrapper folder up one level."""
    entries = list(dest_path.iterdir())
    if len(entries) != 1 or not entries[0].is_dir():
        return
    wrapper = entries[0]
    for child in list(wrapper.iterdir()):
        target = dest_path / child.name
        if target.exists():
            logger.warning("Skip flatten: %s already exists at destination", target)
            return
    for child in list(wrapper.iterdir()):
        child.rename(dest_path / child.name)
    wrapper.rmdir()


def _count_files(path: Path) -> int:
    return sum(len(files) for _, _, files in os.walk(path))


def move_to_backup(archive_path: str | Path, root: str | Path) -> Path:
    """Move an extracted archive into ``root/.archive_backup``.

    An existing backup of the same name is kept; the new one gets a
    numbered suffix.
    """
    source = Path(archive_path)
    backup_dir = Path(root) / BACKUP_DIR_NAME
    backup_dir.mkdir(parents=True, exist_ok=True)
    target = backup_dir / source.name
    counter = 1
    while target.exists():
        target = backup_dir / f"{archive_stem(source)} ({counter}){source.suffix}"
        counter += 1
    shutil.move(str(source), str(target))
    return target


def extract_archive(
    archive_path: str | Path,
    dest_dir: str | Path,
    password: Optional[str] = None,
    overwrite: bool = False,
) -> ExtractionResult:
    """Extract one archive into ``dest_dir/<archive stem>``.

    An archive that sits directly in ``dest_dir`` (a stored archive found by
    ``detect_archives``) is moved to ``dest_dir/.archive_backup`` afterwards
    so the next scan does not offer it again.

    Raises ``ArchivePasswordError`` (retry with credentials),
    ``ArchiveCollisionError`` (target exists and ``overwrite`` is false) or
    ``ArchiveError`` for everything else.
    """
    source = Path(archive_path)
    if not source.is_file():
        raise ArchiveError(f"Archive not found: {source}", str(source))

    ext = get_extension(source.name)
    extractor = {"zip": _extract_zip, "7z": _extract_7z, "rar": _extract_rar}.get(ext)
    if extractor is None:
        raise ArchiveError(f"Unsupported archive format: {source.name}", str(source))

    dest_root = Path(dest_dir)
    dest_root.mkdir(parents=True, exist_ok=True)
    dest_path = dest_root / archive_stem(source)
    if dest_path.exists() and not overwrite:
        raise ArchiveCollisionError(
            f"Destination already exists: {dest_path}", str(source), str(dest_path)
        )

    staging = dest_root / f".{dest_path.name}{PARTIAL_SUFFIX}"
    if staging.exists():
        shutil.rmtree(staging)
    staging.mkdir()

    try:
        extractor(source, staging, password)
        flatten_if_needed(staging)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise

    try:
        if dest_path.exists():
            shutil.rmtree(dest_path)
        staging.rename(dest_path)
    except OSError as exc:
        shutil.rmtree(staging, ignore_errors=True)
        raise ArchiveError(f"Could not move extracted files into place: {exc}", str(source)) from exc

    file_count = _count_files(dest_path)
    logger.info("Extracted %s -> %s (%d files)", source.name, dest_path, file_count)

    backup_path: Optional[str] = None
    if source.parent.resolve() == dest_root.resolve():
        try:
            backup_path = str(move_to_backup(source, dest_root))
        except OSError as exc:
            logger.warning("Could not move %s to backup: %s", source.name, exc)
    return ExtractionResult(
        archive_path=str(source),
        dest_path=str(dest_path),
        extracted_folders=[str(dest_path)],
        file_count=file_count,
        backup_path=backup_path,
    )

"""Async wrappers for backend operations."""

from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence

from .backend import Backend
from .models import ArchiveInfo, CancelToken, CommitReport, ConfirmedScanItem, ScanPreviewItem
from ..utils.result import Err, Ok, Result


async def async_detect_archives(backend: Backend, root_path: str) -> Result[List[ArchiveInfo]]:
    try:
        return Ok(await asyncio.to_thread(backend.detect_archives, root_path))
    except Exception as exc:
        return Err(exc)


async def async_scan_preview(
    backend: Backend,
    game_id: str,
    root_path: str,
    db_catalog_json: str,
    *,
    folder_subset: Optional[Sequence[str]] = None,
    cancel_token: Optional[CancelToken] = None,
) -> Result[List[ScanPreviewItem]]:
    try:
        result = await asyncio.to_thread(
            backend.scan_preview,
            game_id,
            root_path,
            db_catalog_json,
            folder_subset,
            None,
            cancel_token,
        )
        return Ok(result)
    except Exception as exc:
        return Err(exc)


async def async_commit_scan(
    backend: Backend,
    game_id: str,
    confirmed_items: Sequence[ConfirmedScanItem],
    *,
    prune_missing: bool = False,
) -> Result[CommitReport]:
    try:
        result = await asyncio.to_thread(backend.commit_scan, game_id, list(confirmed_items), prune_missing)
        return Ok(result)
    except Exception as exc:
        return Err(exc)

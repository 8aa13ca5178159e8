"""Scan controller: Phase 1 preview and Phase 2 commit."""

from __future__ import annotations

import logging
import os
import shutil
import sqlite3
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from .models import (
    UNCATEGORIZED,
    CancelToken,
    CatalogEntity,
    CommitReport,
    ConfirmedScanItem,
    ItemCommitResult,
    ScanEventCallback,
    ScanFinished,
    ScanMatched,
    ScanPreviewItem,
    ScanProgress,
    ScanStarted,
    ScoredCandidate,
)
from ..core.naming import normalize_display_name, sanitize_folder_name
from ..core.scoring import Confidence, MatchLevel, ScoringService, confidence_for_score
from ..core.walker import DEFAULT_TEMP_DIR_NAME, ModCandidate, candidates_for_paths, scan_mod_folders
from ..core.watch_suppression import WatcherSuppressor
from ..database.mod_store import ModStore
from ..exceptions import CommitError, InvalidPathError, ScanCancelled, ScanError, ScoringError
from ..logging_config import LoggingTimer
from ..security.security_utils import ensure_inside

logger = logging.getLogger(__name__)

MAX_SCORED_CANDIDATES = 10


def _emit(on_event: Optional[ScanEventCallback], event) -> None:
    if on_event is not None:
        on_event(event)


def _eta_ms(started: float, done: int, total: int, clock: Callable[[], float]) -> int:
    if done <= 0:
        return 0
    per_item = (clock() - started) / done
    return max(0, int(per_item * (total - done) * 1000))


def _preview_item(candidate: ModCandidate, scoring: ScoringService, names: Sequence[str],
                  by_name: Dict[str, CatalogEntity], linked: Dict[str, Optional[str]]) -> ScanPreviewItem:
    folder_path = str(candidate.path)
    best, ranked = scoring.best_match(folder_path, names)
    scored = tuple(
        ScoredCandidate(name=s.name, score_pct=s.score)
        for s in ranked[:MAX_SCORED_CANDIDATES] if s.score > 0
    )
    entity = by_name.get(best.name) if best else None
    score = best.score if best else (ranked[0].score if ranked else 0)
    return ScanPreviewItem(
        folder_path=folder_path,
        display_name=candidate.display_name,
        is_disabled=candidate.is_disabled,
        matched_object=best.name if best else None,
        match_level=best.level if best else MatchLevel.UNMATCHED,
        confidence=confidence_for_score(score, scoring.auto_match_min_score) if best else Confidence.NONE,
        confidence_score=score,
        scored_candidates=scored,
        already_matched=linked.get(folder_path) is not None,
        object_type=entity.object_type if entity else None,
        thumbnail_path=entity.thumbnail_path if entity else None,
        tags=entity.tags if entity else (),
        match_detail=best.detail if best else "",
        already_in_db=folder_path in linked,
    )


def scan_preview(
    game_id: str,
    root_path: str,
    catalog: Sequence[CatalogEntity],
    scoring: Optional[ScoringService] = None,
    store: Optional[ModStore] = None,
    folder_subset: Optional[Sequence[str]] = None,
    on_event: Optional[ScanEventCallback] = None,
    cancel_token: Optional[CancelToken] = None,
    temp_dir_name: str = DEFAULT_TEMP_DIR_NAME,
    clock: Callable[[], float] = time.monotonic,
) -> List[ScanPreviewItem]:
    """Phase 1: walk, score and classify folders without touching storage.

    Raises ``ScanCancelled`` when ``cancel_token`` fires between folders and
    ``ScanError`` on I/O problems.
    """
    scoring = scoring or ScoringService()
    if folder_subset is not None:
        candidates = candidates_for_paths(folder_subset)
    else:
        candidates = scan_mod_folders(root_path, temp_dir_name)

    names = [e.name for e in catalog]
    by_name = {e.name: e for e in catalog}
    linked = store.mod_index(game_id) if store is not None else {}
    total = len(candidates)

    logger.info("Scan preview started: %d folders under %s", total, root_path)
    _emit(on_event, ScanStarted(total_folders=total))

    started = clock()
    items: List[ScanPreviewItem] = []
    matched = 0
    with LoggingTimer(f"scan_preview {game_id}", logger, slow_threshold=5.0):
        for index, candidate in enumerate(candidates):
            if cancel_token is not None and cancel_token.is_cancelled():
                logger.info("Scan preview cancelled after %d/%d folders", index, total)
                raise ScanCancelled(processed=index, total=total)
            try:
                item = _preview_item(candidate, scoring, names, by_name, linked)
            except ScoringError as exc:
                raise ScanError(str(exc), str(candidate.path)) from exc
            except OSError as exc:
                raise ScanError(f"Failed to read folder: {exc}", str(candidate.path)) from exc
            items.append(item)
            logger.debug("Scored %s -> %s (%d)", candidate.raw_name, item.matched_object, item.confidence_score)

            _emit(on_event, ScanProgress(
                current=index + 1,
                folder_name=candidate.raw_name,
                eta_ms=_eta_ms(started, index + 1, total, clock),
            ))
            if item.matched_object:
                matched += 1
                _emit(on_event, ScanMatched(
                    folder_name=candidate.raw_name,
                    object_name=item.matched_object,
                    confidence=item.confidence,
                ))

    _emit(on_event, ScanFinished(matched=matched, unmatched=total - matched))
    logger.info("Scan preview finished: %d matched, %d unmatched", matched, total - matched)
    return items


def _move_from_temp(item: ConfirmedScanItem, mods_root: Path) -> Path:
    source = Path(item.folder_path)
    if not source.is_dir():
        raise CommitError(f"Source path does not exist: {source}", [item.folder_path])
    bucket = sanitize_folder_name(item.matched_object or "") or UNCATEGORIZED
    target_dir = mods_root / bucket
    ensure_inside(mods_root, target_dir)
    target = target_dir / source.name
    if target.exists():
        raise CommitError(f"Destination already exists: {target}", [item.folder_path])
    target_dir.mkdir(parents=True, exist_ok=True)
    shutil.move(str(source), str(target))
    return target


def _entity_for_item(item: ConfirmedScanItem, final_path: Path) -> CatalogEntity:
    if item.matched_object:
        return CatalogEntity(
            name=item.matched_object,
            object_type=item.object_type or "Other",
            tags=tuple(item.tags),
            thumbnail_path=item.thumbnail_path,
            metadata=dict(item.metadata),
        )
    # Unmatched folders become their own entity, never named "DISABLED ...".
    return CatalogEntity(name=normalize_display_name(final_path.name) or final_path.name,
                         object_type=item.object_type or "Other")


def _prune_missing(store: ModStore, game_id: str, mods_root: Path, kept: set) -> int:
    prefix = os.path.abspath(str(mods_root)) + os.sep
    missing = [
        path for path in store.mod_index(game_id)
        if path not in kept
        and os.path.abspath(path).startswith(prefix)
        and not os.path.exists(path)
    ]
    return store.delete_mods(game_id, missing)


def commit_scan(
    game_id: str,
    mods_root: str,
    items: Sequence[ConfirmedScanItem],
    store: ModStore,
    suppressor: Optional[WatcherSuppressor] = None,
    prune_missing: bool = False,
) -> CommitReport:
    """Phase 2: persist confirmed items, one result per item.

    Skipped items are counted but never written. Each item is committed on
    its own so a failure only affects that item; a temp folder that was
    already moved is moved back when its database write fails.
    """
    suppressor = suppressor or WatcherSuppressor()
    root = Path(mods_root)
    results: List[ItemCommitResult] = []
    new_mods = updated_mods = new_entities = skipped = 0
    kept: set = set()

    with suppressor.suppressed(), LoggingTimer(f"commit_scan {game_id}", logger, slow_threshold=5.0):
        for item in items:
            if item.skip:
                skipped += 1
                kept.add(item.folder_path)
                continue

            moved_to: Optional[Path] = None
            try:
                final_path = Path(item.folder_path)
                if item.move_from_temp:
                    moved_to = _move_from_temp(item, root)
                    final_path = moved_to
                with store.transaction() as conn:
                    entity_id, created = store.ensure_entity(game_id, _entity_for_item(item, final_path), conn)
                    outcome = store.upsert_mod(game_id, str(final_path), item.display_name,
                                               item.is_disabled, entity_id, conn)
            except (CommitError, InvalidPathError, OSError, sqlite3.Error) as exc:
                if moved_to is not None and moved_to.exists() and not Path(item.folder_path).exists():
                    try:
                        shutil.move(str(moved_to), item.folder_path)
                    except OSError as move_exc:
                        logger.error("Could not restore %s: %s", item.folder_path, move_exc)
                logger.warning("Commit failed for %s: %s", item.folder_path, exc)
                results.append(ItemCommitResult(folder_path=item.folder_path, ok=False, error=str(exc)))
                continue

            new_entities += int(created)
            new_mods += int(outcome == "new")
            updated_mods += int(outcome == "updated")
            kept.add(str(final_path))
            results.append(ItemCommitResult(folder_path=item.folder_path, ok=True, final_path=str(final_path)))

        deleted = _prune_missing(store, game_id, root, kept) if prune_missing else 0

    report = CommitReport(
        total_scanned=len(items),
        new_mods=new_mods,
        updated_mods=updated_mods,
        deleted_mods=deleted,
        new_entities=new_entities,
        skipped=skipped,
        results=results,
    )
    if report.failed:
        logger.warning("Commit finished with %d failures of %d items", len(report.failed), len(results))
    else:
        logger.info("Commit finished: %d new, %d updated, %d deleted, %d skipped",
                    new_mods, updated_mods, deleted, skipped)
    return report

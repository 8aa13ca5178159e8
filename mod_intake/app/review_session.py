"""In-memory staging over Phase 1 results.

Holds the user's overrides, skips, renames and multi-selection, derives tab
and confidence-chip membership from them, and materialises the confirmed
item list for Phase 2. Nothing here touches the filesystem or storage.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .models import CatalogEntity, ConfirmedScanItem, ScanPreviewItem
from .override_search import (
    LAZY_SCORE_CHUNK_SIZE,
    OVERRIDE_CANDIDATE_THRESHOLD,
    LazyScoreCache,
    OverrideSearch,
    ScoreFunction,
)
from ..core.naming import sanitize_folder_name
from ..core.scoring import Confidence

logger = logging.getLogger(__name__)


class ReviewTab(str, Enum):
    ALL = "All"
    MATCHED = "Matched"
    UNMATCHED = "Unmatched"
    EXISTING = "Existing"
    SKIPPED = "Skipped"


CONFIDENCE_CHIPS = (
    Confidence.EXCELLENT,
    Confidence.HIGH,
    Confidence.MEDIUM,
    Confidence.LOW,
    Confidence.MANUAL,
)


class ReviewSession:
    def __init__(
        self,
        items: Sequence[ScanPreviewItem],
        catalog: Sequence[CatalogEntity] = (),
        score_fn: Optional[ScoreFunction] = None,
        move_from_temp: Iterable[str] = (),
        chunk_size: int = LAZY_SCORE_CHUNK_SIZE,
        candidate_threshold: int = OVERRIDE_CANDIDATE_THRESHOLD,
    ):
        self.items: List[ScanPreviewItem] = list(items)
        self.catalog: List[CatalogEntity] = list(catalog)
        self.score_fn = score_fn
        self.move_from_temp: Set[str] = {str(Path(p)) for p in move_from_temp}
        self.chunk_size = chunk_size
        self.candidate_threshold = candidate_threshold

        self.overrides: Dict[str, CatalogEntity] = {}
        self.skips: Dict[str, bool] = {}
        self.renames: Dict[str, str] = {}
        self.selected: Set[str] = set()

        self.lazy_cache = LazyScoreCache()
        self._searches: List[OverrideSearch] = []
        self._by_path = {item.folder_path: item for item in self.items}
        self.closed = False

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def item(self, folder_path: str) -> ScanPreviewItem:
        return self._by_path[folder_path]

    def is_skipped(self, folder_path: str) -> bool:
        return bool(self.skips.get(folder_path))

    def tab_of(self, item: ScanPreviewItem) -> ReviewTab:
        if self.is_skipped(item.folder_path):
            return ReviewTab.SKIPPED
        if item.already_matched:
            return ReviewTab.EXISTING
        if item.folder_path in self.overrides or item.matched_object:
            return ReviewTab.MATCHED
        return ReviewTab.UNMATCHED

    def confidence_of(self, item: ScanPreviewItem) -> Confidence:
        if item.folder_path in self.overrides:
            return Confidence.MANUAL
        return item.confidence

    def items_in(self, tab: ReviewTab = ReviewTab.ALL, chip: Optional[Confidence] = None,
                 query: str = "") -> List[ScanPreviewItem]:
        """Items visible under ``tab``; ``chip`` only narrows the Matched tab."""
        needle = query.casefold()
        visible = []
        for item in self.items:
            if tab != ReviewTab.ALL and self.tab_of(item) != tab:
                continue
            if chip is not None and tab == ReviewTab.MATCHED and self.confidence_of(item) != chip:
                continue
            if needle and needle not in self.display_name(item).casefold() \
                    and needle not in (self.matched_name(item) or "").casefold():
                continue
            visible.append(item)
        return visible

    def tab_counts(self) -> Dict[ReviewTab, int]:
        counts = {tab: 0 for tab in ReviewTab}
        for item in self.items:
            counts[self.tab_of(item)] += 1
        counts[ReviewTab.ALL] = len(self.items)
        return counts

    def chip_counts(self) -> Dict[Confidence, int]:
        counts = {chip: 0 for chip in CONFIDENCE_CHIPS}
        for item in self.items:
            if self.tab_of(item) != ReviewTab.MATCHED:
                continue
            tier = self.confidence_of(item)
            if tier in counts:
                counts[tier] += 1
        return counts

    def display_name(self, item: ScanPreviewItem) -> str:
        return self.renames.get(item.folder_path) or item.display_name

    def matched_name(self, item: ScanPreviewItem) -> Optional[str]:
        override = self.overrides.get(item.folder_path)
        return override.name if override else item.matched_object

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_override(self, folder_path: str, entity: Optional[CatalogEntity]) -> None:
        """Pin ``entity``; ``None`` drops the override and restores the auto-match."""
        self.item(folder_path)
        if entity is None:
            self.overrides.pop(folder_path, None)
        else:
            self.overrides[folder_path] = entity

    def set_skip(self, folder_path: str, skip: bool = True) -> None:
        self.item(folder_path)
        if skip:
            self.skips[folder_path] = True
        else:
            self.skips.pop(folder_path, None)

    def toggle_skip(self, folder_path: str) -> bool:
        self.set_skip(folder_path, not self.is_skipped(folder_path))
        return self.is_skipped(folder_path)

    def rename(self, folder_path: str, new_name: str) -> None:
        self.item(folder_path)
        cleaned = sanitize_folder_name(new_name)
        if not cleaned or cleaned == self.item(folder_path).display_name:
            self.renames.pop(folder_path, None)
        else:
            self.renames[folder_path] = cleaned

    def toggle_select(self, folder_path: str) -> None:
        self.item(folder_path)
        if folder_path in self.selected:
            self.selected.discard(folder_path)
        else:
            self.selected.add(folder_path)

    def select_all(self, tab: ReviewTab = ReviewTab.ALL, chip: Optional[Confidence] = None) -> None:
        self.selected = {item.folder_path for item in self.items_in(tab, chip)}

    def clear_selection(self) -> None:
        self.selected.clear()

    def skip_selected(self) -> int:
        """Skip every selected item and clear the selection."""
        count = len(self.selected)
        for folder_path in self.selected:
            self.skips[folder_path] = True
        self.selected = set()
        return count

    def decline_visible(self, tab: ReviewTab, chip: Optional[Confidence] = None) -> int:
        visible = self.items_in(tab, chip)
        for item in visible:
            self.skips[item.folder_path] = True
        return len(visible)

    # ------------------------------------------------------------------
    # Override search
    # ------------------------------------------------------------------

    def open_override_search(self, folder_path: str) -> OverrideSearch:
        if self.score_fn is None:
            raise RuntimeError("Override search needs a scoring function")
        search = OverrideSearch(
            self.item(folder_path),
            self.catalog,
            self.score_fn,
            cache=self.lazy_cache,
            chunk_size=self.chunk_size,
            threshold=self.candidate_threshold,
        )
        self._searches.append(search)
        return search

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    def confirmed_items(self) -> List[ConfirmedScanItem]:
        confirmed = []
        for item in self.items:
            override = self.overrides.get(item.folder_path)
            if override is not None:
                matched, object_type = override.name, override.object_type
                thumbnail, tags, metadata = override.thumbnail_path, override.tags, dict(override.metadata)
            else:
                matched, object_type = item.matched_object, item.object_type
                thumbnail, tags, metadata = item.thumbnail_path, item.tags, {}
            confirmed.append(ConfirmedScanItem(
                folder_path=item.folder_path,
                display_name=self.display_name(item),
                is_disabled=item.is_disabled,
                matched_object=matched,
                object_type=object_type,
                thumbnail_path=thumbnail,
                tags=tuple(tags),
                metadata=metadata,
                skip=self.is_skipped(item.folder_path),
                move_from_temp=str(Path(item.folder_path)) in self.move_from_temp,
            ))
        return confirmed

    def retain(self, folder_paths: Iterable[str]) -> None:
        """Keep only ``folder_paths`` (and their staged state) in the session."""
        keep = set(folder_paths)
        self.items = [item for item in self.items if item.folder_path in keep]
        self._by_path = {item.folder_path: item for item in self.items}
        for mapping in (self.overrides, self.skips, self.renames):
            for key in [k for k in mapping if k not in keep]:
                del mapping[key]
        self.selected &= keep
        self.move_from_temp &= keep

    def close(self) -> None:
        for search in self._searches:
            search.close()
        self._searches.clear()
        self.closed = True
        logger.debug("Review session closed (%d items)", len(self.items))

"""Override search over the master catalog for one review item.

Entities are split into ``candidates`` (scored > 0 by the original scan, or
scored >= the candidate threshold by lazy rescoring) and ``others``. Lazy
rescoring of the remaining pool runs in fixed-size chunks, at most once per
item per review session, and is dropped as a unit when the search closes.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set

from .models import CancelToken, CatalogEntity, ScanPreviewItem
from ..utils.async_utils import run_blocking
from ..utils.result import Err, Result, capture

logger = logging.getLogger(__name__)

OVERRIDE_CANDIDATE_THRESHOLD = 50
LAZY_SCORE_CHUNK_SIZE = 25

ScoreFunction = Callable[[str, Sequence[str]], Dict[str, int]]


@dataclass(frozen=True)
class SearchEntry:
    entity: CatalogEntity
    score: int = 0
    prescored: bool = False

    @property
    def name(self) -> str:
        return self.entity.name


@dataclass(frozen=True)
class SearchResults:
    candidates: List[SearchEntry]
    others: List[SearchEntry]


@dataclass
class LazyScoreCache:
    """Per-session record of which items were lazily rescored."""

    requested: Set[str] = field(default_factory=set)
    scores: Dict[str, Dict[str, int]] = field(default_factory=dict)

    def claim(self, folder_path: str) -> bool:
        if folder_path in self.requested:
            return False
        self.requested.add(folder_path)
        return True

    def merge(self, folder_path: str, chunk_scores: Dict[str, int]) -> None:
        self.scores.setdefault(folder_path, {}).update(chunk_scores)


def _sort_key(entry: SearchEntry):
    return (-entry.score, entry.name.casefold())


def _matches(entity: CatalogEntity, query: str) -> bool:
    if not query:
        return True
    needle = query.casefold()
    return needle in entity.name.casefold() or any(needle in t.casefold() for t in entity.tags)


def _chunks(names: Sequence[str], size: int) -> List[List[str]]:
    return [list(names[i:i + size]) for i in range(0, len(names), size)]


class OverrideSearch:
    def __init__(
        self,
        item: ScanPreviewItem,
        catalog: Sequence[CatalogEntity],
        score_fn: ScoreFunction,
        cache: Optional[LazyScoreCache] = None,
        chunk_size: int = LAZY_SCORE_CHUNK_SIZE,
        threshold: int = OVERRIDE_CANDIDATE_THRESHOLD,
    ):
        self.item = item
        self.catalog = list(catalog)
        self.score_fn = score_fn
        self.cache = cache if cache is not None else LazyScoreCache()
        self.chunk_size = max(1, int(chunk_size))
        self.threshold = threshold
        self.cancel_token = CancelToken()
        self._prescored = {c.name: c.score_pct for c in item.scored_candidates}

    @property
    def closed(self) -> bool:
        return self.cancel_token.is_cancelled()

    def close(self) -> None:
        """Abandon pending lazy scoring; late chunk results are discarded."""
        self.cancel_token.cancel()

    def lazy_pool(self) -> List[str]:
        return [e.name for e in self.catalog if self._prescored.get(e.name, 0) <= 0]

    def results(self, query: str = "") -> SearchResults:
        lazy = self.cache.scores.get(self.item.folder_path, {})
        candidates: List[SearchEntry] = []
        others: List[SearchEntry] = []
        for entity in self.catalog:
            if not _matches(entity, query):
                continue
            pre = self._prescored.get(entity.name, 0)
            if pre > 0:
                candidates.append(SearchEntry(entity, pre, prescored=True))
                continue
            score = lazy.get(entity.name)
            if score is not None and score >= self.threshold:
                candidates.append(SearchEntry(entity, score))
            else:
                others.append(SearchEntry(entity, score or 0))
        candidates.sort(key=_sort_key)
        others.sort(key=_sort_key)
        return SearchResults(candidates, others)

    def _score_chunk(self, names: List[str]) -> Result[Dict[str, int]]:
        return capture(lambda: dict(self.score_fn(self.item.folder_path, names)))

    def _apply(self, result: Result[Dict[str, int]]) -> bool:
        if self.closed:
            return False
        if isinstance(result, Err):
            logger.warning("Lazy scoring chunk failed for %s: %s", self.item.folder_path, result.error)
            return False
        self.cache.merge(self.item.folder_path, result.value)
        return True

    def start_lazy_scoring(self) -> Optional[List[List[str]]]:
        """Claim this item for lazy scoring; ``None`` when already done this session."""
        if self.closed or not self.cache.claim(self.item.folder_path):
            return None
        return _chunks(self.lazy_pool(), self.chunk_size)

    def load_lazy_scores(self) -> int:
        """Blocking variant; returns the number of chunks applied."""
        chunks = self.start_lazy_scoring()
        if not chunks:
            return 0
        applied = 0
        for names in chunks:
            if self.closed:
                break
            if self._apply(self._score_chunk(names)):
                applied += 1
        return applied

    async def load_lazy_scores_async(self, max_concurrency: int = 4) -> int:
        """Score chunks concurrently; returns the number of chunks applied."""
        chunks = self.start_lazy_scoring()
        if not chunks:
            return 0
        semaphore = asyncio.Semaphore(max(1, max_concurrency))
        applied = 0

        async def run_chunk(names: List[str]) -> None:
            nonlocal applied
            async with semaphore:
                if self.closed:
                    return
                result = await run_blocking(self._score_chunk, names)
                if self._apply(result):
                    applied += 1

        await asyncio.gather(*(run_chunk(names) for names in chunks))
        return applied

"""Shared type aliases and dataclasses for app controllers."""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple, Union

from ..core.archive_extractor import ArchiveInfo, ExtractionResult
from ..core.catalog import CatalogEntity
from ..core.scoring import Confidence, MatchLevel

ConflictStrategy = Literal["keep_enabled", "keep_disabled", "separate"]
CONFLICT_STRATEGIES: Tuple[str, ...] = ("keep_enabled", "keep_disabled", "separate")

UNCATEGORIZED = "Uncategorized"


class ResourceId(str, Enum):
    OBJECTS = "objects"
    MOD_FOLDERS = "mod-folders"
    CATEGORY_COUNTS = "category-counts"
    CONFLICTS = "conflicts"


# Every successful commit, drop import and conflict resolution touches these.
MUTATION_RESOURCES: Tuple[ResourceId, ...] = (
    ResourceId.OBJECTS,
    ResourceId.MOD_FOLDERS,
    ResourceId.CATEGORY_COUNTS,
)


class CancelToken:
    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def event(self) -> threading.Event:
        return self._event

    def cancel(self) -> None:
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class ScoredCandidate:
    name: str
    score_pct: int


@dataclass(frozen=True)
class ScanPreviewItem:
    folder_path: str
    display_name: str
    is_disabled: bool
    matched_object: Optional[str]
    match_level: MatchLevel
    confidence: Confidence
    confidence_score: int
    scored_candidates: Tuple[ScoredCandidate, ...] = ()
    already_matched: bool = False
    object_type: Optional[str] = None
    thumbnail_path: Optional[str] = None
    tags: Tuple[str, ...] = ()
    match_detail: str = ""
    already_in_db: bool = False

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["match_level"] = self.match_level.value
        payload["confidence"] = self.confidence.value
        payload["tags"] = list(self.tags)
        payload["scored_candidates"] = [asdict(c) for c in self.scored_candidates]
        return payload


@dataclass(frozen=True)
class ConfirmedScanItem:
    folder_path: str
    display_name: str
    is_disabled: bool
    matched_object: Optional[str]
    object_type: Optional[str] = None
    thumbnail_path: Optional[str] = None
    tags: Tuple[str, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict)
    skip: bool = False
    move_from_temp: bool = False


@dataclass(frozen=True)
class ItemCommitResult:
    folder_path: str
    ok: bool
    error: Optional[str] = None
    final_path: Optional[str] = None


@dataclass(frozen=True)
class CommitReport:
    total_scanned: int
    new_mods: int
    updated_mods: int
    deleted_mods: int
    new_entities: int
    skipped: int
    results: List[ItemCommitResult] = field(default_factory=list)

    @property
    def failed(self) -> List[ItemCommitResult]:
        return [r for r in self.results if not r.ok]

    @property
    def succeeded(self) -> List[ItemCommitResult]:
        return [r for r in self.results if r.ok]

    @property
    def total_failure(self) -> bool:
        return bool(self.results) and not self.succeeded


@dataclass(frozen=True)
class ConflictInfo:
    base_name: str
    existing_path: str
    attempted_target: str


@dataclass(frozen=True)
class ConflictFile:
    name: str
    size: int
    is_ini: bool


@dataclass(frozen=True)
class ConflictSide:
    path: str
    folder_name: str
    is_enabled: bool
    total_size: int
    file_count: int
    files: List[ConflictFile]
    thumbnail_path: Optional[str] = None


@dataclass(frozen=True)
class ConflictDetails:
    side_a: ConflictSide
    side_b: ConflictSide


@dataclass(frozen=True)
class ResolutionResult:
    strategy: str
    surviving_paths: List[str]
    removed_path: Optional[str]
    invalidates: Tuple[ResourceId, ...] = ()
    renamed_from: Optional[str] = None


# ---------------------------------------------------------------------------
# Scan progress events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScanStarted:
    total_folders: int
    kind: str = "started"


@dataclass(frozen=True)
class ScanProgress:
    current: int
    folder_name: str
    eta_ms: int
    kind: str = "progress"


@dataclass(frozen=True)
class ScanMatched:
    folder_name: str
    object_name: str
    confidence: Confidence
    kind: str = "matched"


@dataclass(frozen=True)
class ScanFinished:
    matched: int
    unmatched: int
    kind: str = "finished"


ScanEvent = Union[ScanStarted, ScanProgress, ScanMatched, ScanFinished]
ScanEventCallback = Callable[[ScanEvent], None]
LogCallback = Callable[[str], None]


__all__ = [
    "ArchiveInfo",
    "CONFLICT_STRATEGIES",
    "CancelToken",
    "CatalogEntity",
    "CommitReport",
    "ConfirmedScanItem",
    "Confidence",
    "ConflictDetails",
    "ConflictFile",
    "ConflictInfo",
    "ConflictSide",
    "ConflictStrategy",
    "ExtractionResult",
    "ItemCommitResult",
    "LogCallback",
    "MUTATION_RESOURCES",
    "MatchLevel",
    "ResolutionResult",
    "ResourceId",
    "ScanEvent",
    "ScanEventCallback",
    "ScanFinished",
    "ScanMatched",
    "ScanPreviewItem",
    "ScanProgress",
    "ScanStarted",
    "ScoredCandidate",
    "UNCATEGORIZED",
]

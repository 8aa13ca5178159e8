"""Public controller API surface for UI and integrations.

Centralizes stable imports to keep the UI decoupled from controller internals.
"""

from __future__ import annotations

from .async_api import async_commit_scan, async_detect_archives, async_scan_preview
from .backend import COMMAND_NAMES, Backend, LocalBackend, dispatch, to_jsonable
from .conflict_controller import (
    RESOLUTION_RESOURCES,
    ConflictResolver,
    check_rename_conflict,
    detect_conflicts_under,
    detect_naming_conflicts,
    get_conflict_details,
    resolve_conflict,
)
from .drop_controller import DropController, DropReport, ItemDropPlan, validate_drop_for_zone
from .invalidation import InvalidationDispatcher
from .models import (
    CONFLICT_STRATEGIES,
    MUTATION_RESOURCES,
    UNCATEGORIZED,
    ArchiveInfo,
    CancelToken,
    CatalogEntity,
    CommitReport,
    ConfirmedScanItem,
    ConflictDetails,
    ConflictInfo,
    ConflictStrategy,
    ExtractionResult,
    ItemCommitResult,
    LogCallback,
    ResolutionResult,
    ResourceId,
    ScanEvent,
    ScanEventCallback,
    ScanFinished,
    ScanMatched,
    ScanPreviewItem,
    ScanProgress,
    ScanStarted,
    ScoredCandidate,
)
from .override_search import LAZY_SCORE_CHUNK_SIZE, OVERRIDE_CANDIDATE_THRESHOLD, OverrideSearch, SearchResults
from .pipeline import ArchiveChoice, ArchiveOutcome, ScanPipeline
from .pre_drop import PRE_DROP_ACCEPT_THRESHOLD, PreDropDecision, PreDropValidator
from .progress_streams import ProgressEvent, collect_preview, scan_preview_stream
from .review_session import CONFIDENCE_CHIPS, ReviewSession, ReviewTab
from .scan_controller import commit_scan, scan_preview
from ..core.classifier import ClassifiedPaths, classify_dropped_paths
from ..core.scoring import Confidence, MatchLevel
from ..ui.drag_reducer import DragState, reduce
from ..ui.drop_zones import DropZone, DropZoneResolver, Rect
from ..ui.state_machine import PipelineState
from ..utils.result import Err, Ok, Result, is_err, is_ok, unwrap, unwrap_or

__all__ = [
    "ArchiveChoice",
    "ArchiveInfo",
    "ArchiveOutcome",
    "Backend",
    "CONFIDENCE_CHIPS",
    "CONFLICT_STRATEGIES",
    "COMMAND_NAMES",
    "CancelToken",
    "CatalogEntity",
    "ClassifiedPaths",
    "CommitReport",
    "Confidence",
    "ConfirmedScanItem",
    "ConflictDetails",
    "ConflictInfo",
    "ConflictResolver",
    "ConflictStrategy",
    "DragState",
    "DropController",
    "DropReport",
    "DropZone",
    "DropZoneResolver",
    "Err",
    "ExtractionResult",
    "InvalidationDispatcher",
    "ItemCommitResult",
    "ItemDropPlan",
    "LAZY_SCORE_CHUNK_SIZE",
    "LocalBackend",
    "LogCallback",
    "MUTATION_RESOURCES",
    "MatchLevel",
    "OVERRIDE_CANDIDATE_THRESHOLD",
    "Ok",
    "OverrideSearch",
    "PRE_DROP_ACCEPT_THRESHOLD",
    "PipelineState",
    "PreDropDecision",
    "PreDropValidator",
    "RESOLUTION_RESOURCES",
    "ProgressEvent",
    "Rect",
    "ResolutionResult",
    "ResourceId",
    "Result",
    "ReviewSession",
    "ReviewTab",
    "ScanEvent",
    "ScanEventCallback",
    "ScanFinished",
    "ScanMatched",
    "ScanPipeline",
    "ScanPreviewItem",
    "ScanProgress",
    "ScanStarted",
    "ScoredCandidate",
    "SearchResults",
    "UNCATEGORIZED",
    "async_commit_scan",
    "async_detect_archives",
    "async_scan_preview",
    "check_rename_conflict",
    "classify_dropped_paths",
    "collect_preview",
    "commit_scan",
    "detect_conflicts_under",
    "detect_naming_conflicts",
    "dispatch",
    "get_conflict_details",
    "is_err",
    "is_ok",
    "reduce",
    "resolve_conflict",
    "scan_preview",
    "scan_preview_stream",
    "to_jsonable",
    "unwrap",
    "unwrap_or",
    "validate_drop_for_zone",
]

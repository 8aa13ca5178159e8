"""Two-phase scan pipeline: detect archives, scan, review, commit.

``ScanPipeline`` owns its state explicitly (state machine, review session,
temporary extraction directory) so the UI only reads it. At most one
pipeline across the process may be scanning or committing at a time.
"""

from __future__ import annotations

import json
import logging
import shutil
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from .backend import Backend, LocalBackend
from .invalidation import InvalidationDispatcher
from .models import (
    MUTATION_RESOURCES,
    ArchiveInfo,
    CancelToken,
    CatalogEntity,
    CommitReport,
    ExtractionResult,
    ScanEvent,
    ScanEventCallback,
    ScanPreviewItem,
    ScanProgress,
)
from .override_search import LAZY_SCORE_CHUNK_SIZE, OVERRIDE_CANDIDATE_THRESHOLD
from .review_session import ReviewSession
from ..config.models import ConfigModel
from ..core.walker import DEFAULT_TEMP_DIR_NAME
from ..exceptions import (
    ArchiveError,
    ArchivePasswordError,
    BaseError,
    CommitError,
    ConfigurationError,
    InvalidTransitionError,
    PipelineBusyError,
    ScanCancelled,
)
from ..ui.state_machine import BUSY_STATES, PipelineState, PipelineStateMachine

logger = logging.getLogger(__name__)

StateCallback = Callable[[PipelineState], None]


@dataclass(frozen=True)
class ArchiveChoice:
    archive_path: str
    extract: bool = True
    password: Optional[str] = None
    overwrite: bool = False


@dataclass(frozen=True)
class ArchiveOutcome:
    archive_path: str
    ok: bool
    needs_password: bool = False
    error: Optional[str] = None
    result: Optional[ExtractionResult] = None


class ScanPipeline:
    _active_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: ConfigModel, backend: Optional[Backend] = None,
                    catalog: Sequence[CatalogEntity] = (), **kwargs) -> "ScanPipeline":
        """Build a pipeline (and a local backend unless one is given) from typed config."""
        if backend is None:
            backend = LocalBackend.from_config(config)
        elif not config.mods_root:
            raise ConfigurationError("mods_root is not configured")
        return cls(
            backend,
            config.mods_root,
            catalog=catalog,
            game_id=config.game_id,
            temp_dir_name=config.archives.temp_dir_name,
            chunk_size=config.pipeline.lazy_score_chunk_size,
            candidate_threshold=int(config.pipeline.override_candidate_threshold),
            **kwargs,
        )

    def __init__(
        self,
        backend: Backend,
        mods_root: str,
        catalog: Sequence[CatalogEntity] = (),
        game_id: str = "default",
        invalidation: Optional[InvalidationDispatcher] = None,
        temp_dir_name: str = DEFAULT_TEMP_DIR_NAME,
        chunk_size: int = LAZY_SCORE_CHUNK_SIZE,
        candidate_threshold: int = OVERRIDE_CANDIDATE_THRESHOLD,
        on_event: Optional[ScanEventCallback] = None,
        on_state_change: Optional[StateCallback] = None,
    ):
        self.backend = backend
        self.mods_root = str(mods_root)
        self.catalog = list(catalog)
        self.game_id = game_id
        self.invalidation = invalidation or InvalidationDispatcher()
        self.temp_dir_name = temp_dir_name
        self.chunk_size = chunk_size
        self.candidate_threshold = candidate_threshold
        self.on_event = on_event
        self.on_state_change = on_state_change

        self._machine = PipelineStateMachine()
        self._holds_lock = False
        self._prune_on_commit = False
        self._last_current = 0

        self.cancel_token: Optional[CancelToken] = None
        self.pending_archives: List[ArchiveInfo] = []
        self.session: Optional[ReviewSession] = None
        self.temp_dir: Optional[Path] = None
        self.last_error: Optional[BaseException] = None
        self.last_report: Optional[CommitReport] = None
        self.events: List[ScanEvent] = []

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    @property
    def state(self) -> PipelineState:
        return self._machine.state

    @property
    def is_busy(self) -> bool:
        return self.state in BUSY_STATES

    def _set_state(self, target: PipelineState) -> None:
        previous = self._machine.state
        if not self._machine.transition(target):
            raise InvalidTransitionError(previous.value, target.value)
        logger.info("Pipeline %s -> %s", previous.value, target.value)
        if self.on_state_change is not None:
            self.on_state_change(target)

    def _require(self, *states: PipelineState) -> None:
        if self.state not in states:
            raise InvalidTransitionError(self.state.value, "/".join(s.value for s in states))

    def _enter_busy(self, target: PipelineState) -> None:
        if not ScanPipeline._active_lock.acquire(blocking=False):
            raise PipelineBusyError(self.state.value)
        self._holds_lock = True
        try:
            self._set_state(target)
        except BaseException:
            self._leave_busy()
            raise

    def _leave_busy(self) -> None:
        if self._holds_lock:
            self._holds_lock = False
            ScanPipeline._active_lock.release()

    def _fail(self, exc: BaseException) -> None:
        self.last_error = exc
        detail = exc.to_dict() if isinstance(exc, BaseError) else {"message": str(exc)}
        logger.error("Pipeline aborted in %s: %s", self.state.value, detail)
        self._set_state(PipelineState.ERROR)
        self._discard_session()
        self.cleanup_temp()
        self._set_state(PipelineState.IDLE)

    def _discard_session(self) -> None:
        if self.session is not None:
            self.session.close()
        self.session = None

    def cleanup_temp(self) -> None:
        if self.temp_dir is None:
            return
        temp, self.temp_dir = self.temp_dir, None
        try:
            if temp.exists():
                shutil.rmtree(temp)
        except OSError as exc:
            logger.warning("Could not remove temporary folder %s: %s", temp, exc)

    def new_temp_dir(self, run_id: str) -> Path:
        """Create the run-scoped extraction area below the mod root."""
        path = Path(self.mods_root) / self.temp_dir_name / run_id
        path.mkdir(parents=True, exist_ok=True)
        self.temp_dir = path
        return path

    def _catalog_json(self) -> str:
        return json.dumps([entity.to_dict() for entity in self.catalog])

    # ------------------------------------------------------------------
    # Phase 0: archives
    # ------------------------------------------------------------------

    def start_scan(self) -> PipelineState:
        """Manual scan of the whole mod root."""
        if self.state != PipelineState.IDLE or ScanPipeline._active_lock.locked():
            raise PipelineBusyError(self.state.value)
        self.last_error = None
        self._set_state(PipelineState.DETECTING_ARCHIVES)
        try:
            archives = self.backend.detect_archives(self.mods_root)
        except Exception as exc:
            self._fail(exc)
            return self.state

        if archives:
            self.pending_archives = list(archives)
            self._set_state(PipelineState.AWAITING_ARCHIVE_CHOICE)
            return self.state
        self._run_scan(folder_subset=None, prune_on_commit=True)
        return self.state

    def submit_archive_choice(self, choices: Iterable[ArchiveChoice]) -> List[ArchiveOutcome]:
        """Extract the chosen archives, then scan.

        Password failures keep the pipeline waiting so the caller can retry
        those archives with credentials; other failures skip that archive.
        """
        self._require(PipelineState.AWAITING_ARCHIVE_CHOICE)
        outcomes: List[ArchiveOutcome] = []
        for choice in choices:
            if not choice.extract:
                continue
            try:
                result = self.backend.extract_archive(
                    choice.archive_path, self.mods_root, choice.password, choice.overwrite
                )
            except ArchivePasswordError as exc:
                outcomes.append(ArchiveOutcome(choice.archive_path, False, needs_password=True, error=str(exc)))
                continue
            except (ArchiveError, OSError) as exc:
                logger.warning("Extraction failed for %s: %s", choice.archive_path, exc)
                outcomes.append(ArchiveOutcome(choice.archive_path, False, error=str(exc)))
                continue
            outcomes.append(ArchiveOutcome(choice.archive_path, True, result=result))

        locked = {o.archive_path for o in outcomes if o.needs_password}
        if locked:
            self.pending_archives = [a for a in self.pending_archives if a.path in locked]
            return outcomes

        self.pending_archives = []
        self._run_scan(folder_subset=None, prune_on_commit=True)
        return outcomes

    def skip_archives(self) -> PipelineState:
        self._require(PipelineState.AWAITING_ARCHIVE_CHOICE)
        self.pending_archives = []
        self._run_scan(folder_subset=None, prune_on_commit=True)
        return self.state

    def abort(self) -> None:
        """Leave the archive prompt without scanning."""
        self._require(PipelineState.AWAITING_ARCHIVE_CHOICE)
        self.pending_archives = []
        self.cleanup_temp()
        self._set_state(PipelineState.IDLE)

    # ------------------------------------------------------------------
    # Phase 1: scan
    # ------------------------------------------------------------------

    def scan_folders(self, folder_paths: Sequence[str], move_from_temp: Iterable[str] = ()) -> PipelineState:
        """Scan an explicit folder subset (drop import)."""
        if self.state != PipelineState.IDLE or ScanPipeline._active_lock.locked():
            raise PipelineBusyError(self.state.value)
        self.last_error = None
        self._run_scan(folder_subset=list(folder_paths), prune_on_commit=False,
                       move_from_temp=move_from_temp)
        return self.state

    def _forward(self, event: ScanEvent) -> None:
        if self.cancel_token is not None and self.cancel_token.is_cancelled():
            return
        if isinstance(event, ScanProgress):
            if event.current < self._last_current:
                return
            self._last_current = event.current
        self.events.append(event)
        if self.on_event is not None:
            self.on_event(event)

    def _run_scan(self, folder_subset: Optional[List[str]], prune_on_commit: bool,
                  move_from_temp: Iterable[str] = ()) -> None:
        try:
            self._enter_busy(PipelineState.SCANNING)
        except PipelineBusyError as exc:
            if self.state == PipelineState.DETECTING_ARCHIVES:
                self._fail(exc)
            raise
        self.cancel_token = CancelToken()
        self._last_current = 0
        self.events = []
        try:
            try:
                items: List[ScanPreviewItem] = self.backend.scan_preview(
                    self.game_id,
                    self.mods_root,
                    self._catalog_json(),
                    folder_subset,
                    on_event=self._forward,
                    cancel_token=self.cancel_token,
                )
            finally:
                self._leave_busy()
        except ScanCancelled as exc:
            logger.info("Scan cancelled (%d/%d)", exc.processed, exc.total)
            self._set_state(PipelineState.CANCELLED)
            self.cleanup_temp()
            self._set_state(PipelineState.IDLE)
            return
        except Exception as exc:
            self._fail(exc)
            return

        self._prune_on_commit = prune_on_commit
        self.session = ReviewSession(
            items,
            self.catalog,
            score_fn=self.backend.score_candidates,
            move_from_temp=move_from_temp,
            chunk_size=self.chunk_size,
            candidate_threshold=self.candidate_threshold,
        )
        self._set_state(PipelineState.REVIEWING)

    def cancel(self) -> bool:
        """Request cooperative cancellation of a running scan."""
        if self.state != PipelineState.SCANNING or self.cancel_token is None:
            return False
        self.cancel_token.cancel()
        return True

    # ------------------------------------------------------------------
    # Phase 2: commit
    # ------------------------------------------------------------------

    def confirm(self) -> CommitReport:
        """Commit the reviewed items.

        On total failure the pipeline stays in REVIEWING with the session
        untouched. On partial failure the session keeps only the failed
        items so they can be retried.
        """
        self._require(PipelineState.REVIEWING)
        if self.session is None:
            raise InvalidTransitionError(self.state.value, PipelineState.COMMITTING.value)
        self._enter_busy(PipelineState.COMMITTING)
        try:
            try:
                items = self.session.confirmed_items()
                report = self.backend.commit_scan(self.game_id, items, prune_missing=self._prune_on_commit)
            finally:
                self._leave_busy()
        except Exception as exc:
            self.last_error = exc
            logger.error("Commit failed: %s", exc)
            self._set_state(PipelineState.REVIEWING)
            if isinstance(exc, CommitError):
                raise
            raise CommitError(f"Commit failed: {exc}") from exc
        self.last_report = report

        if report.total_failure:
            failed = [r.folder_path for r in report.failed]
            self.last_error = CommitError(f"All {len(failed)} items failed to commit", failed)
            logger.error("Commit failed for every item; review stays open")
            self._set_state(PipelineState.REVIEWING)
            return report

        self.invalidation.dispatch(MUTATION_RESOURCES)
        if report.failed:
            failed = [r.folder_path for r in report.failed]
            self.last_error = CommitError(f"{len(failed)} items failed to commit", failed)
            self.session.retain(failed)
            self._set_state(PipelineState.REVIEWING)
            return report

        self._discard_session()
        self.cleanup_temp()
        self._set_state(PipelineState.IDLE)
        return report

    def close_review(self) -> None:
        self._require(PipelineState.REVIEWING)
        self._discard_session()
        self.cleanup_temp()
        self._set_state(PipelineState.IDLE)

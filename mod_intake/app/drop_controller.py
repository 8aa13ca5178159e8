"""Zone-aware import of dropped paths."""

from __future__ import annotations

import logging
import shutil
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .backend import Backend
from .invalidation import InvalidationDispatcher
from .models import MUTATION_RESOURCES, CatalogEntity, ConfirmedScanItem, ResourceId
from .pipeline import ScanPipeline
from .pre_drop import PreDropDecision, PreDropValidator
from ..core.classifier import ClassifiedPaths, classify_dropped_paths
from ..core.naming import is_disabled_name, normalize_display_name, sanitize_folder_name
from ..exceptions import ArchiveError, ArchivePasswordError, BaseError, PipelineBusyError
from ..security.security_utils import ensure_inside
from ..ui.drop_zones import DropZone
from ..ui.state_machine import PipelineState

logger = logging.getLogger(__name__)

ARCHIVES_AS_OBJECTS_MESSAGE = "Archives cannot be added as new objects. Use Auto Organize or drop on a specific item."
UNSUPPORTED_MESSAGE = "None of the dropped files can be imported."

ITEM_CHOICES = ("move_anyway", "move_to_suggestion", "cancel", "skip_validation")


@dataclass(frozen=True)
class DropAdmission:
    allowed: bool
    reason: Optional[str] = None


def validate_drop_for_zone(zone: DropZone, classified: ClassifiedPaths) -> DropAdmission:
    if zone == DropZone.NONE:
        return DropAdmission(False, "Not a drop target")
    if classified.supported_count() == 0:
        return DropAdmission(False, UNSUPPORTED_MESSAGE)
    if zone == DropZone.NEW_OBJECT and classified.has_archives():
        return DropAdmission(False, ARCHIVES_AS_OBJECTS_MESSAGE)
    return DropAdmission(True)


@dataclass
class DropReport:
    zone: DropZone
    blocked: Optional[str] = None
    moved: List[str] = field(default_factory=list)
    failures: List[Tuple[str, str]] = field(default_factory=list)
    needs_password: List[str] = field(default_factory=list)
    ignored: List[str] = field(default_factory=list)
    created_entities: List[str] = field(default_factory=list)
    pending: Optional["ItemDropPlan"] = None
    invalidates: Tuple[ResourceId, ...] = ()


def _not_imported(classified: ClassifiedPaths, loose_ini: bool = False) -> List[str]:
    leftovers = list(classified.images) + list(classified.unsupported)
    return list(classified.ini_files) + leftovers if loose_ini else leftovers


@dataclass(frozen=True)
class ItemDropPlan:
    paths: Tuple[str, ...]
    target: str
    classified: ClassifiedPaths
    decision: PreDropDecision


class DropController:
    def __init__(
        self,
        backend: Backend,
        pipeline: ScanPipeline,
        validator: Optional[PreDropValidator] = None,
        invalidation: Optional[InvalidationDispatcher] = None,
    ):
        self.backend = backend
        self.pipeline = pipeline
        self.validator = validator or PreDropValidator(backend.score_candidates, pipeline.catalog)
        self.invalidation = invalidation or pipeline.invalidation

    @property
    def mods_root(self) -> Path:
        return Path(self.pipeline.mods_root)

    @contextmanager
    def _suppressed(self) -> Iterator[None]:
        self.backend.set_watcher_suppression(True)
        try:
            yield
        finally:
            self.backend.set_watcher_suppression(False)

    def drop(self, zone: DropZone, paths: Sequence[str], hovered: Optional[str] = None,
             passwords: Optional[Dict[str, str]] = None) -> DropReport:
        classified = classify_dropped_paths(paths)
        admission = validate_drop_for_zone(zone, classified)
        if not admission.allowed:
            logger.info("Drop on %s blocked: %s", zone.value, admission.reason)
            return DropReport(zone, blocked=admission.reason, ignored=list(classified.unsupported))

        if zone == DropZone.AUTO_ORGANIZE:
            return self.auto_organize(classified, passwords or {})
        if zone == DropZone.NEW_OBJECT:
            return self.add_as_new_objects(classified)
        if not hovered:
            return DropReport(zone, blocked="No target item under the cursor")
        plan = self.prepare_item_drop(paths, hovered, classified)
        if plan.decision.accept:
            return self.move_to_entity(plan.classified, plan.target)
        return DropReport(zone, pending=plan)

    # ------------------------------------------------------------------
    # auto-organize
    # ------------------------------------------------------------------

    def auto_organize(self, classified: ClassifiedPaths, passwords: Dict[str, str]) -> DropReport:
        """Extract archives into a run-scoped temp area and start a subset scan."""
        if self.pipeline.state != PipelineState.IDLE or ScanPipeline._active_lock.locked():
            raise PipelineBusyError(self.pipeline.state.value)

        report = DropReport(DropZone.AUTO_ORGANIZE, ignored=_not_imported(classified))
        temp = self.pipeline.new_temp_dir(uuid.uuid4().hex[:12])
        try:
            folders = self._stage_drop(classified, passwords, temp, report)
            if not folders:
                self.pipeline.cleanup_temp()
                return report
            self.pipeline.scan_folders(folders, move_from_temp=folders)
        except Exception:
            self.pipeline.cleanup_temp()
            raise
        return report

    def _stage_drop(self, classified: ClassifiedPaths, passwords: Dict[str, str],
                    temp: Path, report: DropReport) -> List[str]:
        folders = list(classified.folders)
        with self._suppressed():
            for archive in classified.archives:
                try:
                    result = self.backend.extract_archive(archive, str(temp), passwords.get(archive), False)
                except ArchivePasswordError as exc:
                    report.needs_password.append(archive)
                    report.failures.append((archive, str(exc)))
                    continue
                except (ArchiveError, OSError) as exc:
                    report.failures.append((archive, str(exc)))
                    continue
                folders.extend(result.extracted_folders)

            for ini in classified.ini_files:
                source = Path(ini)
                holder = temp / (sanitize_folder_name(source.stem) or "mod")
                try:
                    holder.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(source, holder / source.name)
                except OSError as exc:
                    report.failures.append((ini, str(exc)))
                    continue
                if str(holder) not in folders:
                    folders.append(str(holder))
        return folders

    # ------------------------------------------------------------------
    # item
    # ------------------------------------------------------------------

    def prepare_item_drop(self, paths: Sequence[str], target: str,
                          classified: Optional[ClassifiedPaths] = None) -> ItemDropPlan:
        classified = classified or classify_dropped_paths(paths)
        decision = self.validator.validate(paths, target, classified)
        return ItemDropPlan(tuple(paths), target, classified, decision)

    def resolve_item_warning(self, plan: ItemDropPlan, choice: str) -> DropReport:
        if choice not in ITEM_CHOICES:
            raise ValueError(f"Unknown choice: {choice}")
        if choice == "cancel":
            return DropReport(DropZone.ITEM)
        if choice == "skip_validation":
            self.validator.skip_validation = True
            return self.move_to_entity(plan.classified, plan.target)
        if choice == "move_to_suggestion" and plan.decision.suggestion is not None:
            return self.move_to_entity(plan.classified, plan.decision.suggestion.name)
        return self.move_to_entity(plan.classified, plan.target)

    def _entity(self, name: str) -> CatalogEntity:
        for entity in self.pipeline.catalog:
            if entity.name == name:
                return entity
        return CatalogEntity(name=name)

    def _move_into(self, folders: Sequence[str], target_dir: Path, report: DropReport) -> List[Path]:
        moved: List[Path] = []
        target_dir.mkdir(parents=True, exist_ok=True)
        for folder in folders:
            source = Path(folder)
            destination = target_dir / source.name
            if destination.exists():
                report.failures.append((folder, f"Destination already exists: {destination}"))
                continue
            try:
                shutil.move(str(source), str(destination))
            except OSError as exc:
                report.failures.append((folder, str(exc)))
                continue
            moved.append(destination)
            report.moved.append(str(destination))
        return moved

    def _record(self, entity: CatalogEntity, moved: Sequence[Path], report: DropReport) -> None:
        if not moved:
            return
        items = [
            ConfirmedScanItem(
                folder_path=str(path),
                display_name=normalize_display_name(path.name),
                is_disabled=is_disabled_name(path.name),
                matched_object=entity.name,
                object_type=entity.object_type,
                thumbnail_path=entity.thumbnail_path,
                tags=entity.tags,
                metadata=dict(entity.metadata),
            )
            for path in moved
        ]
        try:
            commit = self.backend.commit_scan(self.pipeline.game_id, items)
        except (BaseError, OSError) as exc:
            logger.warning("Moved folders could not be recorded: %s", exc)
            report.failures.extend((str(p), str(exc)) for p in moved)
            return
        for result in commit.failed:
            report.failures.append((result.folder_path, result.error or "commit failed"))

    def move_to_entity(self, classified: ClassifiedPaths, entity_name: str) -> DropReport:
        report = DropReport(DropZone.ITEM, ignored=_not_imported(classified, loose_ini=True))
        entity = self._entity(entity_name)
        bucket = sanitize_folder_name(entity.name) or entity.name
        target_dir = self.mods_root / bucket
        ensure_inside(self.mods_root, target_dir)
        with self._suppressed():
            moved = self._move_into(classified.folders, target_dir, report)
            self._record(entity, moved, report)
        if moved:
            report.invalidates = self.invalidation.dispatch(MUTATION_RESOURCES)
        logger.info("Moved %d folders to %s (%d failed)", len(moved), entity.name, len(report.failures))
        return report

    # ------------------------------------------------------------------
    # new-object
    # ------------------------------------------------------------------

    def add_as_new_objects(self, classified: ClassifiedPaths) -> DropReport:
        report = DropReport(DropZone.NEW_OBJECT, ignored=_not_imported(classified, loose_ini=True))
        known = {e.name.casefold() for e in self.pipeline.catalog}
        with self._suppressed():
            for folder in classified.folders:
                name = normalize_display_name(Path(folder).name)
                if not name:
                    report.failures.append((folder, "Folder name is empty after normalisation"))
                    continue
                entity = CatalogEntity(name=name)
                target_dir = self.mods_root / sanitize_folder_name(name)
                ensure_inside(self.mods_root, target_dir)
                moved = self._move_into([folder], target_dir, report)
                self._record(entity, moved, report)
                if moved and name.casefold() not in known:
                    known.add(name.casefold())
                    self.pipeline.catalog.append(entity)
                    report.created_entities.append(name)
        if report.moved:
            report.invalidates = self.invalidation.dispatch(MUTATION_RESOURCES)
        return report

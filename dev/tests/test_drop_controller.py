from __future__ import annotations

import zipfile

import pytest

from mod_intake.app.backend import LocalBackend
from mod_intake.app.drop_controller import (
    ARCHIVES_AS_OBJECTS_MESSAGE,
    UNSUPPORTED_MESSAGE,
    DropController,
)
from mod_intake.app.models import MUTATION_RESOURCES, ScanProgress
from mod_intake.app.pipeline import ScanPipeline
from mod_intake.app.review_session import ReviewTab
from mod_intake.database.mod_store import ModStore
from mod_intake.exceptions import PipelineBusyError
from mod_intake.ui.drop_zones import DropZone
from mod_intake.ui.state_machine import PipelineState


class _TableBackend(LocalBackend):
    def __init__(self, mods_root, table=None, **kwargs):
        super().__init__(mods_root, store=ModStore(), **kwargs)
        self.table = table
        self.suppression_calls = []

    def score_candidates(self, folder_path, candidate_names):
        if self.table is None:
            return super().score_candidates(folder_path, candidate_names)
        return {n: self.table.get(n, 0) for n in candidate_names}

    def set_watcher_suppression(self, value):
        self.suppression_calls.append(value)
        super().set_watcher_suppression(value)


@pytest.fixture
def drops(tmp_path):
    folder = tmp_path / "drops"
    folder.mkdir()
    return folder


def _controller(mods_root, catalog, table=None):
    backend = _TableBackend(str(mods_root), table=table)
    pipeline = ScanPipeline(backend, str(mods_root), catalog=catalog)
    return DropController(backend, pipeline)


def test_auto_organize_scans_dropped_folder_and_archive(mods_root, drops, make_mod, catalog):
    folder = make_mod(drops, "Albedo Beach")
    archive = drops / "skin.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("skin/mod.ini", "[TextureOverride]\n")
    controller = _controller(mods_root, catalog)

    report = controller.drop(DropZone.AUTO_ORGANIZE, [str(folder), str(archive)])

    assert report.blocked is None
    assert report.failures == []
    pipeline = controller.pipeline
    assert pipeline.state == PipelineState.REVIEWING
    assert pipeline.session.tab_counts()[ReviewTab.ALL] == 2
    temp = pipeline.temp_dir
    assert temp is not None and temp.is_dir()

    commit = pipeline.confirm()
    assert not commit.failed
    assert pipeline.state == PipelineState.IDLE
    assert (mods_root / "Albedo" / "Albedo Beach" / "mod.ini").is_file()
    assert not folder.exists()
    assert any(p.name == "skin" for p in mods_root.rglob("skin") if p.is_dir())
    assert not temp.exists()


def test_auto_organize_bad_archive_is_reported(mods_root, drops, catalog):
    archive = drops / "broken.zip"
    archive.write_bytes(b"not a zip")
    controller = _controller(mods_root, catalog)

    report = controller.drop(DropZone.AUTO_ORGANIZE, [str(archive)])

    assert [path for path, _ in report.failures] == [str(archive)]
    assert controller.pipeline.state == PipelineState.IDLE
    assert controller.pipeline.temp_dir is None


def test_item_drop_above_threshold_moves_silently(mods_root, drops, make_mod, catalog):
    folder = make_mod(drops, "Albedo Beach")
    controller = _controller(mods_root, catalog, table={"Albedo": 90})

    report = controller.drop(DropZone.ITEM, [str(folder)], hovered="Albedo")

    assert report.pending is None
    assert report.moved == [str(mods_root / "Albedo" / "Albedo Beach")]
    assert report.invalidates == MUTATION_RESOURCES
    assert controller.backend.store.count_mods("default") == 1
    assert controller.backend.suppression_calls == [True, False]


def test_item_drop_low_score_waits_for_choice(mods_root, drops, make_mod, catalog):
    folder = make_mod(drops, "Kazuha Hat")
    controller = _controller(mods_root, catalog, table={"Albedo": 10, "Kazuha": 85})

    report = controller.drop(DropZone.ITEM, [str(folder)], hovered="Albedo")
    assert report.moved == []
    plan = report.pending
    assert plan is not None
    assert plan.decision.suggestion.name == "Kazuha"
    assert folder.exists()

    moved = controller.resolve_item_warning(plan, "move_to_suggestion")
    assert moved.moved == [str(mods_root / "Kazuha" / "Kazuha Hat")]


def test_item_drop_cancel_and_unknown_choice(mods_root, drops, make_mod, catalog):
    folder = make_mod(drops, "Kazuha Hat")
    controller = _controller(mods_root, catalog, table={"Kazuha": 85})
    plan = controller.drop(DropZone.ITEM, [str(folder)], hovered="Albedo").pending

    assert controller.resolve_item_warning(plan, "cancel").moved == []
    assert folder.exists()
    with pytest.raises(ValueError):
        controller.resolve_item_warning(plan, "explode")


def test_skip_validation_is_remembered(mods_root, drops, make_mod, catalog):
    first = make_mod(drops, "One")
    second = make_mod(drops, "Two")
    controller = _controller(mods_root, catalog, table={})

    plan = controller.drop(DropZone.ITEM, [str(first)], hovered="Albedo").pending
    controller.resolve_item_warning(plan, "skip_validation")

    report = controller.drop(DropZone.ITEM, [str(second)], hovered="Albedo")
    assert report.pending is None
    assert report.moved == [str(mods_root / "Albedo" / "Two")]


def test_new_object_zone_blocks_archives(mods_root, drops, make_mod, catalog):
    folder = make_mod(drops, "Nahida")
    archive = drops / "pack.zip"
    archive.write_bytes(b"")
    controller = _controller(mods_root, catalog)

    report = controller.drop(DropZone.NEW_OBJECT, [str(folder), str(archive)])

    assert report.blocked == ARCHIVES_AS_OBJECTS_MESSAGE
    assert folder.exists()


def test_new_object_zone_creates_entity(mods_root, drops, make_mod, catalog):
    folder = make_mod(drops, "DISABLED Nahida")
    controller = _controller(mods_root, catalog)

    report = controller.drop(DropZone.NEW_OBJECT, [str(folder)])

    assert report.created_entities == ["Nahida"]
    assert (mods_root / "Nahida" / "DISABLED Nahida").is_dir()
    assert any(e.name == "Nahida" for e in controller.pipeline.catalog)
    assert report.invalidates == MUTATION_RESOURCES


def test_unsupported_only_drop_is_blocked(mods_root, drops, catalog):
    note = drops / "readme.txt"
    note.write_text("hi", encoding="utf-8")
    controller = _controller(mods_root, catalog)

    report = controller.drop(DropZone.AUTO_ORGANIZE, [str(note)])

    assert report.blocked == UNSUPPORTED_MESSAGE
    assert report.ignored == [str(note)]
    assert controller.pipeline.state == PipelineState.IDLE


def test_item_drop_without_target_is_blocked(mods_root, drops, make_mod, catalog):
    folder = make_mod(drops, "Mod")
    report = _controller(mods_root, catalog).drop(DropZone.ITEM, [str(folder)])
    assert report.blocked


def _run_dirs(mods_root):
    temp_root = mods_root / ".intake_temp"
    return list(temp_root.iterdir()) if temp_root.exists() else []


def test_drop_during_other_scan_is_busy_and_leaves_no_temp(mods_root, drops, make_mod, catalog):
    folder = make_mod(drops, "Albedo Beach")
    archive = drops / "skin.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("skin/mod.ini", "[TextureOverride]\n")
    other_root = mods_root.parent / "Other"
    make_mod(other_root, "Kazuha")
    controller = _controller(mods_root, catalog)
    errors = []

    def on_event(event):
        if isinstance(event, ScanProgress):
            with pytest.raises(PipelineBusyError) as excinfo:
                controller.drop(DropZone.AUTO_ORGANIZE, [str(folder), str(archive)])
            errors.append(excinfo.value)

    other = ScanPipeline(_TableBackend(str(other_root)), str(other_root), catalog=catalog, on_event=on_event)
    assert other.start_scan() == PipelineState.REVIEWING
    other.close_review()

    assert len(errors) == 1
    assert controller.pipeline.state == PipelineState.IDLE
    assert controller.pipeline.temp_dir is None
    assert _run_dirs(mods_root) == []
    assert archive.exists() and folder.exists()


class _RacingBackend(_TableBackend):
    """Another scan claims the busy slot while the drop is being staged."""

    def extract_archive(self, archive_path, dest_dir, password=None, overwrite=False):
        result = super().extract_archive(archive_path, dest_dir, password, overwrite)
        ScanPipeline._active_lock.acquire()
        return result


def test_busy_after_staging_removes_temp(mods_root, drops, catalog):
    archive = drops / "skin.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("skin/mod.ini", "[TextureOverride]\n")
    backend = _RacingBackend(str(mods_root))
    controller = DropController(backend, ScanPipeline(backend, str(mods_root), catalog=catalog))

    try:
        with pytest.raises(PipelineBusyError):
            controller.drop(DropZone.AUTO_ORGANIZE, [str(archive)])
    finally:
        ScanPipeline._active_lock.release()

    assert controller.pipeline.state == PipelineState.IDLE
    assert controller.pipeline.temp_dir is None
    assert _run_dirs(mods_root) == []

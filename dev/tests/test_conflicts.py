from __future__ import annotations

import pytest

from mod_intake.app.backend import LocalBackend
from mod_intake.app.conflict_controller import (
    RESOLUTION_RESOURCES,
    ConflictResolver,
    check_rename_conflict,
    detect_conflicts_under,
    detect_naming_conflicts,
    get_conflict_details,
    resolve_conflict,
)
from mod_intake.app.invalidation import InvalidationDispatcher
from mod_intake.app.models import ResourceId
from mod_intake.core.watch_suppression import WatcherSuppressor
from mod_intake.database.mod_store import ModStore
from mod_intake.exceptions import ConflictResolutionError


@pytest.fixture
def pair(mods_root, make_mod):
    enabled = make_mod(mods_root, "Albedo", {"merged.ini": "[a]\n", "preview.png": "img", "notes.txt": "n"})
    disabled = make_mod(mods_root, "DISABLED Albedo", {"merged.ini": "[old]\n"})
    return enabled, disabled


def test_detect_conflicts_in_root_and_categories(mods_root, make_mod, pair):
    make_mod(mods_root / "Raiden", "Kimono")
    make_mod(mods_root / "Raiden", "disabled_kimono")
    make_mod(mods_root, "Kazuha")

    found = detect_conflicts_under(mods_root)

    assert [(c.base_name, c.attempted_target.rsplit("/", 1)[-1]) for c in found] == [
        ("Albedo", "Albedo"),
        ("kimono", "Kimono"),
    ]
    assert found[0].existing_path == str(pair[1])


def test_no_conflict_without_both_variants(mods_root, make_mod):
    make_mod(mods_root, "Albedo")
    make_mod(mods_root, "DISABLED Kazuha")
    assert detect_naming_conflicts(mods_root) == []


def test_check_rename_conflict(mods_root, make_mod, pair):
    other = make_mod(mods_root, "Kazuha")
    enabled, disabled = pair

    conflict = check_rename_conflict(other, "disabled_albedo")
    assert conflict is not None
    assert conflict.existing_path.endswith("disabled_albedo")
    assert conflict.attempted_target == str(enabled)

    conflict = check_rename_conflict(other, "Albedo")
    assert conflict is not None
    assert conflict.existing_path == str(disabled)
    assert check_rename_conflict(enabled, "DISABLED Albedo") is None
    assert check_rename_conflict(other, "DISABLED Kazuha") is None


def test_conflict_details_sort_ini_first_and_pick_thumbnail(pair):
    enabled, disabled = pair
    details = get_conflict_details(enabled, disabled)

    assert details.side_a.is_enabled and not details.side_b.is_enabled
    assert [f.name for f in details.side_a.files] == ["merged.ini", "notes.txt", "preview.png"]
    assert details.side_a.thumbnail_path == str(enabled / "preview.png")
    assert details.side_b.thumbnail_path is None
    assert details.side_a.file_count == 3
    assert details.side_a.total_size == sum(f.size for f in details.side_a.files)


@pytest.mark.parametrize("strategy,content", [("keep_enabled", "[a]\n"), ("keep_disabled", "[old]\n")])
def test_keep_strategies_leave_one_folder_at_shared_name(mods_root, pair, strategy, content):
    calls = []
    enabled, disabled = pair

    result = resolve_conflict(enabled, disabled, strategy, suppressor=WatcherSuppressor(calls.append))

    remaining = sorted(p.name for p in mods_root.iterdir())
    assert remaining == ["Albedo"]
    assert result.surviving_paths == [str(enabled)]
    assert (enabled / "merged.ini").read_text(encoding="utf-8") == content
    assert result.renamed_from == (str(disabled) if strategy == "keep_disabled" else None)
    assert result.invalidates == RESOLUTION_RESOURCES
    assert ResourceId.CONFLICTS in result.invalidates
    assert calls == [True, False]


def test_keep_argument_order_does_not_matter(mods_root, pair):
    enabled, disabled = pair
    result = resolve_conflict(disabled, enabled, "keep_enabled")
    assert result.removed_path == str(disabled)
    assert enabled.is_dir() and not disabled.exists()


def test_separate_keeps_both(pair):
    enabled, disabled = pair
    result = resolve_conflict(enabled, disabled, "separate")
    assert result.removed_path is None
    assert enabled.is_dir() and disabled.is_dir()


def test_invalid_pairs_leave_folders_untouched(mods_root, make_mod, pair):
    enabled, disabled = pair
    other = make_mod(mods_root, "Kazuha")
    with pytest.raises(ConflictResolutionError):
        resolve_conflict(enabled, disabled, "keep_both")
    with pytest.raises(ConflictResolutionError):
        resolve_conflict(enabled, other, "keep_enabled")
    with pytest.raises(ConflictResolutionError):
        resolve_conflict(enabled, mods_root / "missing", "keep_enabled")
    assert enabled.is_dir() and disabled.is_dir() and other.is_dir()


def _resolver(mods_root):
    backend = LocalBackend(str(mods_root), store=ModStore())
    return ConflictResolver(backend, InvalidationDispatcher())


def test_resolver_requires_details_first(mods_root, pair):
    enabled, disabled = pair
    resolver = _resolver(mods_root)

    with pytest.raises(ConflictResolutionError) as excinfo:
        resolver.resolve(enabled, disabled, "keep_enabled")
    assert excinfo.value.error_code == "CONFLICT_ERROR"
    assert enabled.is_dir() and disabled.is_dir()
    assert resolver.invalidation.history == []

    details = resolver.fetch_details(disabled, enabled)
    assert details.side_a.folder_name == "DISABLED Albedo"
    assert resolver.details_for(enabled, disabled) is details


def test_resolver_dispatches_invalidation_and_forgets_pair(mods_root, pair):
    enabled, disabled = pair
    resolver = _resolver(mods_root)
    seen = []
    resolver.invalidation.subscribe(seen.append)

    resolver.fetch_details(enabled, disabled)
    result = resolver.resolve(enabled, disabled, "separate")

    assert result.invalidates == RESOLUTION_RESOURCES
    assert resolver.invalidation.history == [RESOLUTION_RESOURCES]
    assert len(seen) == 1
    assert resolver.details_for(enabled, disabled) is None
    with pytest.raises(ConflictResolutionError):
        resolver.resolve(enabled, disabled, "keep_enabled")


def test_keep_disabled_moves_store_record_to_shared_name(mods_root, pair):
    enabled, disabled = pair
    store = ModStore()
    store.upsert_mod("default", str(enabled), "Albedo", False, None)
    store.upsert_mod("default", str(disabled), "Albedo", True, None)
    backend = LocalBackend(str(mods_root), store=store)

    backend.resolve_conflict(str(disabled), str(enabled), "keep_disabled")

    assert list(store.mod_index("default")) == [str(enabled)]
    assert store.get_mod("default", str(enabled))["status"] == "ENABLED"

from __future__ import annotations

import pytest

from mod_intake.app.models import CatalogEntity, ScanPreviewItem
from mod_intake.app.review_session import ReviewSession, ReviewTab
from mod_intake.core.scoring import Confidence, MatchLevel


def _item(path, matched=None, confidence=Confidence.NONE, score=0, already=False, disabled=False):
    return ScanPreviewItem(
        folder_path=path,
        display_name=path.rsplit("/", 1)[-1],
        is_disabled=disabled,
        matched_object=matched,
        match_level=MatchLevel.NAME if matched else MatchLevel.UNMATCHED,
        confidence=confidence,
        confidence_score=score,
        already_matched=already,
        object_type="Character" if matched else None,
    )


@pytest.fixture
def session(catalog):
    items = [
        _item("/m/Albedo Skin", "Albedo", Confidence.EXCELLENT, 92),
        _item("/m/Kazuha Hat", "Kazuha", Confidence.MEDIUM, 60),
        _item("/m/Random", None),
        _item("/m/Raiden/Kimono", "Raiden Shogun", Confidence.HIGH, 80, already=True),
        _item("/m/Other", None),
    ]
    return ReviewSession(items, catalog, score_fn=lambda folder, names: {n: 0 for n in names})


def test_every_item_is_in_exactly_one_tab(session):
    session.set_skip("/m/Other")
    counts = session.tab_counts()
    assert counts[ReviewTab.ALL] == 5
    assert counts[ReviewTab.MATCHED] == 2
    assert counts[ReviewTab.UNMATCHED] == 1
    assert counts[ReviewTab.EXISTING] == 1
    assert counts[ReviewTab.SKIPPED] == 1
    assert sum(v for k, v in counts.items() if k != ReviewTab.ALL) == counts[ReviewTab.ALL]


def test_override_moves_item_to_matched_as_manual(session, catalog):
    session.set_override("/m/Random", catalog[2])
    item = session.item("/m/Random")
    assert session.tab_of(item) == ReviewTab.MATCHED
    assert session.confidence_of(item) == Confidence.MANUAL
    assert [i.folder_path for i in session.items_in(ReviewTab.MATCHED, Confidence.MANUAL)] == ["/m/Random"]
    assert session.chip_counts()[Confidence.MANUAL] == 1

    session.set_override("/m/Random", None)
    assert session.tab_of(item) == ReviewTab.UNMATCHED


def test_chip_only_narrows_matched_tab(session):
    assert [i.folder_path for i in session.items_in(ReviewTab.MATCHED, Confidence.EXCELLENT)] == ["/m/Albedo Skin"]
    assert len(session.items_in(ReviewTab.ALL, Confidence.EXCELLENT)) == 5


def test_query_searches_names_and_matches(session):
    assert [i.folder_path for i in session.items_in(query="kazuha")] == ["/m/Kazuha Hat"]
    session.rename("/m/Random", "Gorou Ears")
    assert [i.folder_path for i in session.items_in(query="gorou")] == ["/m/Random"]


def test_bulk_skip_clears_selection(session):
    session.select_all(ReviewTab.MATCHED)
    assert session.selected == {"/m/Albedo Skin", "/m/Kazuha Hat"}
    assert session.skip_selected() == 2
    assert session.selected == set()
    assert session.tab_counts()[ReviewTab.SKIPPED] == 2


def test_toggle_select_and_skip(session):
    session.toggle_select("/m/Random")
    session.toggle_select("/m/Random")
    assert session.selected == set()
    session.select_all()
    session.clear_selection()
    assert session.selected == set()
    assert session.toggle_skip("/m/Random") is True
    assert session.toggle_skip("/m/Random") is False


def test_decline_visible(session):
    assert session.decline_visible(ReviewTab.UNMATCHED) == 2
    assert session.items_in(ReviewTab.UNMATCHED) == []


def test_rename_sanitizes_and_resets(session):
    session.rename("/m/Random", "A/B")
    assert session.display_name(session.item("/m/Random")) == "A_B"
    session.rename("/m/Random", "Random")
    assert "/m/Random" not in session.renames


def test_confirmed_items_carry_overrides_skips_and_renames(session, catalog):
    session.set_override("/m/Kazuha Hat", catalog[0])
    session.set_skip("/m/Other")
    session.rename("/m/Albedo Skin", "Albedo Beach")

    confirmed = {c.folder_path: c for c in session.confirmed_items()}

    assert confirmed["/m/Kazuha Hat"].matched_object == "Albedo"
    assert confirmed["/m/Kazuha Hat"].tags == ("geo",)
    assert confirmed["/m/Other"].skip is True
    assert confirmed["/m/Albedo Skin"].display_name == "Albedo Beach"
    assert confirmed["/m/Random"].matched_object is None


def test_unknown_path_raises(session):
    with pytest.raises(KeyError):
        session.set_skip("/m/missing")


def test_retain_keeps_only_failed_items(session):
    session.set_skip("/m/Other")
    session.set_override("/m/Random", CatalogEntity("Albedo"))
    session.retain(["/m/Random"])
    assert [i.folder_path for i in session.items] == ["/m/Random"]
    assert session.skips == {}
    assert "/m/Random" in session.overrides


def test_close_cancels_open_searches(session):
    search = session.open_override_search("/m/Random")
    session.close()
    assert search.closed
    assert session.closed


def test_move_from_temp_flag(catalog):
    items = [_item("/t/ModA"), _item("/t/ModB")]
    session = ReviewSession(items, catalog, move_from_temp=["/t/ModA/"])
    flags = {c.folder_path: c.move_from_temp for c in session.confirmed_items()}
    assert flags == {"/t/ModA": True, "/t/ModB": False}

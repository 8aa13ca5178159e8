from __future__ import annotations

from mod_intake.app.pre_drop import PRE_DROP_ACCEPT_THRESHOLD, decide, PreDropValidator


def _scores(table):
    calls = []

    def score_fn(folder, names):
        calls.append((folder, list(names)))
        return {n: table.get(n, 0) for n in names}

    return score_fn, calls


def test_target_above_threshold_is_accepted_silently(catalog, tmp_path):
    folder = tmp_path / "Kimono"
    folder.mkdir()
    score_fn, _ = _scores({"Raiden Shogun": 51, "Albedo": 90})
    validator = PreDropValidator(score_fn, catalog)

    decision = validator.validate([str(folder)], "Raiden Shogun")

    assert decision.accept is True
    assert decision.warn is False
    assert decision.target_score == 51


def test_threshold_is_exclusive():
    decision = decide("Albedo", {"Albedo": PRE_DROP_ACCEPT_THRESHOLD, "Kazuha": 80})
    assert decision.accept is False
    assert decision.suggestion is not None
    assert decision.suggestion.name == "Kazuha"
    assert decision.suggestion.score == 80


def test_low_target_warns_with_best_suggestion(catalog, tmp_path):
    folder = tmp_path / "AlbedoSkin"
    folder.mkdir()
    score_fn, calls = _scores({"Raiden Shogun": 20, "Albedo": 90, "Kazuha": 40})
    validator = PreDropValidator(score_fn, catalog)

    decision = validator.validate([str(folder)], "Raiden Shogun")

    assert decision.warn
    assert decision.target_score == 20
    assert decision.suggestion.name == "Albedo"
    assert calls[0][0] == str(folder)
    assert "Raiden Shogun" in calls[0][1]


def test_suggestion_ties_break_by_name():
    decision = decide("X", {"beta": 70, "Alpha": 70, "X": 10})
    assert decision.suggestion.name == "Alpha"


def test_unknown_target_is_scored_too(catalog, tmp_path):
    folder = tmp_path / "Mod"
    folder.mkdir()
    score_fn, calls = _scores({})
    PreDropValidator(score_fn, catalog).validate([str(folder)], "Brand New")
    assert "Brand New" in calls[0][1]


def test_scoring_failure_fails_open(catalog, tmp_path):
    folder = tmp_path / "Mod"
    folder.mkdir()

    def broken(folder, names):
        raise RuntimeError("backend down")

    decision = PreDropValidator(broken, catalog).validate([str(folder)], "Albedo")
    assert decision.accept is True
    assert decision.scored is False


def test_no_folders_or_skip_validation_accepts_without_scoring(catalog, tmp_path):
    score_fn, calls = _scores({})
    validator = PreDropValidator(score_fn, catalog)
    archive = tmp_path / "a.zip"
    archive.write_bytes(b"")

    assert validator.validate([str(archive)], "Albedo").accept

    folder = tmp_path / "Mod"
    folder.mkdir()
    validator.skip_validation = True
    assert validator.validate([str(folder)], "Albedo").accept
    assert calls == []

"""Local scoring service: folder -> candidate entity scores.

Scores combine several signals, the strongest wins:

- name: the folder's display name equals or contains the entity name
- token: partial overlap between folder-name tokens and entity tokens
- content: entity tokens found in subfolder names, file stems or ini
  section headers inside the folder
- fuzzy: ``fuzz.token_set_ratio`` on the display names as a fallback

The result is deterministic for an unchanged folder tree.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from fuzzywuzzy import fuzz

from .naming import normalize_display_name, preprocess_text
from .walker import scan_folder_content
from ..exceptions import ScoringError

logger = logging.getLogger(__name__)

AUTO_MATCH_MIN_SCORE = 30
INI_READ_LIMIT = 64 * 1024
MIN_CONTENT_TOKEN_LEN = 3

_SECTION_RE = re.compile(r"^\s*\[([^\]\r\n]+)\]", re.MULTILINE)
_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_SECTION_NOISE = frozenset({
    "textureoverride", "shaderoverride", "resource", "commandlist", "constants",
    "present", "key", "texture", "override", "vb", "ib", "blend", "position",
})


class MatchLevel(str, Enum):
    NAME = "name"
    TOKEN = "token"
    CONTENT = "content"
    AI = "ai"
    FUZZY = "fuzzy"
    UNMATCHED = "unmatched"


class Confidence(str, Enum):
    EXCELLENT = "Excellent"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    NONE = "None"
    MANUAL = "Manual"


_TIERS: Tuple[Tuple[int, Confidence], ...] = (
    (90, Confidence.EXCELLENT),
    (75, Confidence.HIGH),
    (55, Confidence.MEDIUM),
    (AUTO_MATCH_MIN_SCORE, Confidence.LOW),
)


def confidence_for_score(score: float, floor: int = AUTO_MATCH_MIN_SCORE) -> Confidence:
    """Map a 0-100 score to its tier. ``Manual`` is never returned here."""
    if score < floor:
        return Confidence.NONE
    for threshold, tier in _TIERS:
        if score >= threshold:
            return tier
    return Confidence.LOW


@dataclass(frozen=True)
class CandidateScore:
    name: str
    score: int
    level: MatchLevel
    detail: str = ""


@dataclass
class FolderSignals:
    display_name: str
    name_tokens: Set[str] = field(default_factory=set)
    content_tokens: Set[str] = field(default_factory=set)


def _split_camel(text: str) -> str:
    return _CAMEL_RE.sub(" ", text)


def _section_tokens(ini_path: Path) -> Set[str]:
    try:
        with open(ini_path, "r", encoding="utf-8", errors="ignore") as handle:
            text = handle.read(INI_READ_LIMIT)
    except OSError as exc:
        logger.debug("Cannot read %s: %s", ini_path, exc)
        return set()
    tokens: Set[str] = set()
    for header in _SECTION_RE.findall(text):
        tokens |= preprocess_text(_split_camel(header))
    return tokens - _SECTION_NOISE


def collect_signals(folder_path: str | Path) -> FolderSignals:
    folder = Path(folder_path)
    display = normalize_display_name(folder.name)
    signals = FolderSignals(display_name=display, name_tokens=preprocess_text(_split_camel(display)))

    if not folder.is_dir():
        return signals

    content = scan_folder_content(folder)
    for name in content.subfolder_names:
        signals.content_tokens |= preprocess_text(_split_camel(normalize_display_name(name)))
    for name in content.file_names:
        signals.content_tokens |= preprocess_text(_split_camel(Path(name).stem))
    for ini in content.ini_files:
        signals.content_tokens |= _section_tokens(ini)
    signals.content_tokens = {t for t in signals.content_tokens if len(t) >= MIN_CONTENT_TOKEN_LEN}
    return signals


def score_against(signals: FolderSignals, candidate: str) -> CandidateScore:
    cand_tokens = preprocess_text(candidate)
    if not cand_tokens:
        return CandidateScore(candidate, 0, MatchLevel.UNMATCHED)

    display = signals.display_name.casefold()
    if display == candidate.strip().casefold():
        return CandidateScore(candidate, 100, MatchLevel.NAME, "Folder name equals entity name")
    if cand_tokens <= signals.name_tokens:
        return CandidateScore(candidate, 92, MatchLevel.NAME, "Entity name found in folder name")

    best = CandidateScore(candidate, 0, MatchLevel.UNMATCHED)

    overlap = cand_tokens & signals.name_tokens
    if overlap:
        ratio = len(overlap) / len(cand_tokens)
        score = 55 + int(30 * ratio)
        best = CandidateScore(candidate, score, MatchLevel.TOKEN,
                              f"Name tokens: {', '.join(sorted(overlap))}")

    strong = {t for t in cand_tokens if len(t) >= MIN_CONTENT_TOKEN_LEN}
    hits = strong & signals.content_tokens
    if strong and hits:
        ratio = len(hits) / len(strong)
        score = 78 if ratio == 1.0 else 40 + int(30 * ratio)
        if score > best.score:
            best = CandidateScore(candidate, score, MatchLevel.CONTENT,
                                  f"Content tokens: {', '.join(sorted(hits))}")

    fuzzy = fuzz.token_set_ratio(signals.display_name, candidate)
    fuzzy_score = int(fuzzy * 0.8) if fuzzy >= 60 else int(fuzzy * 0.4)
    if fuzzy_score > best.score:
        best = CandidateScore(candidate, fuzzy_score, MatchLevel.FUZZY, f"Fuzzy similarity {fuzzy}%")

    return best


def rank(scores: Iterable[CandidateScore]) -> List[CandidateScore]:
    """Highest score first, then by name."""
    return sorted(scores, key=lambda s: (-s.score, s.name.casefold()))


class ScoringService:
    """Local scoring collaborator."""

    def __init__(self, auto_match_min_score: int = AUTO_MATCH_MIN_SCORE):
        self.auto_match_min_score = auto_match_min_score

    def score_detailed(self, folder_path: str | Path, candidate_names: Sequence[str]) -> List[CandidateScore]:
        try:
            signals = collect_signals(folder_path)
        except OSError as exc:
            raise ScoringError(f"Cannot read folder: {exc}", str(folder_path)) from exc
        results = rank(score_against(signals, name) for name in candidate_names)
        logger.debug("Scored %s against %d candidates", folder_path, len(results))
        return results

    def score_candidates(self, folder_path: str | Path, candidate_names: Sequence[str]) -> Dict[str, int]:
        return {s.name: s.score for s in self.score_detailed(folder_path, candidate_names)}

    def best_match(self, folder_path: str | Path,
                   candidate_names: Sequence[str]) -> Tuple[Optional[CandidateScore], List[CandidateScore]]:
        ranked = self.score_detailed(folder_path, candidate_names)
        if ranked and ranked[0].score >= self.auto_match_min_score:
            return ranked[0], ranked
        return None, ranked

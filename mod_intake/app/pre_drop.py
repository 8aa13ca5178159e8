"""Advisory validation before a folder is dropped onto a specific entity."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Sequence

from .models import CatalogEntity
from ..core.classifier import ClassifiedPaths, classify_dropped_paths
from ..utils.result import Err, Result, capture, error_message

logger = logging.getLogger(__name__)

# Fixed policy: a hovered target scoring above this is accepted silently.
PRE_DROP_ACCEPT_THRESHOLD = 50

ScoreFunction = Callable[[str, Sequence[str]], Dict[str, int]]


@dataclass(frozen=True)
class DropSuggestion:
    name: str
    score: int


@dataclass(frozen=True)
class PreDropDecision:
    accept: bool
    target: Optional[str] = None
    target_score: Optional[int] = None
    suggestion: Optional[DropSuggestion] = None
    scored: bool = False
    reason: str = ""

    @property
    def warn(self) -> bool:
        return not self.accept


def _safe_score(score_fn: ScoreFunction, folder: str, names: Sequence[str]) -> Result[Dict[str, int]]:
    return capture(lambda: dict(score_fn(folder, names)))


def decide(target: str, scores: Dict[str, int]) -> PreDropDecision:
    """Pure decision over an already computed score table."""
    target_score = int(scores.get(target, 0))
    if target_score > PRE_DROP_ACCEPT_THRESHOLD:
        return PreDropDecision(accept=True, target=target, target_score=target_score, scored=True,
                               reason="target above threshold")
    if scores:
        best_name = min(scores, key=lambda n: (-scores[n], n.casefold()))
        suggestion = DropSuggestion(best_name, int(scores[best_name]))
    else:
        suggestion = None
    return PreDropDecision(accept=False, target=target, target_score=target_score,
                           suggestion=suggestion, scored=True, reason="target at or below threshold")


class PreDropValidator:
    def __init__(self, score_fn: ScoreFunction, catalog: Iterable[CatalogEntity] = ()):
        self.score_fn = score_fn
        self.catalog = list(catalog)
        # "Skip validation next time" is remembered for the session only.
        self.skip_validation = False

    def validate(self, paths: Sequence[str], hovered: str,
                 classified: Optional[ClassifiedPaths] = None) -> PreDropDecision:
        if self.skip_validation:
            return PreDropDecision(accept=True, target=hovered, reason="validation skipped")

        classified = classified or classify_dropped_paths(paths)
        if not classified.folders:
            return PreDropDecision(accept=True, target=hovered, reason="no folders to score")

        names = [e.name for e in self.catalog]
        if hovered not in names:
            names.append(hovered)

        folder = classified.folders[0]
        result = _safe_score(self.score_fn, folder, names)
        if isinstance(result, Err):
            logger.warning("Pre-drop scoring failed for %s, accepting: %s", folder, error_message(result))
            return PreDropDecision(accept=True, target=hovered, reason="scoring unavailable")

        decision = decide(hovered, result.value)
        logger.debug("Pre-drop %s -> %s: %s (%s)", folder, hovered, decision.accept, decision.target_score)
        return decision

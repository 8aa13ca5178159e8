"""Scan pipeline state machine (minimal FSM)."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Set


class PipelineState(str, Enum):
    IDLE = "idle"
    DETECTING_ARCHIVES = "detecting_archives"
    AWAITING_ARCHIVE_CHOICE = "awaiting_archive_choice"
    SCANNING = "scanning"
    REVIEWING = "reviewing"
    COMMITTING = "committing"
    CANCELLED = "cancelled"
    ERROR = "error"


_ALLOWED: Dict[PipelineState, Set[PipelineState]] = {
    # Drop imports go straight to SCANNING over an explicit folder subset.
    PipelineState.IDLE: {PipelineState.DETECTING_ARCHIVES, PipelineState.SCANNING, PipelineState.ERROR},
    PipelineState.DETECTING_ARCHIVES: {
        PipelineState.AWAITING_ARCHIVE_CHOICE, PipelineState.SCANNING, PipelineState.ERROR,
    },
    PipelineState.AWAITING_ARCHIVE_CHOICE: {PipelineState.SCANNING, PipelineState.IDLE, PipelineState.ERROR},
    PipelineState.SCANNING: {PipelineState.REVIEWING, PipelineState.CANCELLED, PipelineState.ERROR},
    PipelineState.REVIEWING: {PipelineState.COMMITTING, PipelineState.IDLE},
    PipelineState.COMMITTING: {PipelineState.IDLE, PipelineState.REVIEWING},
    PipelineState.CANCELLED: {PipelineState.IDLE},
    PipelineState.ERROR: {PipelineState.IDLE},
}

BUSY_STATES = frozenset({PipelineState.SCANNING, PipelineState.COMMITTING})


@dataclass
class PipelineStateMachine:
    state: PipelineState = PipelineState.IDLE

    def can_transition(self, target: PipelineState) -> bool:
        return target in _ALLOWED.get(self.state, set())

    def transition(self, target: PipelineState) -> bool:
        if self.can_transition(target):
            self.state = target
            return True
        return False

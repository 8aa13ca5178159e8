"""Pure drag-and-drop reducer.

``reduce(event, state, resolver)`` returns the next state and the side
effects the boundary should run (tooltip updates, the drop import). The
reducer itself never touches the filesystem or the backend.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Tuple, Union

from .drop_zones import DropZone, DropZoneResolver


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DragEnter:
    paths: Tuple[str, ...]


@dataclass(frozen=True)
class DragMove:
    x: float
    y: float
    hovered_entity: Optional[str] = None


@dataclass(frozen=True)
class DragLeave:
    pass


@dataclass(frozen=True)
class DropEvent:
    x: float
    y: float
    hovered_entity: Optional[str] = None


DragEvent = Union[DragEnter, DragMove, DragLeave, DropEvent]


# ---------------------------------------------------------------------------
# Side effects
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ShowZoneHint:
    zone: DropZone
    x: float
    y: float
    label: str


@dataclass(frozen=True)
class HideZoneHint:
    pass


@dataclass(frozen=True)
class RunDropImport:
    zone: DropZone
    paths: Tuple[str, ...]
    target: Optional[str] = None


SideEffect = Union[ShowZoneHint, HideZoneHint, RunDropImport]


@dataclass(frozen=True)
class DragState:
    active: bool = False
    paths: Tuple[str, ...] = ()
    zone: DropZone = DropZone.NONE
    hovered_entity: Optional[str] = None


IDLE_DRAG = DragState()


def zone_label(zone: DropZone, hovered: Optional[str]) -> str:
    if zone == DropZone.AUTO_ORGANIZE:
        return "Auto organize"
    if zone == DropZone.NEW_OBJECT:
        return "Add as new object"
    if zone == DropZone.ITEM:
        return f"Move to {hovered}" if hovered else "Drop on an item"
    return ""


def reduce(event: DragEvent, state: DragState,
           resolver: DropZoneResolver) -> Tuple[DragState, Tuple[SideEffect, ...]]:
    if isinstance(event, DragEnter):
        return DragState(active=True, paths=tuple(event.paths)), ()

    if isinstance(event, DragLeave):
        return IDLE_DRAG, (HideZoneHint(),) if state.active else ()

    if not state.active:
        return state, ()

    zone = resolver.resolve(event.x, event.y)
    hovered = event.hovered_entity if zone == DropZone.ITEM else None

    if isinstance(event, DragMove):
        if zone == state.zone and hovered == state.hovered_entity:
            return state, ()
        next_state = replace(state, zone=zone, hovered_entity=hovered)
        if zone == DropZone.NONE:
            return next_state, (HideZoneHint(),)
        return next_state, (ShowZoneHint(zone, event.x, event.y, zone_label(zone, hovered)),)

    # DropEvent
    effects: Tuple[SideEffect, ...] = (HideZoneHint(),)
    if zone == DropZone.NONE or (zone == DropZone.ITEM and not hovered):
        return IDLE_DRAG, effects
    return IDLE_DRAG, effects + (RunDropImport(zone, state.paths, hovered),)

"""Single fan-out point for cache invalidation after mutations."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, List, Optional, Set, Tuple

from .models import ResourceId

logger = logging.getLogger(__name__)

InvalidationListener = Callable[[Tuple[ResourceId, ...]], None]


class InvalidationDispatcher:
    """Mutations return the resource ids they touched; this forwards them.

    Each dispatch is deduplicated and delivered in first-seen order. A
    failing listener is logged and does not stop the others.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: List[Tuple[InvalidationListener, Optional[Set[ResourceId]]]] = []
        self.history: List[Tuple[ResourceId, ...]] = []

    def subscribe(self, listener: InvalidationListener,
                  resources: Optional[Iterable[ResourceId]] = None) -> Callable[[], None]:
        """Register ``listener``; returns a function that unsubscribes it."""
        entry = (listener, set(resources) if resources is not None else None)
        with self._lock:
            self._listeners.append(entry)

        def unsubscribe() -> None:
            with self._lock:
                if entry in self._listeners:
                    self._listeners.remove(entry)

        return unsubscribe

    def dispatch(self, resources: Iterable[ResourceId]) -> Tuple[ResourceId, ...]:
        unique = tuple(dict.fromkeys(ResourceId(r) for r in resources))
        if not unique:
            return unique
        with self._lock:
            listeners = list(self._listeners)
            self.history.append(unique)
        logger.debug("Invalidating %s", ", ".join(r.value for r in unique))
        for listener, wanted in listeners:
            selected = unique if wanted is None else tuple(r for r in unique if r in wanted)
            if not selected:
                continue
            try:
                listener(selected)
            except Exception as exc:
                logger.warning("Invalidation listener failed: %s", exc)
        return unique

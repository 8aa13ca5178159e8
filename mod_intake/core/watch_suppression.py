"""Suppression of filesystem-watcher notifications during bulk operations."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional

logger = logging.getLogger(__name__)

SuppressionListener = Callable[[bool], None]


class WatcherSuppressor:
    """Nested suppression counter.

    The watcher is told ``True`` when the first bracket opens and ``False``
    when the last one closes. Listener failures are logged and ignored.
    """

    def __init__(self, listener: Optional[SuppressionListener] = None):
        self._lock = threading.Lock()
        self._depth = 0
        self._listeners: List[SuppressionListener] = []
        if listener is not None:
            self._listeners.append(listener)

    def add_listener(self, listener: SuppressionListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    @property
    def is_suppressed(self) -> bool:
        return self._depth > 0

    def _notify(self, value: bool) -> None:
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception as exc:  # best-effort
                logger.warning("Watcher suppression listener failed: %s", exc)

    def set_suppressed(self, value: bool) -> None:
        with self._lock:
            if value:
                self._depth += 1
                changed = self._depth == 1
            else:
                if self._depth == 0:
                    return
                self._depth -= 1
                changed = self._depth == 0
        if changed:
            logger.debug("Watcher suppression %s", "on" if value else "off")
            self._notify(value)

    @contextmanager
    def suppressed(self) -> Iterator[None]:
        self.set_suppressed(True)
        try:
            yield
        finally:
            self.set_suppressed(False)

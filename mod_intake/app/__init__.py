"""App-level APIs.

Controllers and session objects a GUI or CLI drives. The UI talks to the
``api`` module only, never to core or database internals.
"""

from . import api

__all__ = ["api"]

"""SQLite persistence for mods and catalog entities."""

from .mod_store import ModStore, load_catalog_file, parse_catalog

__all__ = ["ModStore", "load_catalog_file", "parse_catalog"]

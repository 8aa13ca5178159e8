#!/usr/bin/env python3
# -*-coding: utf-8-*-
"""
Mod Intake - SQLite storage for the entity catalog and mod records.

Entity rows carry names, types and thumbnails; each committed folder gets
one mod row.
"""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import yaml

from ..core.catalog import CatalogEntity
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0"
IN_MEMORY = ":memory:"

STATUS_ENABLED = "ENABLED"
STATUS_DISABLED = "DISABLED"


def load_catalog_file(path: str) -> List[CatalogEntity]:
    """Read a master catalog from YAML or JSON.

    Accepts either a list of entries or a mapping with an ``entities`` list.
    """
    file_path = Path(path)
    try:
        with open(file_path, "r", encoding="utf-8") as handle:
            if file_path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(handle)
            else:
                data = json.load(handle)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot read catalog: {exc}", file_path=str(file_path)) from exc
    return parse_catalog(data)


def parse_catalog(data: Any) -> List[CatalogEntity]:
    if isinstance(data, str):
        data = json.loads(data) if data.strip() else []
    if isinstance(data, dict):
        data = data.get("entities", [])
    if not isinstance(data, list):
        raise ConfigurationError("Catalog must be a list of entries")
    entities = [CatalogEntity.from_dict(entry) for entry in data if isinstance(entry, dict)]
    return [e for e in entities if e.name]


class ModStore:
    """Storage collaborator backing ``commit_scan`` and catalog lookups."""

    def __init__(self, db_path: str = IN_MEMORY):
        self.db_path = db_path
        self._lock = threading.RLock()
        if db_path != IN_MEMORY:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        if db_path != IN_MEMORY:
            self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self._init_schema()

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def _init_schema(self) -> None:
        with self._lock, self.conn:
            exists = self.conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='version'"
            ).fetchone()
            if exists:
                row = self.conn.execute("SELECT version FROM version ORDER BY id DESC LIMIT 1").fetchone()
                if row and row["version"] != SCHEMA_VERSION:
                    logger.warning("Unknown schema version %s (expected %s)", row["version"], SCHEMA_VERSION)
                return
            self.conn.executescript('''
            CREATE TABLE version (
                id INTEGER PRIMARY KEY,
                version TEXT NOT NULL,
                updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            CREATE TABLE entities (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                game_id TEXT NOT NULL,
                name TEXT NOT NULL,
                object_type TEXT NOT NULL DEFAULT 'Other',
                tags TEXT NOT NULL DEFAULT '[]',
                thumbnail_path TEXT,
                metadata TEXT NOT NULL DEFAULT '{}',
                UNIQUE(game_id, name)
            );
            CREATE TABLE mods (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                game_id TEXT NOT NULL,
                folder_path TEXT NOT NULL,
                display_name TEXT NOT NULL,
                status TEXT NOT NULL,
                entity_id INTEGER REFERENCES entities(id) ON DELETE SET NULL,
                updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE(game_id, folder_path)
            );
            CREATE INDEX idx_mods_entity ON mods(entity_id);
            ''')
            self.conn.execute("INSERT INTO version (version) VALUES (?)", (SCHEMA_VERSION,))

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Commit on success, roll back on any exception."""
        with self._lock:
            try:
                yield self.conn
                self.conn.commit()
            except BaseException:
                self.conn.rollback()
                raise

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    @staticmethod
    def _entity_from_row(row: sqlite3.Row) -> CatalogEntity:
        return CatalogEntity(
            id=row["id"],
            name=row["name"],
            object_type=row["object_type"],
            tags=tuple(json.loads(row["tags"] or "[]")),
            thumbnail_path=row["thumbnail_path"],
            metadata=json.loads(row["metadata"] or "{}"),
        )

    def list_entities(self, game_id: str) -> List[CatalogEntity]:
        with self._lock:
            rows = self.conn.execute(
                "SELECT * FROM entities WHERE game_id = ? ORDER BY name COLLATE NOCASE", (game_id,)
            ).fetchall()
        return [self._entity_from_row(r) for r in rows]

    def get_entity(self, game_id: str, name: str) -> Optional[CatalogEntity]:
        with self._lock:
            row = self.conn.execute(
                "SELECT * FROM entities WHERE game_id = ? AND name = ?", (game_id, name)
            ).fetchone()
        return self._entity_from_row(row) if row else None

    def ensure_entity(self, game_id: str, entity: CatalogEntity,
                      conn: Optional[sqlite3.Connection] = None) -> Tuple[int, bool]:
        """Return ``(entity_id, created)`` for ``entity.name`` in ``game_id``."""
        db = conn or self.conn
        row = db.execute(
            "SELECT id FROM entities WHERE game_id = ? AND name = ?", (game_id, entity.name)
        ).fetchone()
        if row:
            return int(row["id"]), False
        cur = db.execute(
            "INSERT INTO entities (game_id, name, object_type, tags, thumbnail_path, metadata) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                game_id,
                entity.name,
                entity.object_type or "Other",
                json.dumps(list(entity.tags)),
                entity.thumbnail_path,
                json.dumps(entity.metadata or {}),
            ),
        )
        return int(cur.lastrowid), True

    def import_catalog(self, game_id: str, entities: Sequence[CatalogEntity]) -> int:
        created = 0
        with self.transaction() as conn:
            for entity in entities:
                _, was_created = self.ensure_entity(game_id, entity, conn)
                created += int(was_created)
        logger.info("Imported catalog for %s: %d new of %d", game_id, created, len(entities))
        return created

    # ------------------------------------------------------------------
    # Mods
    # ------------------------------------------------------------------

    def mod_index(self, game_id: str) -> Dict[str, Optional[str]]:
        """folder_path -> linked entity name (None when the record is unlinked)."""
        with self._lock:
            rows = self.conn.execute(
                "SELECT m.folder_path, e.name AS entity_name FROM mods m "
                "LEFT JOIN entities e ON e.id = m.entity_id WHERE m.game_id = ?",
                (game_id,),
            ).fetchall()
        return {r["folder_path"]: r["entity_name"] for r in rows}

    def get_mod(self, game_id: str, folder_path: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self.conn.execute(
                "SELECT m.*, e.name AS entity_name FROM mods m "
                "LEFT JOIN entities e ON e.id = m.entity_id "
                "WHERE m.game_id = ? AND m.folder_path = ?",
                (game_id, folder_path),
            ).fetchone()
        return dict(row) if row else None

    def upsert_mod(self, game_id: str, folder_path: str, display_name: str, is_disabled: bool,
                   entity_id: Optional[int], conn: Optional[sqlite3.Connection] = None) -> str:
        """Insert or update one mod record. Returns ``new``, ``updated`` or ``unchanged``."""
        db = conn or self.conn
        status = STATUS_DISABLED if is_disabled else STATUS_ENABLED
        row = db.execute(
            "SELECT id, status, entity_id FROM mods WHERE game_id = ? AND folder_path = ?",
            (game_id, folder_path),
        ).fetchone()
        if row is None:
            db.execute(
                "INSERT INTO mods (game_id, folder_path, display_name, status, entity_id) "
                "VALUES (?, ?, ?, ?, ?)",
                (game_id, folder_path, display_name, status, entity_id),
            )
            return "new"
        db.execute(
            "UPDATE mods SET display_name = ?, status = ?, entity_id = ?, updated = CURRENT_TIMESTAMP "
            "WHERE id = ?",
            (display_name, status, entity_id, row["id"]),
        )
        return "updated" if row["status"] != status else "unchanged"

    def delete_mods(self, game_id: str, folder_paths: Sequence[str]) -> int:
        if not folder_paths:
            return 0
        with self.transaction() as conn:
            deleted = 0
            for path in folder_paths:
                cur = conn.execute(
                    "DELETE FROM mods WHERE game_id = ? AND folder_path = ?", (game_id, path)
                )
                deleted += cur.rowcount
        return deleted

    def rename_mod_path(self, game_id: str, old_path: str, new_path: str,
                        is_disabled: Optional[bool] = None) -> None:
        with self.transaction() as conn:
            conn.execute(
                "UPDATE mods SET folder_path = ?, updated = CURRENT_TIMESTAMP "
                "WHERE game_id = ? AND folder_path = ?",
                (new_path, game_id, old_path),
            )
            if is_disabled is not None:
                conn.execute(
                    "UPDATE mods SET status = ? WHERE game_id = ? AND folder_path = ?",
                    (STATUS_DISABLED if is_disabled else STATUS_ENABLED, game_id, new_path),
                )

    def count_mods(self, game_id: str) -> int:
        with self._lock:
            row = self.conn.execute("SELECT COUNT(*) AS n FROM mods WHERE game_id = ?", (game_id,)).fetchone()
        return int(row["n"])

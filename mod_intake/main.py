#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Mod Intake - headless command line.

    mod-intake classify PATH...
    mod-intake scan ROOT [--catalog FILE] [--json]
    mod-intake conflicts ROOT
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional, Sequence

from . import __version__
from .app.backend import LocalBackend, to_jsonable
from .app.conflict_controller import detect_conflicts_under
from .app.models import CatalogEntity, ScanPreviewItem
from .config import Config, load_config
from .core.classifier import classify_dropped_paths
from .database.mod_store import load_catalog_file
from .exceptions import BaseError, InvalidPathError
from .logging_config import setup_logging_from_config
from .security.security_utils import is_valid_directory, sanitize_path

logger = logging.getLogger(__name__)


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="mod-intake", description="Mod Intake - mod folder intake pipeline")
    parser.add_argument("--version", action="version", version=f"mod-intake {__version__}")
    parser.add_argument("--config", help="Path to a YAML or JSON config file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_classify = sub.add_parser("classify", help="Classify dropped paths")
    p_classify.add_argument("paths", nargs="+")

    p_scan = sub.add_parser("scan", help="Phase 1 preview of a mod root")
    p_scan.add_argument("root")
    p_scan.add_argument("--catalog", help="YAML or JSON master catalog")
    p_scan.add_argument("--game", help="Game id (defaults to the configured one)")
    p_scan.add_argument("--json", action="store_true", help="Print JSON instead of a table")

    p_conflicts = sub.add_parser("conflicts", help="List enabled/disabled naming conflicts")
    p_conflicts.add_argument("root")
    p_conflicts.add_argument("--json", action="store_true", help="Print JSON")

    return parser.parse_args(argv)


def _require_root(raw: str) -> str:
    root = sanitize_path(raw)
    if not is_valid_directory(root):
        raise InvalidPathError(f"Not a directory: {raw}", raw)
    return root


def _load_catalog(path: Optional[str]) -> List[CatalogEntity]:
    if not path:
        logger.warning("No catalog configured; every folder will be unmatched")
        return []
    return load_catalog_file(path)


def _print_table(items: Sequence[ScanPreviewItem]) -> None:
    rows = [("FOLDER", "MATCH", "CONFIDENCE", "SCORE", "LEVEL")]
    for item in items:
        rows.append((
            item.display_name + (" (disabled)" if item.is_disabled else ""),
            item.matched_object or "-",
            item.confidence.value,
            str(item.confidence_score),
            item.match_level.value,
        ))
    widths = [max(len(row[i]) for row in rows) for i in range(len(rows[0]))]
    for row in rows:
        print("  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip())


def cmd_classify(args: argparse.Namespace) -> int:
    classified = classify_dropped_paths(args.paths)
    print(json.dumps(to_jsonable(classified), indent=2))
    return 0


def cmd_scan(args: argparse.Namespace, cfg: Config) -> int:
    typed = cfg.typed()
    root = _require_root(args.root)
    catalog = _load_catalog(args.catalog or typed.catalog.path)
    backend = LocalBackend.from_config(typed, mods_root=root, game_id=args.game)
    try:
        items = backend.scan_preview(
            backend.game_id,
            root,
            json.dumps([entity.to_dict() for entity in catalog]),
        )
    finally:
        backend.store.close()

    if args.json:
        print(json.dumps([item.to_dict() for item in items], indent=2))
    else:
        _print_table(items)
        matched = sum(1 for item in items if item.matched_object)
        print(f"\n{len(items)} folders, {matched} matched, {len(items) - matched} unmatched")
    return 0


def cmd_conflicts(args: argparse.Namespace) -> int:
    conflicts = detect_conflicts_under(_require_root(args.root))
    if args.json:
        print(json.dumps(to_jsonable(conflicts), indent=2))
        return 0
    if not conflicts:
        print("No naming conflicts found.")
        return 0
    for conflict in conflicts:
        print(f"{conflict.base_name}: {conflict.attempted_target} <-> {conflict.existing_path}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_arguments(argv)
    cfg = load_config(args.config)
    setup_logging_from_config(cfg)
    if args.debug:
        logging.getLogger("mod_intake").setLevel(logging.DEBUG)

    try:
        if args.command == "classify":
            return cmd_classify(args)
        if args.command == "scan":
            return cmd_scan(args, cfg)
        return cmd_conflicts(args)
    except BaseError as exc:
        logger.error("%s failed: %s", args.command, exc.to_dict())
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

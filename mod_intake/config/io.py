"""Config I/O utilities."""

from __future__ import annotations

import json
import os
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from .schema import validate_config_schema
from .models import validate_config

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "MOD_INTAKE_CONFIG"


def get_config_path() -> str:
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        return env_path
    base_dir = Path(__file__).resolve().parents[2]
    for name in ("config.yaml", "config.yml", "config.json"):
        candidate = base_dir / name
        if candidate.exists():
            return str(candidate)
    return str(base_dir / "config.yaml")


def _parse_config_text(path: str, raw: str) -> Any:
    if path.lower().endswith(".json"):
        return json.loads(raw)
    return yaml.safe_load(raw)


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    if config_path is None:
        config_path = get_config_path()
    if not os.path.exists(config_path):
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = _parse_config_text(config_path, f.read())
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as exc:
        logger.warning("Config %s could not be read: %s", config_path, exc)
        return {}

    if not isinstance(data, dict):
        return {}

    ok, error = validate_config_schema(data)
    if not ok:
        logger.warning("Config schema validation failed: %s", error)
    try:
        validate_config(data)
    except ValidationError as exc:
        logger.warning("Config validation failed: %s", exc)
    return data


def save_config(config_data: Dict[str, Any], config_path: Optional[str] = None) -> bool:
    if config_path is None:
        config_path = get_config_path()
    try:
        parent = os.path.dirname(config_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        data = dict(config_data or {})
        with open(config_path, "w", encoding="utf-8") as f:
            if config_path.lower().endswith(".json"):
                json.dump(data, f, indent=2)
            else:
                yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
        return True
    except OSError as exc:
        logger.error("Config %s could not be written: %s", config_path, exc)
        return False

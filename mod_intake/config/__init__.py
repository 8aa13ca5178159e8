#!/usr/bin/env python3
# -*-coding: utf-8-*-
"""Mod Intake - Configuration Package.

A plain dict wrapper (``Config``) for call sites that only need ``get``/``set``
plus typed access through the pydantic ``ConfigModel``.
"""

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .io import get_config_path, load_config as load_config_data, save_config
from .models import ConfigModel, validate_config
from .schema import validate_config_schema

logger = logging.getLogger(__name__)


class Config:
    """Simple configuration wrapper."""

    def __init__(self, config_data: Optional[Dict[str, Any]] = None):
        self.config_data = config_data or {}

    def load_config(self, config_path: Optional[str] = None) -> "Config":
        self.config_data = load_config_data(config_path)
        return self

    def get(self, key, default=None):
        return self.config_data.get(key, default)

    def set(self, key, value) -> None:
        self.config_data[key] = value

    def save(self, config_path: Optional[str] = None) -> bool:
        return save_config(self.config_data, config_path)

    def typed(self) -> ConfigModel:
        """Validated view; falls back to defaults when the data is invalid."""
        try:
            return validate_config(self.config_data)
        except ValidationError as exc:
            logger.warning("Invalid configuration, using defaults: %s", exc)
            return ConfigModel()


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration data into a Config wrapper."""
    return Config(load_config_data(config_path))


__all__ = [
    'Config',
    'ConfigModel',
    'get_config_path',
    'load_config',
    'save_config',
    'validate_config',
    'validate_config_schema',
]

#!/usr/bin/env python3
# -*-coding: utf-8-*-
"""
Logging setup for Mod Intake.

- Coloured console output (colorlog) when attached to a terminal
- Rotating main log plus a warnings-and-above log
- Optional structured JSON lines (MOD_INTAKE_LOG_JSON=1)
"""

import logging
import logging.handlers
import os
import sys
import json
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any
from functools import lru_cache

import colorlog

# =====================================================================================================
# Constants
# =====================================================================================================

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_MAX_LOG_SIZE = "10MB"
DEFAULT_BACKUP_COUNT = 3
ROOT_LOGGER_NAME = "mod_intake"

_CONSOLE_FORMAT = "%(log_color)s[%(asctime)s] %(levelname)-7s%(reset)s [%(name)s] %(message)s"
_FILE_FORMAT = "[{asctime}] {levelname:<7} [{name}] {message}"

# =====================================================================================================
# Formatters
# =====================================================================================================


class JsonFormatter(logging.Formatter):
    """Structured JSON formatter (optional)."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "pathname": record.pathname,
            "lineno": record.lineno,
            "thread": record.threadName,
        }
        details = getattr(record, "details", None)
        if details:
            payload["details"] = details
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _console_formatter(use_json: bool) -> logging.Formatter:
    if use_json:
        return JsonFormatter()
    enable_colors = (hasattr(sys.stderr, 'isatty') and
                     sys.stderr.isatty() and
                     os.environ.get('TERM') != 'dumb')
    return colorlog.ColoredFormatter(
        _CONSOLE_FORMAT,
        datefmt='%H:%M:%S',
        no_color=not enable_colors,
        log_colors={
            'DEBUG': 'blue',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'bold_red',
        },
    )


def _file_formatter(use_json: bool) -> logging.Formatter:
    if use_json:
        return JsonFormatter()
    return logging.Formatter(_FILE_FORMAT, style='{', datefmt='%Y-%m-%d %H:%M:%S')

# =====================================================================================================
# Setup
# =====================================================================================================


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_size_string(size_str: str) -> int:
    """Parse size string into bytes."""
    size_str = str(size_str).upper().strip()

    multipliers = {
        'KB': 1024,
        'MB': 1024 ** 2,
        'GB': 1024 ** 3,
        'B': 1,
    }

    for suffix, multiplier in multipliers.items():
        if size_str.endswith(suffix):
            try:
                number = float(size_str[:-len(suffix)].strip())
                return int(number * multiplier)
            except ValueError:
                continue

    try:
        return int(float(size_str))
    except ValueError:
        return 10 * 1024 * 1024


def setup_logging(
    log_level: str = DEFAULT_LOG_LEVEL,
    log_dir: Optional[str] = None,
    enable_file_logging: bool = True,
    enable_console_logging: bool = True,
    max_log_size: str = DEFAULT_MAX_LOG_SIZE,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    structured_json: Optional[bool] = None,
) -> Dict[str, Any]:
    """Configure the ``mod_intake`` logger tree.

    Handlers are attached to the package logger rather than the root logger so
    that embedding applications keep control of their own logging.
    """

    numeric_level = getattr(logging, str(log_level).upper(), logging.INFO)
    use_json = structured_json if structured_json is not None else _env_bool("MOD_INTAKE_LOG_JSON")

    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(numeric_level)
    package_logger.propagate = False

    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()

    handlers: Dict[str, logging.Handler] = {}

    if enable_console_logging:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(_console_formatter(use_json))
        package_logger.addHandler(console_handler)
        handlers['console'] = console_handler

    log_dir_path = Path(log_dir or "logs")
    if enable_file_logging:
        log_dir_path.mkdir(parents=True, exist_ok=True)
        size_bytes = _parse_size_string(max_log_size)

        main_handler = logging.handlers.RotatingFileHandler(
            str(log_dir_path / "mod_intake.log"),
            maxBytes=size_bytes,
            backupCount=backup_count,
            encoding='utf-8',
        )
        main_handler.setLevel(numeric_level)
        main_handler.setFormatter(_file_formatter(use_json))
        package_logger.addHandler(main_handler)
        handlers['main_file'] = main_handler

        error_handler = logging.handlers.RotatingFileHandler(
            str(log_dir_path / "errors.log"),
            maxBytes=size_bytes // 2,
            backupCount=backup_count,
            encoding='utf-8',
        )
        error_handler.setLevel(logging.WARNING)
        error_handler.setFormatter(_file_formatter(use_json))
        package_logger.addHandler(error_handler)
        handlers['error_file'] = error_handler

    package_logger.debug(
        "Logging initialised (level=%s, file=%s, json=%s)",
        log_level, enable_file_logging, use_json,
    )

    return {
        'logger': package_logger,
        'handlers': handlers,
        'log_dir': log_dir_path,
    }


def setup_logging_from_config(cfg: Any) -> Dict[str, Any]:
    """Configure logging from the ``logging`` section of a Config."""
    section = cfg.get("logging", {}) if cfg is not None else {}
    if not isinstance(section, dict):
        section = {}
    return setup_logging(
        log_level=str(section.get("level") or DEFAULT_LOG_LEVEL),
        log_dir=section.get("dir"),
        enable_file_logging=bool(section.get("file", True)),
        structured_json=section.get("json"),
    )


@lru_cache(maxsize=32)
def get_logger(name: str) -> logging.Logger:
    """Get cached logger instance below the package logger."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def cleanup_logging() -> None:
    """Close and detach all package handlers."""
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in package_logger.handlers[:]:
        handler.close()
        package_logger.removeHandler(handler)


class LoggingTimer:
    """Context manager that logs slow operations."""

    def __init__(self, operation_name: str, logger: Optional[logging.Logger] = None,
                 slow_threshold: float = 1.0):
        self.operation_name = operation_name
        self.logger = logger or get_logger("performance")
        self.slow_threshold = slow_threshold
        self.start_time: Optional[float] = None
        self.duration = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            self.duration = time.perf_counter() - self.start_time
            if self.duration > self.slow_threshold:
                self.logger.warning("SLOW: %s took %.2fs", self.operation_name, self.duration)
            else:
                self.logger.debug("%s took %.3fs", self.operation_name, self.duration)
        return False

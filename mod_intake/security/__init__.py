"""Path and archive safety checks."""

from .security_utils import (
    ensure_inside,
    is_safe_archive_member,
    is_valid_directory,
    sanitize_path,
)

__all__ = ["ensure_inside", "is_safe_archive_member", "is_valid_directory", "sanitize_path"]

#!/usr/bin/env python3
# -*-coding: utf-8-*-
"""
Mod Intake - Consolidated Exception Classes

All exception classes used by the intake pipeline live here so that the
controllers, collaborators and the command line share one hierarchy.
"""

from datetime import datetime
from typing import Dict, Any, Optional


class BaseError(Exception):
    """Base class for all project-specific errors."""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.error_code = error_code or "ERROR"
        self.details = details or {}
        self.timestamp = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        """Converts the exception to a dictionary for structured logging."""
        return {
            'error_code': self.error_code,
            'message': str(self),
            'details': self.details,
            'timestamp': self.timestamp.isoformat()
        }


# =====================================================================================================
# Configuration and path errors
# =====================================================================================================

class ConfigurationError(BaseError):
    """Base class for configuration errors."""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 file_path: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        config_details = details or {}
        if file_path:
            config_details['file_path'] = file_path
        super().__init__(message, error_code or "CONFIG_ERROR", config_details)


class InvalidPathError(BaseError):
    """Raised when path validation fails."""

    def __init__(self, message: str, path: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        path_details = details or {}
        if path:
            path_details['path'] = str(path)
        super().__init__(message, "INVALID_PATH", path_details)


# =====================================================================================================
# Scan errors
# =====================================================================================================

class ScanError(BaseError):
    """Raised when a Phase 1 scan aborts on an I/O problem."""

    def __init__(self, message: str, folder_path: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        scan_details = details or {}
        if folder_path:
            scan_details['folder_path'] = str(folder_path)
        super().__init__(message, "SCAN_ERROR", scan_details)


class ScanCancelled(BaseError):
    """Raised inside a scan run when the cancel token fires.

    Callers treat this as a normal outcome, not as a failure.
    """

    def __init__(self, processed: int = 0, total: int = 0):
        super().__init__(
            f"Scan cancelled after {processed}/{total} folders",
            "SCAN_CANCELLED",
            {'processed': processed, 'total': total},
        )
        self.processed = processed
        self.total = total


# =====================================================================================================
# Archive errors
# =====================================================================================================

class ArchiveError(BaseError):
    """Base class for archive extraction errors."""

    def __init__(self, message: str, archive_path: Optional[str] = None,
                 error_code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        archive_details = details or {}
        if archive_path:
            archive_details['archive_path'] = str(archive_path)
        super().__init__(message, error_code or "ARCHIVE_ERROR", archive_details)
        self.archive_path = archive_path


class ArchivePasswordError(ArchiveError):
    """Raised when an archive needs a password or the given one is wrong."""

    def __init__(self, message: str, archive_path: Optional[str] = None,
                 password_given: bool = False):
        super().__init__(message, archive_path, "ARCHIVE_PASSWORD",
                         {'password_given': password_given})
        self.password_given = password_given


class ArchiveCollisionError(ArchiveError):
    """Raised when extraction would overwrite an existing folder."""

    def __init__(self, message: str, archive_path: Optional[str] = None,
                 target_path: Optional[str] = None):
        super().__init__(message, archive_path, "ARCHIVE_COLLISION",
                         {'target_path': str(target_path) if target_path else None})
        self.target_path = target_path


# =====================================================================================================
# Scoring, commit and conflict errors
# =====================================================================================================

class ScoringError(BaseError):
    """Raised by a scoring collaborator that could not produce scores."""

    def __init__(self, message: str, folder_path: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        scoring_details = details or {}
        if folder_path:
            scoring_details['folder_path'] = str(folder_path)
        super().__init__(message, "SCORING_ERROR", scoring_details)


class CommitError(BaseError):
    """Raised when a Phase 2 commit fails as a whole."""

    def __init__(self, message: str, failed_paths: Optional[list] = None,
                 details: Optional[Dict[str, Any]] = None):
        commit_details = details or {}
        if failed_paths:
            commit_details['failed_paths'] = list(failed_paths)
        super().__init__(message, "COMMIT_ERROR", commit_details)
        self.failed_paths = list(failed_paths or [])


class ConflictResolutionError(BaseError):
    """Raised when an enabled/disabled conflict could not be resolved."""

    def __init__(self, message: str, strategy: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        conflict_details = details or {}
        if strategy:
            conflict_details['strategy'] = strategy
        super().__init__(message, "CONFLICT_ERROR", conflict_details)


# =====================================================================================================
# Pipeline state errors
# =====================================================================================================

class PipelineBusyError(BaseError):
    """Raised when a second scan or commit is requested while one is active."""

    def __init__(self, state: str):
        super().__init__(f"Pipeline busy (state: {state})", "PIPELINE_BUSY", {'state': state})


class InvalidTransitionError(BaseError):
    """Raised when an action is not allowed in the current pipeline state."""

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot move from {current} to {target}",
            "INVALID_TRANSITION",
            {'current': current, 'target': target},
        )

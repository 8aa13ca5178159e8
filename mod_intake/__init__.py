"""Mod Intake - drop, scan, review and commit mod folders."""

__version__ = "1.0.0"

__all__ = ["__version__"]

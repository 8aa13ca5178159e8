"""Filesystem-facing building blocks: naming, walking, archives, scoring."""

"""Toolkit-free UI logic: pipeline states, drop zones and the drag reducer."""

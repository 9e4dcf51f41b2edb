"""Fetch elevation grids from remote services and turn them into rasters."""

from __future__ import annotations

__version__ = "0.1.0"

"""Tooling to scaffold, build, serve, preview and package VC Map plugins."""
from __future__ import annotations

from .cli import main

__version__ = "0.1.0"

__all__ = ["__version__", "main"]

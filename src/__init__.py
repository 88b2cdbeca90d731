# src/__init__.py — v1
"""nutriresolve — content resolution and deduplication engine for food logging."""

from nutriresolve.version import __version__

__all__ = ["__version__"]

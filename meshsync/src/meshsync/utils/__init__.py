"""Expose the public utility surface for meshsync.

What:
  Re-export the structured logging helpers so other packages can write
  ``from meshsync.utils import get_logger`` without knowing the module layout.

Interfaces:
  ``JsonLogger`` and ``get_logger``.
"""

from .logging import JsonLogger, get_logger

__all__ = [
    "JsonLogger",
    "get_logger",
]

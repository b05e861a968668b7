"""Exception hierarchy for the configuration core.

What:
  Name the failure modes callers are expected to handle: a document that
  could only be partially decoded, and a broken default table.

Why:
  I/O problems are surfaced as the original :class:`OSError` so callers can
  branch on ``FileNotFoundError`` and friends. Decode problems still yield a
  usable configuration, so the error carries it instead of discarding it.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .schema import Configuration


class ConfigLoadError(Exception):
    """Base error for configuration parsing or validation failures."""


class ConfigDecodeError(ConfigLoadError):
    """The document was malformed; ``config`` holds what could be recovered.

    What:
      Raised by :func:`meshsync.config.loader.load` after the partially
      decoded document has been migrated and normalised.

    Attributes:
      config: The best-effort :class:`Configuration`.
      problems: Human-readable description of every decode fault.
    """

    def __init__(self, message: str, *, config: Optional["Configuration"] = None, problems: Optional[List[str]] = None):
        super().__init__(message)
        self.config = config
        self.problems = list(problems or [])


class SchemaDefaultError(RuntimeError):
    """A declared default literal cannot be parsed for its field type.

    Only a broken build can trigger this, so it is not a :class:`ConfigLoadError`
    and callers are not expected to recover.
    """

"""meshsync logging helpers emitting one JSON object per line.

What:
  Offer a small facade over Python streams so the configuration core, the
  event bus, and the CLI emit structured log lines with the same fields and
  with credentials scrubbed before they reach the stream.

Why:
  Nodes run unattended and operators grep their logs after a failed upgrade.
  A fixed layout keeps parsing trivial, and the configuration core routinely
  handles GUI passwords and API keys that must never be written out.

How:
  :class:`JsonLogger` holds a target stream and a component label. Extra
  keyword fields are copied through a recursive redaction helper and the
  payload is serialised with :func:`json.dumps` (``default=str`` so device
  identities and paths render as text).

Interfaces:
  :class:`JsonLogger`, :func:`get_logger`.

Invariants & Safety:
  - Every entry carries ``ts``, ``lvl``, ``msg`` and ``component``.
  - ``password``, ``api_key`` and ``apikey`` values become ``[redacted]`` at
    any nesting depth, including inside lists.
  - Streams are flushed after every write.
"""
from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({"password", "api_key", "apikey"})


@dataclass
class JsonLogger:
    """Structured JSON logger with automatic redaction.

    What:
      Emits single-line JSON entries with a timestamp, severity, component tag
      and optional supplemental fields.

    Why:
      Components receive the logger by injection instead of reaching for a
      process-wide default, which keeps tests able to capture output in an
      in-memory stream.

    How:
      :meth:`log` builds the canonical payload, merges redacted extras and
      writes it; :meth:`info`, :meth:`warning` and :meth:`error` are thin
      wrappers.
    """

    stream: Any = field(default_factory=lambda: sys.stderr)
    component: str = "meshsync"

    def log(self, level: str, message: str, *, extra: Optional[Dict[str, Any]] = None) -> None:
        """Emit a structured JSON log entry.

        Args:
          level: Severity such as ``"info"`` or ``"warn"``.
          message: Core log message.
          extra: Optional context dictionary, redacted recursively.
        """

        payload: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "lvl": level.upper(),
            "msg": message,
            "component": self.component,
        }
        if extra:
            payload.update(self._redact(extra))
        self.stream.write(json.dumps(payload, separators=(",", ":"), default=str))
        self.stream.write("\n")
        self.stream.flush()

    def info(self, message: str, **kwargs: Any) -> None:
        self.log("INFO", message, extra=kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log a recoverable problem such as a failed save or a disabled folder."""

        self.log("WARN", message, extra=kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self.log("ERROR", message, extra=kwargs)

    @staticmethod
    def _redact(data: Dict[str, Any]) -> Dict[str, Any]:
        return {key: REDACTED if key in SENSITIVE_KEYS else _scrub(value) for key, value in data.items()}


def _scrub(value: Any) -> Any:
    if isinstance(value, dict):
        return JsonLogger._redact(value)
    if isinstance(value, (list, tuple)):
        return [_scrub(item) for item in value]
    return value


def get_logger(component: str) -> JsonLogger:
    """Construct a :class:`JsonLogger` bound to ``component`` on ``stderr``.

    What:
      Returns a ready-to-use logger for the given subsystem label.

    Why:
      Call sites that were not handed a logger fall back to this factory so
      the default stream and redaction rules live in one place.

    Args:
      component: Logical subsystem name included in every payload.

    Returns:
      Configured :class:`JsonLogger` instance.
    """

    return JsonLogger(component=component)

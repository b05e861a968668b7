"""Loading, creating and atomically saving node configuration files.

What:
  Provide the persistence gateway of the configuration core: locate the
  configuration file, build a fresh configuration, load and upgrade an
  existing one, and write it back without ever exposing a half-written file.

Why:
  The configuration file is the only durable state a node has about its
  folders and peers. A crash during save must leave the previous file
  intact, and a damaged file should still yield everything that can be
  recovered from it instead of nothing.

How:
  - :func:`new` applies declared defaults and runs the normaliser.
  - :func:`load` reads the file, decodes it best-effort with
    :mod:`meshsync.config.codec`, upgrades it with
    :func:`meshsync.config.migrations.migrate`, builds the pydantic models on
    top of defaulted records, and normalises. Decode faults surface as
    :class:`ConfigDecodeError` carrying the recovered configuration.
  - :func:`save` writes ``<location>.tmp`` next to the target, replaces the
    target with :func:`os.replace`, then publishes
    :attr:`EventType.CONFIG_SAVED`.

Interfaces:
  :func:`new`, :func:`load`, :func:`save`, :func:`resolve_config_path`.

Invariants:
  - OS errors from reading or writing are logged as warnings and re-raised
    unchanged.
  - The real file is only ever touched by the final rename.
  - A field whose value does not parse falls back to its default and is
    reported as a decode problem; a device or membership edge with an
    unparseable identity is dropped and reported.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..events import EventType, Publisher, default_bus
from ..protocol.device_id import DeviceID
from ..utils.logging import JsonLogger, get_logger
from . import codec
from .defaults import apply_defaults
from .errors import ConfigDecodeError
from .migrations import migrate
from .prepare import prepare
from .schema import (
    Configuration,
    DeviceConfiguration,
    FolderConfiguration,
    FolderDeviceConfiguration,
    GUIConfiguration,
    OptionsConfiguration,
    VersioningConfiguration,
)


RecordT = TypeVar("RecordT", bound=BaseModel)

_CONFIG_ENV = "MESHSYNC_CONFIG_PATH"
_DEFAULT_LOCATIONS = (
    Path("config.xml"),
    Path("~/.config/meshsync/config.xml"),
)
TEMP_SUFFIX = ".tmp"


def _candidate_paths(path: Optional[Path]) -> Iterable[Path]:
    seen: set[Path] = set()
    env_path = os.environ.get(_CONFIG_ENV)
    ordered = [path, Path(env_path) if env_path else None, *_DEFAULT_LOCATIONS]
    for candidate in ordered:
        if candidate is None:
            continue
        candidate = candidate.expanduser()
        if candidate not in seen:
            seen.add(candidate)
            yield candidate


def resolve_config_path(path: Optional[Path | str] = None) -> Path:
    """Pick the configuration file to use.

    What:
      Return the first existing candidate among the explicit ``path``, the
      ``MESHSYNC_CONFIG_PATH`` environment variable and the default
      locations; when none exists, return the most specific candidate so a
      new file can be created there.

    Args:
      path: Explicit location requested by the caller, or ``None``.

    Returns:
      The selected :class:`~pathlib.Path`.
    """

    requested = Path(path) if isinstance(path, (str, Path)) else None
    candidates = list(_candidate_paths(requested))
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return candidates[0]


def _describe(context: str, error: Dict[str, Any]) -> str:
    loc = ".".join(str(part) for part in error.get("loc", ()))
    return f"{context}: {loc}: {error.get('msg', 'invalid value')}"


def _validate(
    model: Type[RecordT],
    data: Dict[str, Any],
    fallback: Dict[str, Any],
    problems: List[str],
    context: str,
) -> Optional[RecordT]:
    """Validate ``data``; on failure retry with offending fields reset from ``fallback``."""

    try:
        return model.model_validate(data)
    except ValidationError as exc:
        errors = exc.errors()
    problems.extend(_describe(context, error) for error in errors)
    bad = {str(error["loc"][0]) for error in errors if error.get("loc")}
    repaired = dict(data)
    for name, info in model.model_fields.items():
        alias = info.alias or name
        if name in bad or alias in bad:
            repaired.pop(alias, None)
            repaired.pop(name, None)
            if alias in fallback:
                repaired[alias] = fallback[alias]
    try:
        return model.model_validate(repaired)
    except ValidationError:
        return None


def _record(model: Type[RecordT], payload: Optional[Dict[str, Any]], problems: List[str], context: str) -> RecordT:
    base = apply_defaults(model())
    if not payload:
        return base
    fallback = base.model_dump(by_alias=True)
    record = _validate(model, {**fallback, **payload}, fallback, problems, context)
    return record if record is not None else base


def _edges(raw_edges: List[Dict[str, Any]], problems: List[str], context: str) -> List[FolderDeviceConfiguration]:
    edges = []
    for raw in raw_edges:
        edge = _validate(FolderDeviceConfiguration, raw, {}, problems, context)
        if edge is not None:
            edges.append(edge)
    return edges


def _folder(raw: Dict[str, Any], problems: List[str]) -> FolderConfiguration:
    raw = dict(raw)
    context = f"folder {raw.get('id', '')!r}"
    edges = _edges(raw.pop("device", None) or [], problems, context)
    versioning = _record(VersioningConfiguration, raw.pop("versioning", None), problems, context)
    folder = _record(FolderConfiguration, raw, problems, context)
    folder.devices = edges
    folder.versioning = versioning
    return folder


def _devices(raw_devices: List[Dict[str, Any]], problems: List[str]) -> List[DeviceConfiguration]:
    devices = []
    for raw in raw_devices:
        device = _validate(DeviceConfiguration, raw, {}, problems, f"device {raw.get('id', '')!r}")
        if device is not None:
            devices.append(device)
    return devices


def _version(document: Dict[str, Any], default: int, problems: List[str]) -> int:
    raw = document.get("version")
    if raw is None or isinstance(raw, int):
        return default if raw is None else raw
    try:
        return int(str(raw).strip())
    except ValueError:
        problems.append(f"configuration: version: {raw!r} is not an integer")
        return default


def _from_document(
    location: str,
    document: Dict[str, Any],
    problems: List[str],
    logger: JsonLogger,
) -> Configuration:
    cfg = apply_defaults(Configuration(location=location))
    document = dict(document)
    document["version"] = _version(document, cfg.version, problems)
    document = migrate(document, logger=logger)

    cfg.version = document["version"]
    cfg.options = _record(OptionsConfiguration, document.get("options"), problems, "options")
    cfg.gui = _record(GUIConfiguration, document.get("gui"), problems, "gui")
    cfg.folders = [_folder(raw, problems) for raw in document.get("folder") or []]
    cfg.devices = _devices(document.get("device") or [], problems)
    return cfg


def new(location: Path | str, my_id: DeviceID, *, logger: Optional[JsonLogger] = None) -> Configuration:
    """Return a fresh, normalised configuration that will be saved at ``location``."""

    logger = logger or get_logger("config")
    cfg = apply_defaults(Configuration(location=str(location)))
    apply_defaults(cfg.options)
    apply_defaults(cfg.gui)
    return prepare(cfg, my_id, logger=logger)


def load(location: Path | str, my_id: DeviceID, *, logger: Optional[JsonLogger] = None) -> Configuration:
    """Load, upgrade and normalise the configuration stored at ``location``.

    What:
      Read the file, decode it best-effort, migrate it to the current schema
      version and normalise it for the node ``my_id``.

    Why:
      Callers want a usable configuration even from a damaged file, but they
      must also learn that it was damaged so they can avoid overwriting it
      blindly.

    How:
      Decode faults and unparseable values are collected while building the
      models; the recovered configuration is normalised regardless and
      attached to the :class:`ConfigDecodeError` raised at the end.

    Args:
      location: Path of the configuration file.
      my_id: Identity of the local node.
      logger: Diagnostics sink; defaults to the ``config`` component logger.

    Returns:
      The normalised :class:`Configuration`.

    Raises:
      OSError: When the file cannot be read; nothing is returned.
      ConfigDecodeError: When the file was malformed; ``exc.config`` holds
        the recovered configuration.
    """

    logger = logger or get_logger("config")
    path = Path(location)
    try:
        data = path.read_bytes()
    except OSError as exc:
        logger.warning("Loading config failed", path=str(path), error=str(exc))
        raise

    problems: List[str] = []
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        problems.append(f"configuration is not valid UTF-8: {exc}")
        text = data.decode("utf-8", errors="replace")

    document, decode_problems = codec.decode(text)
    problems.extend(decode_problems)
    cfg = _from_document(str(location), document, problems, logger)
    prepare(cfg, my_id, logger=logger)

    if problems:
        logger.warning("Configuration decoded with errors", path=str(path), problems=problems)
        raise ConfigDecodeError(f"{path}: {problems[0]}", config=cfg, problems=problems)
    return cfg


def save(
    cfg: Configuration,
    *,
    bus: Optional[Publisher] = None,
    logger: Optional[JsonLogger] = None,
) -> None:
    """Atomically write ``cfg`` to ``cfg.location`` and announce it.

    What:
      Serialise the configuration to ``<location>.tmp`` and rename it over
      the real file, then publish :attr:`EventType.CONFIG_SAVED` with ``cfg``
      as payload.

    Why:
      The rename is a single filesystem operation, so readers and crashes
      observe either the old document or the new one, never a mix.

    Args:
      cfg: Configuration to persist; its ``location`` must be set.
      bus: Event publisher; defaults to :data:`meshsync.events.default_bus`.
      logger: Diagnostics sink; defaults to the ``config`` component logger.

    Raises:
      ValueError: When ``cfg.location`` is empty.
      OSError: When writing the temporary file or renaming it fails. The real
        file is untouched in both cases; a failed rename may leave the
        temporary file behind.
    """

    logger = logger or get_logger("config")
    if not cfg.location:
        raise ValueError("configuration has no location to save to")
    path = Path(cfg.location)
    temp_path = path.with_name(path.name + TEMP_SUFFIX)
    payload = codec.encode(cfg)

    try:
        with open(temp_path, "w", encoding="utf-8") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
    except OSError as exc:
        logger.warning("Saving config failed", path=str(temp_path), error=str(exc))
        raise

    try:
        os.replace(temp_path, path)
    except OSError as exc:
        logger.warning("Saving config failed", path=str(path), error=str(exc))
        raise

    (bus if bus is not None else default_bus).publish(EventType.CONFIG_SAVED, cfg)

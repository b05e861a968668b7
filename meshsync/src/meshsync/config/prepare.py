"""Consistency normalisation run after every load or construction.

What:
  Bring a :class:`~meshsync.config.schema.Configuration` into a state the
  rest of the node can rely on: defaulted listen addresses, unique folder
  IDs, a hashed GUI password, the local device present everywhere it must be,
  no dangling or duplicate device references, and deterministic ordering.

Why:
  Configuration files are edited by hand and by older releases. Folder and
  device entities reference each other by identity only, so referential
  integrity is enforced here, once, instead of on every mutation.

How:
  :func:`prepare` mutates the configuration in place through a fixed
  sequence of small helpers. Folder ID collisions are never merged: every
  folder involved is kept, marked invalid, and renamed with a ``~<n>`` suffix
  drawn from a process-wide counter.

Interfaces:
  :func:`prepare` and the marker constants ``NO_DIRECTORY``,
  ``DUPLICATE_FOLDER_ID``, ``DEFAULT_FOLDER_ID``, ``DYNAMIC_ADDRESS``.

Invariants & Safety:
  - After :func:`prepare`, the local device appears exactly once in the root
    device list and in every folder's membership list.
  - Every membership edge references a device in the root list.
  - No two folders without an ``invalid`` marker share an ID.
  - A password that cannot be hashed is logged and kept as typed.
"""
from __future__ import annotations

import itertools
import socket
from typing import Dict, List, Optional, Set

import bcrypt

from ..protocol.device_id import DeviceID
from ..utils.logging import JsonLogger, get_logger
from .defaults import fill_absent_sequences
from .schema import (
    Configuration,
    DeviceConfiguration,
    FolderConfiguration,
    FolderDeviceConfiguration,
    GUIConfiguration,
)


NO_DIRECTORY = "no directory configured"
DUPLICATE_FOLDER_ID = "duplicate folder ID"
DEFAULT_FOLDER_ID = "default"
DYNAMIC_ADDRESS = "dynamic"
HASHED_PASSWORD_PREFIX = "$"

_unique_counter = itertools.count(1)


def _resolve_folder_ids(folders: List[FolderConfiguration], logger: JsonLogger) -> None:
    seen: Dict[str, FolderConfiguration] = {}
    for folder in folders:
        if not folder.path:
            folder.invalid = NO_DIRECTORY
            continue
        if not folder.id:
            folder.id = DEFAULT_FOLDER_ID

        previous = seen.get(folder.id)
        if previous is None:
            seen[folder.id] = folder
            continue

        logger.warning("Multiple folders with the same ID; disabling", folder=folder.id)
        previous.invalid = DUPLICATE_FOLDER_ID
        if previous.id == folder.id:
            previous.id = f"{folder.id}~{next(_unique_counter)}"
        folder.invalid = DUPLICATE_FOLDER_ID
        folder.id = f"{folder.id}~{next(_unique_counter)}"


def _hash_gui_password(gui: GUIConfiguration, logger: JsonLogger) -> None:
    if not gui.password or gui.password.startswith(HASHED_PASSWORD_PREFIX):
        return
    try:
        hashed = bcrypt.hashpw(gui.password.encode("utf-8"), bcrypt.gensalt())
    except ValueError as exc:
        logger.warning("Hashing GUI password failed; keeping cleartext", error=str(exc))
        return
    gui.password = hashed.decode("ascii")


def _hostname() -> str:
    try:
        return socket.gethostname()
    except OSError:
        return ""


def _dedupe_devices(devices: List[DeviceConfiguration], logger: JsonLogger) -> List[DeviceConfiguration]:
    seen: Set[DeviceID] = set()
    unique: List[DeviceConfiguration] = []
    for device in devices:
        if device.device_id in seen:
            logger.warning("Dropping duplicate device entry", device=device.device_id.short())
            continue
        seen.add(device.device_id)
        unique.append(device)
    return unique


def _normalize_membership(
    edges: List[FolderDeviceConfiguration],
    my_id: DeviceID,
    existing: Set[DeviceID],
) -> List[FolderDeviceConfiguration]:
    if not any(edge.device_id == my_id for edge in edges):
        edges = edges + [FolderDeviceConfiguration(device_id=my_id)]

    seen: Set[DeviceID] = set()
    kept: List[FolderDeviceConfiguration] = []
    for edge in edges:
        if edge.device_id not in existing or edge.device_id in seen:
            continue
        seen.add(edge.device_id)
        kept.append(edge)
    kept.sort(key=lambda edge: edge.device_id)
    return kept


def prepare(cfg: Configuration, my_id: DeviceID, *, logger: Optional[JsonLogger] = None) -> Configuration:
    """Normalise ``cfg`` in place for the node identified by ``my_id``.

    What:
      Run every consistency rule over a freshly constructed or freshly loaded
      (and already migrated) configuration.

    Why:
      Downstream components assume the invariants listed in the module
      docstring; establishing them in one pass keeps those components simple.

    How:
      1. Seed absent sequence defaults and deduplicate listen addresses.
      2. Resolve folder ID collisions and flag folders without a path.
      3. Hash a cleartext GUI password.
      4. Register the local device, sort devices, and repair every folder's
         membership list.
      5. Replace empty address lists with ``["dynamic"]``.

    Args:
      cfg: Configuration to normalise.
      my_id: Identity of the local node.
      logger: Diagnostics sink; defaults to the ``config`` component logger.

    Returns:
      ``cfg`` itself, for chaining.
    """

    logger = logger or get_logger("config")

    fill_absent_sequences(cfg.options)
    cfg.options.listen_address = list(dict.fromkeys(cfg.options.listen_address or []))

    _resolve_folder_ids(cfg.folders, logger)

    _hash_gui_password(cfg.gui, logger)

    cfg.devices = _dedupe_devices(cfg.devices, logger)
    existing = {my_id} | {device.device_id for device in cfg.devices}
    if cfg.get_device(my_id) is None:
        cfg.devices.append(DeviceConfiguration(device_id=my_id, name=_hostname()))
    cfg.devices.sort(key=lambda device: device.device_id)

    for folder in cfg.folders:
        folder.devices = _normalize_membership(folder.devices, my_id, existing)

    for device in cfg.devices:
        if not device.addresses or device.addresses == [""]:
            device.addresses = [DYNAMIC_ADDRESS]

    return cfg

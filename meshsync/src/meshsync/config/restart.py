"""Decide whether a configuration change needs a process restart.

What:
  Compare the running configuration with a proposed one and report whether
  applying it requires restarting the node, together with operator-readable
  reasons.

Why:
  Folder runners, discovery and the GUI listener are built from the
  configuration at startup. Most edits to them cannot be applied live, while
  adding a device or renaming one can. The check errs on the side of
  restarting: an unnecessary restart is cheap, a missed one leaves the node
  running stale settings.

How:
  The analysis walks ordered checks: folder count, per-folder
  deep equality keyed by folder ID, device removal, then the options and GUI
  records. Pydantic value equality compares every attribute, including
  nested membership and versioning records.

Interfaces:
  :func:`change_requires_restart` and :func:`restart_reasons`.

Invariants & Safety:
  - Neither function mutates its arguments.
  - ``change_requires_restart(a, b) == bool(restart_reasons(a, b))``.
"""
from __future__ import annotations

from typing import List

from .schema import Configuration


def restart_reasons(old: Configuration, new: Configuration) -> List[str]:
    """Explain why moving from ``old`` to ``new`` requires a restart.

    What:
      Returns one short label per detected cause, in check order, or an
      empty list when the change can be applied live.

    Why:
      The CLI and logs show operators why the node is about to restart,
      which makes over-eager restarts easy to diagnose.

    Args:
      old: Configuration the node is running with.
      new: Proposed configuration.

    Returns:
      Reason labels such as ``"folder count changed"`` or
      ``"folder 'photos' changed"``.
    """

    reasons: List[str] = []

    if len(old.folders) != len(new.folders):
        reasons.append("folder count changed")
    new_folders = new.folder_map()
    for folder_id, folder in old.folder_map().items():
        if new_folders.get(folder_id) != folder:
            reasons.append(f"folder {folder_id!r} changed")

    # Adding a device, or changing its name or addresses, is applied live.
    new_devices = new.device_map()
    for device_id in old.device_map():
        if device_id not in new_devices:
            reasons.append(f"device {device_id.short()} removed")

    if old.options != new.options:
        reasons.append("options changed")
    if old.gui != new.gui:
        reasons.append("gui changed")
    return reasons


def change_requires_restart(old: Configuration, new: Configuration) -> bool:
    """Return ``True`` when applying ``new`` over ``old`` requires a restart."""

    return bool(restart_reasons(old, new))

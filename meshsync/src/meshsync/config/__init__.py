"""meshsync configuration lifecycle package.

What:
  Provide a cohesive import surface for creating, loading, migrating,
  normalising and saving node configurations, and for judging whether a
  change needs a restart.

Why:
  Callers should not depend on the internal split between codec, migrations
  and normaliser; going through :func:`load` and :func:`new` guarantees every
  configuration they hold has been defaulted, upgraded and normalised.

Interfaces:
  - new / load / save: persistence gateway.
  - change_requires_restart / restart_reasons: restart-impact analysis.
  - Configuration and its record models.
  - ConfigLoadError / ConfigDecodeError / SchemaDefaultError.

Invariants:
  - Configurations returned from this package satisfy the invariants listed
    in :mod:`meshsync.config.prepare`.
  - Callers serialise access to a shared :class:`Configuration` themselves;
    nothing here takes a lock.
"""

from .errors import ConfigDecodeError, ConfigLoadError, SchemaDefaultError
from .loader import load, new, resolve_config_path, save
from .restart import change_requires_restart, restart_reasons
from .schema import (
    CURRENT_VERSION,
    Configuration,
    DeviceConfiguration,
    FolderConfiguration,
    FolderDeviceConfiguration,
    GUIConfiguration,
    OptionsConfiguration,
    VersioningConfiguration,
)

__all__ = [
    "new",
    "load",
    "save",
    "resolve_config_path",
    "change_requires_restart",
    "restart_reasons",
    "CURRENT_VERSION",
    "Configuration",
    "DeviceConfiguration",
    "FolderConfiguration",
    "FolderDeviceConfiguration",
    "GUIConfiguration",
    "OptionsConfiguration",
    "VersioningConfiguration",
    "ConfigLoadError",
    "ConfigDecodeError",
    "SchemaDefaultError",
]

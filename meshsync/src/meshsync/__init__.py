"""
Module: meshsync.__init__

What:
  Aggregate package exports for the meshsync node configuration core and
  expose its namespace segments (configuration lifecycle, peer protocol
  primitives, events and utilities).

Why:
  Entry points and embedding applications import these names to load and
  persist node configuration without touching private modules.

Interfaces:
  - config: Loading, migration, normalisation, persistence, restart analysis.
  - protocol: Device identities and wire-format name normalisation.
  - events: In-process publication of configuration lifecycle events.
  - utils: Structured logging.
"""

__version__ = "0.10.0"

__all__ = [
    "config",
    "events",
    "protocol",
    "utils",
]

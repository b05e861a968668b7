"""Peer protocol primitives used by the configuration core.

Interfaces:
  - DeviceID / InvalidDeviceID: fixed-length peer identity and its parse error.
  - normalize_name / WireFormatConnection: name normalisation at the wire
    boundary.
"""

from .device_id import DeviceID, InvalidDeviceID
from .wireformat import FileInfo, WireFormatConnection, normalize_name

__all__ = [
    "DeviceID",
    "InvalidDeviceID",
    "FileInfo",
    "WireFormatConnection",
    "normalize_name",
]

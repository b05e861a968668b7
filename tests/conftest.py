"""Pytest configuration shared by the unit and end-to-end suites.

What:
  Make the in-repo ``meshsync`` sources importable and provide fixtures for
  device identities, in-memory loggers and isolated event buses.

Why:
  Tests must exercise the source tree rather than an installed wheel, and the
  configuration core logs and publishes through injected collaborators that
  tests want to inspect.

How:
  Prepend ``meshsync/src`` to ``sys.path`` at import time, then expose small
  fixtures. ``MESHSYNC_CONFIG_PATH`` and ``MESHSYNC_DEVICE_ID`` are cleared for
  every test so the developer's environment never leaks in.

Interfaces:
  The ``make_id``, ``my_id``, ``peer_id``, ``log_stream``, ``logger``
  and ``bus`` fixtures.
"""

import io
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "meshsync" / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

import pytest

from meshsync.events import EventBus
from meshsync.protocol.device_id import DeviceID
from meshsync.utils.logging import JsonLogger


def _identity(seed: int) -> DeviceID:
    return DeviceID(bytes([seed]) * 32)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("MESHSYNC_CONFIG_PATH", raising=False)
    monkeypatch.delenv("MESHSYNC_DEVICE_ID", raising=False)
    yield


@pytest.fixture
def make_id():
    """Factory for deterministic identities whose raw bytes are all ``seed``."""

    return _identity


@pytest.fixture
def my_id() -> DeviceID:
    return _identity(0x10)


@pytest.fixture
def peer_id() -> DeviceID:
    return _identity(0x20)


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def logger(log_stream: io.StringIO) -> JsonLogger:
    return JsonLogger(stream=log_stream, component="test")


@pytest.fixture
def bus(logger: JsonLogger) -> EventBus:
    return EventBus(logger=logger)

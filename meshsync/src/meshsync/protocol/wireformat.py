"""Wire-format normalisation of file names exchanged with peers.

What:
  Rewrite file names to forward-slash separators and Unicode NFC before they
  leave the node, through a decorator around any connection object.

Why:
  Peers run on different operating systems and filesystems (HFS+ stores names
  decomposed, Windows uses backslashes). Configuration entities such as
  folder paths stay in local form; normalisation happens only at this
  boundary.

How:
  :func:`normalize_name` combines :func:`os.path` separator replacement with
  :func:`unicodedata.normalize`. :class:`WireFormatConnection` copies outgoing
  :class:`FileInfo` records with normalised names and forwards everything
  else unchanged.

Interfaces:
  :func:`normalize_name`, :class:`FileInfo`, :class:`Connection`,
  :class:`WireFormatConnection`.
"""
from __future__ import annotations

import os
import unicodedata
from dataclasses import dataclass, replace
from typing import Any, List, Protocol, Sequence

from .device_id import DeviceID


def normalize_name(name: str, *, sep: str = os.sep) -> str:
    """Return ``name`` with ``/`` separators in composed Unicode form."""

    if sep != "/":
        name = name.replace(sep, "/")
    return unicodedata.normalize("NFC", name)


@dataclass(frozen=True)
class FileInfo:
    """Index entry announced to peers."""

    name: str
    flags: int = 0
    modified: int = 0
    version: int = 0


class Connection(Protocol):
    def id(self) -> DeviceID: ...

    def name(self) -> str: ...

    def index(self, folder: str, files: Sequence[FileInfo]) -> None: ...

    def index_update(self, folder: str, files: Sequence[FileInfo]) -> None: ...

    def request(self, folder: str, name: str, offset: int, size: int) -> bytes: ...

    def cluster_config(self, config: Any) -> None: ...

    def statistics(self) -> Any: ...


class WireFormatConnection:
    """Decorate ``next_conn`` so every outgoing name is in wire form."""

    def __init__(self, next_conn: Connection, *, sep: str = os.sep):
        self._next = next_conn
        self._sep = sep

    def _normalized(self, files: Sequence[FileInfo]) -> List[FileInfo]:
        return [replace(info, name=normalize_name(info.name, sep=self._sep)) for info in files]

    def id(self) -> DeviceID:
        return self._next.id()

    def name(self) -> str:
        return self._next.name()

    def index(self, folder: str, files: Sequence[FileInfo]) -> None:
        self._next.index(folder, self._normalized(files))

    def index_update(self, folder: str, files: Sequence[FileInfo]) -> None:
        self._next.index_update(folder, self._normalized(files))

    def request(self, folder: str, name: str, offset: int, size: int) -> bytes:
        return self._next.request(folder, normalize_name(name, sep=self._sep), offset, size)

    def cluster_config(self, config: Any) -> None:
        self._next.cluster_config(config)

    def statistics(self) -> Any:
        return self._next.statistics()

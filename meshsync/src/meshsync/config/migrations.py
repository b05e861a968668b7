"""Schema migrations for decoded configuration documents.

What:
  Upgrade a decoded document from any historical schema version (1 to 4) to
  the current version 5, one version at a time.

Why:
  Nodes upgrade across several releases at once and their configuration
  must keep working. Legacy fields only exist in the historical shapes, so
  each shape is described by its own ``TypedDict`` and each step is a pure
  function from one shape to the next; nothing deprecated survives into the
  current model.

How:
  ``MIGRATIONS`` maps a source version to its step. :func:`migrate` first
  folds the legacy usage-reporting preference into ``urAccepted`` and then
  applies whichever step matches the document version until none does. Every
  step deep-copies its input and sets the version to its target.

Interfaces:
  ``MIGRATIONS``, :func:`migrate`, ``LEGACY_ANNOUNCE_SERVER``,
  ``CURRENT_ANNOUNCE_SERVER``, and the ``DocumentV1`` .. ``DocumentV5``
  shapes.

Invariants & Safety:
  - Steps run in increasing version order and none is skipped.
  - A document already at (or beyond) the current version is returned
    without running any step.
  - Values stay in their on-disk text form; typing happens when the model is
    built.
"""
from __future__ import annotations

import copy
from typing import Any, Callable, Dict, List, Optional, Tuple, TypedDict

from ..protocol.device_id import DeviceID, InvalidDeviceID
from ..utils.logging import JsonLogger
from .schema import CURRENT_VERSION


LEGACY_ANNOUNCE_SERVER = "announce.syncthing.net:22025"
CURRENT_ANNOUNCE_SERVER = "announce.syncthing.net:22026"


class NodeV1(TypedDict, total=False):
    id: str
    name: str
    address: List[str]


class RepositoryV1(TypedDict, total=False):
    id: str
    directory: str
    ignorePerms: str
    versioning: Dict[str, Any]
    node: List[NodeV1]


class DocumentV1(TypedDict, total=False):
    """Devices are embedded in each repository; GUI settings live in options."""

    version: int
    repository: List[RepositoryV1]
    options: Dict[str, Any]
    gui: Dict[str, Any]


class NodeRefV2(TypedDict, total=False):
    id: str
    name: str
    address: List[str]


class RepositoryV2(TypedDict, total=False):
    id: str
    directory: str
    ro: str
    ignorePerms: str
    versioning: Dict[str, Any]
    node: List[NodeRefV2]


class NodeV2(TypedDict, total=False):
    id: str
    name: str
    address: List[str]
    compression: str
    certName: str
    introducer: str


class DocumentV2(TypedDict, total=False):
    """Devices flattened into a root ``node`` list, referenced by id."""

    version: int
    repository: List[RepositoryV2]
    node: List[NodeV2]
    options: Dict[str, Any]
    gui: Dict[str, Any]


# Version 3 has the shape of version 2 with compression set explicitly.
DocumentV3 = DocumentV2


class NodeRefV4(TypedDict, total=False):
    id: str


class RepositoryV4(TypedDict, total=False):
    id: str
    directory: str
    ro: str
    rescanIntervalS: str
    ignorePerms: str
    versioning: Dict[str, Any]
    node: List[NodeRefV4]


class DocumentV4(TypedDict, total=False):
    version: int
    repository: List[RepositoryV4]
    node: List[NodeV2]
    options: Dict[str, Any]
    gui: Dict[str, Any]


class FolderV5(TypedDict, total=False):
    id: str
    path: str
    ro: str
    rescanIntervalS: str
    ignorePerms: str
    versioning: Dict[str, Any]
    device: List[NodeRefV4]


class DocumentV5(TypedDict, total=False):
    version: int
    folder: List[FolderV5]
    device: List[NodeV2]
    options: Dict[str, Any]
    gui: Dict[str, Any]


def _truthy(value: Any) -> bool:
    return str(value).strip().lower() in ("true", "1", "t")


def _device_key(text: str) -> Tuple[int, bytes]:
    """Identity of a device reference; unparseable ids compare by their text."""

    try:
        return (0, DeviceID.from_string(text).raw)
    except InvalidDeviceID:
        return (1, text.encode("utf-8"))


def _v1_to_v2(doc: DocumentV1) -> DocumentV2:
    out: Dict[str, Any] = copy.deepcopy(dict(doc))
    options = out.setdefault("options", {})

    # Devices move to the root list; repositories keep references only. The
    # node-wide read-only flag becomes a per-folder flag.
    read_only = options.pop("readOnly", "false")
    flattened: Dict[Tuple[int, bytes], NodeV1] = {}
    for repo in out.get("repository", []):
        repo["ro"] = read_only
        refs: List[NodeRefV2] = []
        for node in repo.get("node", []):
            flattened.setdefault(_device_key(node.get("id", "")), node)
            refs.append({"id": node.get("id", "")})
        repo["node"] = refs

    nodes: List[NodeV2] = list(out.get("node", []))
    for node in flattened.values():
        nodes.append({"id": node.get("id", ""), "name": node.get("name", ""), "address": list(node.get("address", []))})
    out["node"] = sorted(nodes, key=lambda n: _device_key(n.get("id", "")))

    # The GUI record is rebuilt from the deprecated options fields; absent
    # fields mean a disabled GUI without an address.
    gui = out.setdefault("gui", {})
    gui["address"] = options.pop("guiAddress", "")
    gui["enabled"] = options.pop("guiEnabled", "false")

    out["version"] = 2
    return out  # type: ignore[return-value]


def _v2_to_v3(doc: DocumentV2) -> DocumentV3:
    out: Dict[str, Any] = copy.deepcopy(dict(doc))

    # Compression used to be always on.
    for node in out.get("node", []):
        node["compression"] = "true"

    # The default announce server with the old port is always a leftover.
    options = out.get("options") or {}
    if options.get("globalAnnounceServer") == LEGACY_ANNOUNCE_SERVER:
        options["globalAnnounceServer"] = CURRENT_ANNOUNCE_SERVER

    out["version"] = 3
    return out  # type: ignore[return-value]


def _v3_to_v4(doc: DocumentV3) -> DocumentV4:
    out: Dict[str, Any] = copy.deepcopy(dict(doc))
    options = out.get("options") or {}

    # The rescan interval becomes per folder. When the document never set one
    # the folder keeps its declared default.
    rescan: Optional[str] = options.pop("rescanIntervalS", None)
    for repo in out.get("repository", []):
        if rescan is not None:
            repo["rescanIntervalS"] = rescan
        repo["node"] = [{"id": node.get("id", "")} for node in repo.get("node", [])]

    out["version"] = 4
    return out  # type: ignore[return-value]


def _v4_to_v5(doc: DocumentV4) -> DocumentV5:
    out: Dict[str, Any] = copy.deepcopy(dict(doc))

    out["folder"] = out.pop("repository", None) or []
    out["device"] = out.pop("node", None) or []
    for folder in out["folder"]:
        folder["path"] = folder.pop("directory", "")
        folder["device"] = folder.pop("node", None) or []

    out["version"] = 5
    return out  # type: ignore[return-value]


MIGRATIONS: Dict[int, Callable[[Any], Any]] = {
    1: _v1_to_v2,
    2: _v2_to_v3,
    3: _v3_to_v4,
    4: _v4_to_v5,
}


def _reconcile_usage_reporting(doc: Dict[str, Any]) -> Dict[str, Any]:
    options = doc.get("options")
    if not isinstance(options, dict) or not ({"urDeclined", "urEnabled"} & options.keys()):
        return doc
    out = copy.deepcopy(doc)
    options = out["options"]
    declined = options.pop("urDeclined", None)
    options.pop("urEnabled", None)
    if declined is not None and _truthy(declined):
        options["urAccepted"] = "-1"
    return out


def migrate(document: Dict[str, Any], *, logger: Optional[JsonLogger] = None) -> DocumentV5:
    """Upgrade ``document`` to :data:`CURRENT_VERSION`.

    What:
      Apply the chained steps in ``MIGRATIONS`` starting from the document's
      integer ``version``.

    Why:
      A node may skip releases; the chain must bring any supported version
      forward without the caller knowing how far behind it is.

    How:
      Reconcile the legacy usage-reporting flag, then look up the step for the
      current version, apply it and repeat until no step matches.

    Args:
      document: Decoded mapping whose ``version`` is already an ``int``.
      logger: Optional sink receiving one entry per applied step.

    Returns:
      A new mapping in the version 5 shape (or the input shape when its
      version has no registered step).
    """

    document = _reconcile_usage_reporting(document)
    version = document.get("version", CURRENT_VERSION)
    step = MIGRATIONS.get(version)
    while step is not None:
        document = step(document)
        if logger is not None:
            logger.info("Migrated configuration", from_version=version, to_version=document["version"])
        version = document["version"]
        step = MIGRATIONS.get(version)
    return document  # type: ignore[return-value]

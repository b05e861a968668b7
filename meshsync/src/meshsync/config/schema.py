"""Pydantic models describing the node configuration document.

Field aliases are the element and attribute names used on disk. Each record
declares which aliases are written as XML attributes (``xml_attributes``) and
which are left out of the document while empty (``xml_omit_empty``); the
codec reads both. Fields start at their zero value; declared defaults live in
:mod:`meshsync.config.defaults`.
"""
from __future__ import annotations

from typing import Any, ClassVar, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..protocol.device_id import DeviceID


CURRENT_VERSION = 5


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    xml_attributes: ClassVar[FrozenSet[str]] = frozenset()
    xml_omit_empty: ClassVar[FrozenSet[str]] = frozenset()


class VersioningConfiguration(_Record):
    """File versioning policy; ``params`` is a ``<param key val>`` list on disk."""

    xml_attributes: ClassVar[FrozenSet[str]] = frozenset({"type"})
    xml_omit_empty: ClassVar[FrozenSet[str]] = frozenset({"type"})

    type: str = ""
    params: Dict[str, str] = Field(default_factory=dict, alias="param")

    @model_validator(mode="before")
    @classmethod
    def _params_from_pairs(cls, data: Any) -> Any:
        if isinstance(data, dict):
            pairs = data.get("param")
            if isinstance(pairs, list):
                data = dict(data)
                data["param"] = {str(p.get("key", "")): str(p.get("val", "")) for p in pairs}
        return data


class FolderDeviceConfiguration(_Record):
    """Membership edge from a folder to a device, by identity only."""

    xml_attributes: ClassVar[FrozenSet[str]] = frozenset({"id"})

    device_id: DeviceID = Field(alias="id")


class FolderConfiguration(_Record):
    xml_attributes: ClassVar[FrozenSet[str]] = frozenset(
        {"id", "path", "ro", "rescanIntervalS", "ignorePerms"}
    )

    id: str = Field(default="", alias="id")
    path: str = Field(default="", alias="path")
    devices: List[FolderDeviceConfiguration] = Field(default_factory=list, alias="device")
    read_only: bool = Field(default=False, alias="ro")
    rescan_interval_s: int = Field(default=0, alias="rescanIntervalS")
    ignore_perms: bool = Field(default=False, alias="ignorePerms")
    # Set at runtime by the normalizer; never written to disk.
    invalid: str = Field(default="", exclude=True)
    versioning: VersioningConfiguration = Field(default_factory=VersioningConfiguration, alias="versioning")

    def device_ids(self) -> List[DeviceID]:
        return [edge.device_id for edge in self.devices]


class DeviceConfiguration(_Record):
    xml_attributes: ClassVar[FrozenSet[str]] = frozenset(
        {"id", "name", "compression", "certName", "introducer"}
    )
    xml_omit_empty: ClassVar[FrozenSet[str]] = frozenset({"name", "address", "certName"})

    device_id: DeviceID = Field(alias="id")
    name: str = Field(default="", alias="name")
    addresses: List[str] = Field(default_factory=list, alias="address")
    compression: bool = Field(default=False, alias="compression")
    cert_name: str = Field(default="", alias="certName")
    introducer: bool = Field(default=False, alias="introducer")


class OptionsConfiguration(_Record):
    """Node-wide settings; every field is an element on disk."""

    # ``None`` means absent from the document; seeded after decoding.
    listen_address: Optional[List[str]] = Field(default=None, alias="listenAddress")
    global_ann_server: str = Field(default="", alias="globalAnnounceServer")
    global_ann_enabled: bool = Field(default=False, alias="globalAnnounceEnabled")
    local_ann_enabled: bool = Field(default=False, alias="localAnnounceEnabled")
    local_ann_port: int = Field(default=0, alias="localAnnouncePort")
    local_ann_mc_addr: str = Field(default="", alias="localAnnounceMCAddr")
    max_send_kbps: int = Field(default=0, alias="maxSendKbps")
    max_recv_kbps: int = Field(default=0, alias="maxRecvKbps")
    reconnect_interval_s: int = Field(default=0, alias="reconnectionIntervalS")
    start_browser: bool = Field(default=False, alias="startBrowser")
    upnp_enabled: bool = Field(default=False, alias="upnpEnabled")
    upnp_lease_minutes: int = Field(default=0, alias="upnpLeaseMinutes")
    upnp_renewal_minutes: int = Field(default=0, alias="upnpRenewalMinutes")
    # Accepted usage reporting version; 0 undecided, -1 permanently off.
    ur_accepted: int = Field(default=0, alias="urAccepted")
    restart_on_wakeup: bool = Field(default=False, alias="restartOnWakeup")
    auto_upgrade_interval_h: int = Field(default=0, alias="autoUpgradeIntervalH")


class GUIConfiguration(_Record):
    xml_attributes: ClassVar[FrozenSet[str]] = frozenset({"enabled", "tls"})
    xml_omit_empty: ClassVar[FrozenSet[str]] = frozenset({"user", "password", "apikey"})

    enabled: bool = Field(default=False, alias="enabled")
    address: str = Field(default="", alias="address")
    user: str = Field(default="", alias="user")
    password: str = Field(default="", alias="password")
    use_tls: bool = Field(default=False, alias="tls")
    api_key: str = Field(default="", alias="apikey")


class Configuration(_Record):
    """Root aggregate, the ``<configuration>`` element."""

    xml_tag: ClassVar[str] = "configuration"
    xml_attributes: ClassVar[FrozenSet[str]] = frozenset({"version"})

    location: str = Field(default="", exclude=True)
    version: int = Field(default=0, alias="version")
    folders: List[FolderConfiguration] = Field(default_factory=list, alias="folder")
    devices: List[DeviceConfiguration] = Field(default_factory=list, alias="device")
    gui: GUIConfiguration = Field(default_factory=GUIConfiguration, alias="gui")
    options: OptionsConfiguration = Field(default_factory=OptionsConfiguration, alias="options")

    def device_map(self) -> Dict[DeviceID, DeviceConfiguration]:
        return {device.device_id: device for device in self.devices}

    def folder_map(self) -> Dict[str, FolderConfiguration]:
        return {folder.id: folder for folder in self.folders}

    def get_device(self, device_id: DeviceID) -> Optional[DeviceConfiguration]:
        for device in self.devices:
            if device.device_id == device_id:
                return device
        return None

    def get_folder(self, folder_id: str) -> Optional[FolderConfiguration]:
        for folder in self.folders:
            if folder.id == folder_id:
                return folder
        return None

    def save(self, **kwargs: Any) -> None:
        """Persist atomically; see :func:`meshsync.config.loader.save`."""

        from .loader import save

        save(self, **kwargs)

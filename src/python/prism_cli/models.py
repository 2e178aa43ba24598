"""Data models for prism_cli."""

import copy
from dataclasses import dataclass, field
from typing import Iterable, Optional

ASSIGNED = "ASSIGNED"


@dataclass(frozen=True)
class ConnectionDescriptor:
    """Credentials and endpoint for connecting to Prism Central."""

    host: str
    port: int
    username: str
    password: str

    @property
    def url(self) -> str:
        return f"https://{self.host}:{self.port}"


@dataclass(frozen=True)
class PrismConfig:
    """Runtime configuration, built once at startup."""

    connection: ConnectionDescriptor
    verify_ssl: bool = False
    timeout: float = 60
    page_size: int = 250


@dataclass
class IPAddress:
    """An entry of a NIC's ip_endpoint_list."""

    value: str  # e.g., "10.0.0.5", "" when the entry has no ip
    kind: Optional[str] = ASSIGNED  # "ASSIGNED", "LEARNED", ...
    raw: Optional[dict] = field(default=None, repr=False, compare=False)

    def to_api(self) -> dict:
        if self.raw is not None:
            return copy.deepcopy(self.raw)
        entry = {"ip": self.value}
        if self.kind is not None:
            entry["type"] = self.kind
        return entry


@dataclass
class NetworkInterface:
    """A VM network interface (an entry of spec.resources.nic_list)."""

    mac_address: Optional[str]
    addresses: list[IPAddress] = field(default_factory=list)
    subnet_uuid: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "NetworkInterface":
        addresses = [
            IPAddress(value=ip.get("ip") or "", kind=ip.get("type"), raw=ip)
            for ip in data.get("ip_endpoint_list") or []
        ]
        subnet_ref = data.get("subnet_reference") or {}
        return cls(
            mac_address=data.get("mac_address"),
            addresses=addresses,
            subnet_uuid=subnet_ref.get("uuid"),
        )


@dataclass
class VirtualMachine:
    """A VM as returned by the v3 vms endpoints.

    The raw spec and metadata are kept so that an update can send the full
    spec back together with the existing metadata (spec_version included).
    """

    uuid: str
    name: str
    interfaces: list[NetworkInterface] = field(default_factory=list)
    spec: dict = field(default_factory=dict, repr=False)
    metadata: dict = field(default_factory=dict, repr=False)
    api_version: str = "3.1"

    @classmethod
    def from_api(cls, data: dict) -> "VirtualMachine":
        spec = copy.deepcopy(data.get("spec") or {})
        metadata = copy.deepcopy(data.get("metadata") or {})
        nics = (spec.get("resources") or {}).get("nic_list") or []
        return cls(
            uuid=metadata.get("uuid", ""),
            name=spec.get("name", ""),
            interfaces=[NetworkInterface.from_api(nic) for nic in nics],
            spec=spec,
            metadata=metadata,
            api_version=data.get("api_version", "3.1"),
        )

    def spec_with_interfaces(self, changed: Iterable[int]) -> dict:
        """Return a copy of the spec with the changed NICs' addresses taken from the model.

        Other NICs are sent back exactly as they were received.
        """
        changed = set(changed)
        spec = copy.deepcopy(self.spec)
        nics = spec.setdefault("resources", {}).setdefault("nic_list", [])
        for index, (nic, iface) in enumerate(zip(nics, self.interfaces)):
            if index not in changed:
                continue
            nic["ip_endpoint_list"] = [ip.to_api() for ip in iface.addresses]
        return spec


@dataclass
class Subnet:
    """A subnet as returned by GET /subnets/{uuid}."""

    uuid: str
    name: str
    subnet_ip: Optional[str] = None
    prefix_length: Optional[int] = None

    @classmethod
    def from_api(cls, data: dict) -> "Subnet":
        spec = data.get("spec") or {}
        ip_config = (spec.get("resources") or {}).get("ip_config") or {}
        return cls(
            uuid=(data.get("metadata") or {}).get("uuid", ""),
            name=spec.get("name", ""),
            subnet_ip=ip_config.get("subnet_ip"),
            prefix_length=ip_config.get("prefix_length"),
        )

    @property
    def cidr(self) -> str:
        return f"{self.subnet_ip}/{self.prefix_length}"

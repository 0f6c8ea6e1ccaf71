"""Shared Pydantic models for the droplet provisioner."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DropletStatus(str, Enum):
    """Droplet lifecycle status."""

    NEW = "new"
    ACTIVE = "active"
    OFF = "off"
    ARCHIVE = "archive"
    ERROR = "error"  # assigned locally when polling times out


class Droplet(BaseModel):
    """Last observed snapshot of a provisioned droplet."""

    id: int
    name: str
    status: DropletStatus
    ip: Optional[str] = None
    region: Optional[str] = None
    memory: Optional[int] = None
    vcpus: Optional[int] = None
    disk: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_ready(self) -> bool:
        """Active with a public address."""
        return self.status == DropletStatus.ACTIVE and bool(self.ip)

    @classmethod
    def placeholder(cls, droplet_id: int, name: str) -> "Droplet":
        """Entry registered right after the provider accepts a create call."""
        return cls(id=droplet_id, name=name, status=DropletStatus.NEW, ip=None)

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Droplet":
        """
        Build a snapshot from a provider ``droplet`` object.

        Args:
            payload: The ``droplet`` member of a provider response

        Returns:
            Droplet: Normalised snapshot
        """
        networks = payload.get("networks")
        v4 = networks.get("v4") if isinstance(networks, dict) else None
        public_ip = next(
            (
                net.get("ip_address")
                for net in v4 or []
                if isinstance(net, dict)
                and net.get("type") == "public"
                and net.get("ip_address")
            ),
            None,
        )
        region = payload.get("region")
        if isinstance(region, dict):
            region = region.get("slug")

        return cls(
            id=payload["id"],
            name=payload["name"],
            status=payload["status"],
            ip=public_ip,
            region=region if isinstance(region, str) else None,
            memory=payload.get("memory"),
            vcpus=payload.get("vcpus"),
            disk=payload.get("disk"),
        )


class DropletCreateRequest(BaseModel):
    """Body of a provider create call."""

    name: str
    region: str
    size: str = "s-2vcpu-4gb"
    image: str = "moltbot"
    ssh_keys: List[str] = Field(default_factory=list)
    backups: bool = False
    ipv6: bool = True
    monitoring: bool = True
    tags: List[str] = Field(default_factory=lambda: ["openclaw"])


class CreateDropletResponse(BaseModel):
    """Response returned once a droplet has been accepted by the provider."""

    id: int
    name: str
    status: str = "provisioning"


class ErrorResponse(BaseModel):
    """Error body returned by the API."""

    error: str

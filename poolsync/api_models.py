from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _Remote(BaseModel):
    """Control-plane payloads: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ServiceInstance(BaseModel):
    """One running copy of a service, as reported by the event source."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: str = Field(..., min_length=1, description="Logical service name; also the load balancer name")
    host_ip: str = Field(..., description="Externally reachable address of the instance's host")
    host_port: str = Field(..., description="Port the instance listens on; becomes the node's private port")
    exposed_port: str = Field(..., description="Published protocol port; selects the pool (80 or 443)")
    attrs: dict[str, Any] = Field(default_factory=dict, description="Free-form attributes, incl. the opt-in flag")
    id: str | None = None
    container_name: str | None = None
    tags: list[str] = Field(default_factory=list)


class Node(_Remote):
    """A pool member. Two nodes are equal iff address and port match."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    ip_address: str = Field(..., alias="ipAddress")
    private_port: int = Field(..., alias="privatePort")
    status: str | None = None

    @property
    def key(self) -> tuple[str, int]:
        return (self.ip_address, self.private_port)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Pool(_Remote):
    id: str
    port: int
    method: str = "roundRobin"
    persistence: str = "standard"
    nodes: list[Node] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.nodes


class LoadBalancer(_Remote):
    id: str
    name: str
    description: str = ""
    ip_address: str | None = Field(None, alias="ipAddress")
    status: str | None = None
    pools: list[Pool] = Field(default_factory=list)


class Link(_Remote):
    rel: str
    id: str | None = None
    href: str | None = None


class IPAddressPair(_Remote):
    public: str | None = None
    internal: str | None = None


class ServerDetails(_Remote):
    ip_addresses: list[IPAddressPair] = Field(default_factory=list, alias="ipAddresses")


class Server(_Remote):
    id: str | None = None
    name: str | None = None
    details: ServerDetails = Field(default_factory=ServerDetails)

    def internal_for(self, public_ip: str) -> str | None:
        """Internal counterpart of the first pair whose public part matches."""
        for pair in self.details.ip_addresses:
            if pair.public == public_ip:
                return pair.internal
        return None


class Group(_Remote):
    id: str
    name: str | None = None
    groups: list[Group] = Field(default_factory=list)
    links: list[Link] = Field(default_factory=list)

    def server_names(self) -> list[str]:
        return [l.id for l in self.links if l.rel == "server" and l.id]


Group.model_rebuild()


class DataCenter(_Remote):
    id: str
    name: str | None = None
    links: list[Link] = Field(default_factory=list)

    def group_ids(self) -> list[str]:
        return [l.id for l in self.links if l.rel == "group" and l.id]


# HTTP host

class ReconcileResponse(BaseModel):
    action: str
    service: str
    changed: bool
    load_balancer_id: str | None = None
    pool_id: str | None = None
    message: str = ""


class ProbeResponse(BaseModel):
    status: str
    region: str

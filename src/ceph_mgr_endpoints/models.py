"""Data models for ceph-mgr-endpoints.

This module provides the value types passed between the discovery,
resolution and reconciliation stages of a cycle.
"""

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

# Logical mgr service name -> port name published in the EndpointSlice
TRACKED_SERVICES: dict[str, str] = {
    "dashboard": "dashboard",
    "prometheus": "http-metrics",
}

# The only transport protocol ever published
PROTOCOL = "TCP"


class AddressFamily(str, Enum):
    """Address families of an EndpointSlice.

    Values match the ``addressType`` field of ``discovery.k8s.io/v1``.
    """

    IPV4 = "IPv4"
    IPV6 = "IPv6"


class PublishOutcome(str, Enum):
    """Result of reconciling a single EndpointSlice."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


class ServiceRecord(NamedTuple):
    """A tracked mgr service and where it is published.

    Attributes:
        name: The mgr service name (e.g. 'dashboard').
        target: Name of the EndpointSlice to publish.
        port_name: Name of the single port entry of the EndpointSlice.

    """

    name: str
    target: str
    port_name: str


@dataclass(frozen=True, slots=True)
class EndpointAddress:
    """A resolved network endpoint.

    Attributes:
        ip: Canonical IP literal.
        port: TCP port in the range 1-65535.
        family: Address family of ``ip``.

    """

    ip: str
    port: int
    family: AddressFamily

    def __str__(self) -> str:
        if self.family is AddressFamily.IPV6:
            return f"[{self.ip}]:{self.port}"
        return f"{self.ip}:{self.port}"


@dataclass(frozen=True, slots=True)
class PublishIntent:
    """An address the controller wants reflected in an EndpointSlice."""

    record: ServiceRecord
    address: EndpointAddress


class PublishResult(NamedTuple):
    """Outcome of reconciling one PublishIntent."""

    record: ServiceRecord
    outcome: PublishOutcome
    error: Exception | None = None

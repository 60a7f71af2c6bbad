"""ceph-mgr-endpoints: publish the active Ceph mgr services to Kubernetes.

This package keeps one EndpointSlice per tracked mgr service (dashboard,
prometheus) pointing at whichever manager is currently active.

Example usage:
    from ceph_mgr_endpoints import ConfigSource, Controller, RunConfig, open_channel

    config = RunConfig(service_name="ceph-mgr", targets={"dashboard": "ceph-mgr-dashboard"})
    with open_channel("cli") as channel:
        Controller(channel, kube, ConfigSource(config)).run_cycle()
"""

__version__ = "0.1.0"

from ceph_mgr_endpoints.ceph import CephCliChannel, RadosChannel, open_channel, query_mgr_services
from ceph_mgr_endpoints.cli import cli
from ceph_mgr_endpoints.cluster import KubeClients, connect_kubernetes
from ceph_mgr_endpoints.config import ConfigSource, RunConfig
from ceph_mgr_endpoints.controller import Controller
from ceph_mgr_endpoints.exceptions import (
    AddressResolutionError,
    CephConnectionError,
    ClusterConnectionError,
    ConfigError,
    CycleError,
    DecodeFailedError,
    MgrEndpointsError,
    PublishError,
    QueryFailedError,
    ServiceUnavailableError,
)
from ceph_mgr_endpoints.resolver import resolve_service_url

__all__ = [
    # Version
    "__version__",
    # Main CLI
    "cli",
    # Classes
    "CephCliChannel",
    "ConfigSource",
    "Controller",
    "KubeClients",
    "RadosChannel",
    "RunConfig",
    # Functions
    "connect_kubernetes",
    "open_channel",
    "query_mgr_services",
    "resolve_service_url",
    # Exceptions
    "MgrEndpointsError",
    "AddressResolutionError",
    "CephConnectionError",
    "ClusterConnectionError",
    "ConfigError",
    "CycleError",
    "DecodeFailedError",
    "PublishError",
    "QueryFailedError",
    "ServiceUnavailableError",
]

"""Custom exceptions for ceph-mgr-endpoints.

This module defines the exception hierarchy used throughout the controller.
Connection failures are fatal at startup; everything deriving from
CycleError only aborts the reconciliation cycle in which it was raised.
"""


class MgrEndpointsError(Exception):
    """Base exception for all ceph-mgr-endpoints errors.

    All custom exceptions in this package inherit from this class,
    allowing callers to catch all controller errors with a single
    except clause if desired.
    """

    pass


class ConfigError(MgrEndpointsError):
    """Raised when the run configuration is invalid.

    This can occur when:
    - A target EndpointSlice is set but the namespace or parent service is empty
    - The polling interval is malformed or negative
    - The configuration file is not valid YAML or contains unknown keys
    """

    pass


class ConnectionFailedError(MgrEndpointsError):
    """Base class for failures to reach one of the external systems."""

    pass


class CephConnectionError(ConnectionFailedError):
    """Raised when the Ceph administrative channel cannot be opened.

    This can occur when:
    - The ceph binary or the rados Python binding is not installed
    - The ceph configuration or keyring cannot be read
    - The monitors are unreachable
    """

    pass


class ClusterConnectionError(ConnectionFailedError):
    """Raised when connection to the Kubernetes cluster fails.

    This can occur when:
    - The kubeconfig is invalid or missing and no in-cluster config exists
    - The API server is unreachable
    - Authentication fails
    """

    pass


class CycleError(MgrEndpointsError):
    """Base class for errors that abort or degrade a single cycle."""

    pass


class QueryFailedError(CycleError):
    """Raised when the mgr services command cannot be executed."""

    pass


class DecodeFailedError(CycleError):
    """Raised when the mgr services response is not the expected JSON shape."""

    pass


class ServiceUnavailableError(CycleError):
    """Raised when a configured service is absent from mgr services.

    The mgr only reports a URL for modules that are enabled and running on
    the active manager, so this usually means the module is disabled or a
    failover is in progress.
    """

    def __init__(self, service: str) -> None:
        self.service = service
        super().__init__(f"service {service!r} not found in ceph mgr services")


class AddressResolutionError(CycleError):
    """Raised when a service URL cannot be turned into an endpoint address."""

    pass


class MalformedURLError(AddressResolutionError):
    """Raised when a service URL is structurally invalid."""

    pass


class UnknownSchemeNoPortError(AddressResolutionError):
    """Raised when a URL has no port and its scheme has no known default."""

    pass


class InvalidPortError(AddressResolutionError):
    """Raised when a URL port is not a number in the range 1-65535."""

    pass


class HostnameNotSupportedError(AddressResolutionError):
    """Raised when a URL host is a hostname and hostname resolution is off."""

    pass


class PublishError(CycleError):
    """Raised when writing an EndpointSlice fails.

    Carries the service, namespace and target so that the log entry is
    enough to diagnose the failure. A conflict caused by a concurrent
    writer is reported the same way and retried on the next cycle.
    """

    def __init__(self, message: str, *, service: str = "", namespace: str = "", target: str = "") -> None:
        self.service = service
        self.namespace = namespace
        self.target = target
        super().__init__(message)

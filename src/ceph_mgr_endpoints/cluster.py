"""Kubernetes cluster connection.

This module loads the Kubernetes client configuration and provides the
API handles used by the EndpointSlice reconciler.
"""

import logging
from types import TracebackType

from icecream import ic
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import HTTPError

from ceph_mgr_endpoints.exceptions import ClusterConnectionError

log = logging.getLogger(__name__)


def _load_client_config(kubeconfig: str | None) -> client.Configuration:
    """Load the client configuration.

    Uses the given kubeconfig file, otherwise the in-cluster service
    account, otherwise the default kubeconfig location.

    Raises:
        ClusterConnectionError: If no usable configuration is found.

    """
    configuration = client.Configuration()
    try:
        if kubeconfig:
            config.load_kube_config(config_file=kubeconfig, client_configuration=configuration)
            log.debug("using kubeconfig path=%s", kubeconfig)
            return configuration

        try:
            config.load_incluster_config(client_configuration=configuration)
            log.debug("using in-cluster config")
        except ConfigException:
            config.load_kube_config(client_configuration=configuration)
            log.debug("using default kubeconfig")
    except ConfigException as e:
        raise ClusterConnectionError(f"Invalid or missing kubeconfig: {e}") from e
    return configuration


class KubeClients:
    """API handles shared by every cycle.

    Attributes:
        api_client: The underlying ApiClient, closed on exit.
        core: CoreV1Api used to look up the parent Service.
        discovery: DiscoveryV1Api used to read and write EndpointSlices.

    """

    def __init__(self, api_client: client.ApiClient) -> None:
        self.api_client = api_client
        self.core = client.CoreV1Api(api_client)
        self.discovery = client.DiscoveryV1Api(api_client)

    def __enter__(self) -> "KubeClients":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self.api_client.close()

    def __repr__(self) -> str:
        return f"KubeClients(host={self.api_client.configuration.host!r})"


def connect_kubernetes(kubeconfig: str | None = None, *, timeout: float = 10.0) -> KubeClients:
    """Connect to the Kubernetes API server.

    Args:
        kubeconfig: Optional path to a kubeconfig file.
        timeout: Deadline in seconds for the connectivity probe.

    Returns:
        Connected KubeClients.

    Raises:
        ClusterConnectionError: If the configuration cannot be loaded or
            the API server cannot be reached.

    """
    configuration = _load_client_config(kubeconfig)
    api_client = client.ApiClient(configuration)
    clients = KubeClients(api_client)

    try:
        versions = client.CoreApi(api_client).get_api_versions(_request_timeout=timeout)
    except (ApiException, HTTPError) as e:
        clients.close()
        reason = getattr(e, "reason", e)
        raise ClusterConnectionError(f"Failed to connect to the Kubernetes cluster: {reason}") from e

    ic(versions.versions)
    log.info("connected to kubernetes host=%s", configuration.host)
    return clients

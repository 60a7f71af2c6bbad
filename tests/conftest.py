"""Shared test fixtures for ceph-mgr-endpoints tests."""

import json
from unittest.mock import MagicMock

import pytest

from ceph_mgr_endpoints.config import RunConfig
from ceph_mgr_endpoints.models import AddressFamily, EndpointAddress, PublishIntent, ServiceRecord


@pytest.fixture
def run_config():
    """Configuration publishing both services."""
    return RunConfig(
        namespace="ceph",
        service_name="ceph-mgr",
        targets={"dashboard": "ceph-mgr-dashboard", "prometheus": "ceph-mgr-prometheus"},
    )


@pytest.fixture
def dashboard_intent():
    """Intent for the dashboard on 10.0.0.5:8443."""
    return PublishIntent(
        record=ServiceRecord(name="dashboard", target="ceph-mgr-dashboard", port_name="dashboard"),
        address=EndpointAddress(ip="10.0.0.5", port=8443, family=AddressFamily.IPV4),
    )


@pytest.fixture
def prometheus_intent():
    """Intent for the prometheus exporter on 10.0.0.5:9283."""
    return PublishIntent(
        record=ServiceRecord(name="prometheus", target="ceph-mgr-prometheus", port_name="http-metrics"),
        address=EndpointAddress(ip="10.0.0.5", port=9283, family=AddressFamily.IPV4),
    )


@pytest.fixture
def mock_kube():
    """KubeClients stand-in with mocked core and discovery APIs."""
    kube = MagicMock()
    kube.core.read_namespaced_service.return_value.metadata.name = "ceph-mgr"
    kube.core.read_namespaced_service.return_value.metadata.uid = "0b5c2f8e-uid"
    return kube


@pytest.fixture
def mgr_services_payload():
    """Raw mgr services response with both services running."""
    return {
        "dashboard": "https://10.0.0.5:8443/",
        "prometheus": "http://10.0.0.5:9283/",
    }


@pytest.fixture
def mock_channel(mgr_services_payload):
    """Administrative channel returning the mgr services payload."""
    channel = MagicMock()
    channel.mon_command.return_value = json.dumps(mgr_services_payload).encode()
    return channel

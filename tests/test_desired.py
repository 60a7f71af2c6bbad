"""Tests for desired.py module."""

import pytest

from ceph_mgr_endpoints.config import RunConfig
from ceph_mgr_endpoints.desired import build_intents
from ceph_mgr_endpoints.exceptions import HostnameNotSupportedError, InvalidPortError, ServiceUnavailableError
from ceph_mgr_endpoints.models import AddressFamily, EndpointAddress, ServiceRecord


class TestBuildIntents:
    """Tests for building publish intents."""

    def test_unconfigured_service_is_skipped(self):
        """Test a service without target yields no intent even when absent."""
        config = RunConfig(namespace="ceph", service_name="ceph-mgr", targets={"dashboard": "ceph-mgr-dashboard"})
        services = {"dashboard": "https://10.0.0.5:8443", "prometheus": ""}

        intents = build_intents(services, config)

        assert len(intents) == 1
        assert intents[0].record == ServiceRecord("dashboard", "ceph-mgr-dashboard", "dashboard")
        assert intents[0].address == EndpointAddress("10.0.0.5", 8443, AddressFamily.IPV4)

    def test_configured_service_absent_fails_cycle(self, run_config):
        """Test a configured but absent service aborts the whole build."""
        services = {"dashboard": "https://10.0.0.5:8443", "prometheus": ""}

        with pytest.raises(ServiceUnavailableError) as exc_info:
            build_intents(services, run_config)

        assert exc_info.value.service == "prometheus"
        assert "prometheus" in str(exc_info.value)

    def test_missing_key_counts_as_absent(self, run_config):
        """Test a service missing from the mapping is unavailable."""
        with pytest.raises(ServiceUnavailableError):
            build_intents({"dashboard": "https://10.0.0.5:8443"}, run_config)

    def test_all_configured(self, run_config, mgr_services_payload):
        """Test one intent per configured service in catalog order."""
        intents = build_intents(mgr_services_payload, run_config)

        assert [intent.record.name for intent in intents] == ["dashboard", "prometheus"]
        assert intents[1].record.port_name == "http-metrics"
        assert intents[1].address.port == 9283

    def test_nothing_configured(self):
        """Test no targets means no intents and no failure."""
        config = RunConfig()

        assert build_intents({"dashboard": "", "prometheus": ""}, config) == []

    def test_resolution_failure_names_service(self, run_config):
        """Test resolution errors keep their class and name the service."""
        services = {"dashboard": "https://10.0.0.5:99999", "prometheus": "http://10.0.0.5:9283"}

        with pytest.raises(InvalidPortError) as exc_info:
            build_intents(services, run_config)

        assert "dashboard" in str(exc_info.value)

    def test_hostname_policy_from_config(self, run_config):
        """Test hostnames follow the configured resolution policy."""
        services = {"dashboard": "https://mgr-a:8443", "prometheus": "http://10.0.0.5:9283"}

        with pytest.raises(HostnameNotSupportedError):
            build_intents(services, run_config)

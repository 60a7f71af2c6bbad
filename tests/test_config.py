"""Tests for config.py module."""

import pytest

from ceph_mgr_endpoints.config import (
    ConfigSource,
    RunConfig,
    apply_overrides,
    load_config_file,
    parse_interval,
    validate,
)
from ceph_mgr_endpoints.exceptions import ConfigError


class TestParseInterval:
    """Tests for interval parsing."""

    @pytest.mark.parametrize(
        ("value", "seconds"),
        [
            (0, 0.0),
            (30, 30.0),
            ("45", 45.0),
            ("2.5", 2.5),
            ("", 0.0),
            ("500ms", 0.5),
            ("30s", 30.0),
            ("1m", 60.0),
            ("1h30m", 5400.0),
            ("1m30s", 90.0),
            ("0s", 0.0),
        ],
    )
    def test_valid(self, value, seconds):
        """Test numbers and Go-style durations."""
        assert parse_interval(value) == seconds

    @pytest.mark.parametrize("value", ["abc", "30x", "s", "1m 30s", "-5", "-5s", -1, True])
    def test_invalid(self, value):
        """Test malformed and negative intervals are rejected."""
        with pytest.raises(ConfigError):
            parse_interval(value)


class TestRunConfig:
    """Tests for RunConfig helpers."""

    def test_target_for(self):
        """Test missing and empty targets are both disabled."""
        config = RunConfig(targets={"dashboard": "ceph-mgr-dashboard", "prometheus": ""})

        assert config.target_for("dashboard") == "ceph-mgr-dashboard"
        assert config.target_for("prometheus") == ""
        assert config.target_for("restful") == ""

    def test_publishing(self):
        """Test publishing reflects whether any target is set."""
        assert RunConfig().publishing is False
        assert RunConfig(targets={"prometheus": ""}).publishing is False
        assert RunConfig(targets={"prometheus": "ceph-mgr-prometheus"}).publishing is True

    def test_diff_interval_only(self, run_config):
        """Test a changed interval is the only reported difference."""
        other = apply_overrides(run_config, {"interval": "1m"})

        assert other.diff(run_config) == {"interval"}

    def test_diff_targets_ignore_empty_entries(self):
        """Test an absent target and an empty target compare equal."""
        assert RunConfig(targets={"dashboard": ""}).diff(RunConfig()) == set()
        assert RunConfig(targets={"dashboard": "x"}).diff(RunConfig()) == {"targets"}

    def test_immutable(self, run_config):
        """Test RunConfig cannot be changed in place."""
        with pytest.raises(AttributeError):
            run_config.interval = 5


class TestValidate:
    """Tests for configuration invariants."""

    def test_no_targets_needs_nothing(self):
        """Test discovery-only mode needs no namespace or service."""
        config = RunConfig(namespace="", service_name="")
        assert validate(config) is config

    def test_target_requires_service(self):
        """Test a target without parent service is rejected."""
        with pytest.raises(ConfigError) as exc_info:
            validate(RunConfig(targets={"dashboard": "ceph-mgr-dashboard"}))
        assert "service name" in str(exc_info.value)

    def test_target_requires_namespace(self):
        """Test a target without namespace is rejected."""
        with pytest.raises(ConfigError) as exc_info:
            validate(RunConfig(namespace="", service_name="ceph-mgr", targets={"dashboard": "d"}))
        assert "namespace" in str(exc_info.value)


class TestConfigFile:
    """Tests for the YAML configuration file."""

    def test_load(self, tmp_path):
        """Test a full configuration file is parsed."""
        path = tmp_path / "config.yaml"
        path.write_text(
            "interval: 30s\n"
            "debug: true\n"
            "namespace: rook-ceph\n"
            "service: ceph-mgr\n"
            "dashboard: ceph-mgr-dashboard\n"
            "prometheus: ''\n"
        )

        data = load_config_file(path)

        assert data["interval"] == "30s"
        assert data["dashboard"] == "ceph-mgr-dashboard"

    def test_empty_file(self, tmp_path):
        """Test an empty file is an empty mapping."""
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config_file(path) == {}

    def test_missing_file(self, tmp_path):
        """Test error when the file does not exist."""
        with pytest.raises(ConfigError) as exc_info:
            load_config_file(tmp_path / "missing.yaml")
        assert "does not exist" in str(exc_info.value)

    def test_malformed_yaml(self, tmp_path):
        """Test error on invalid YAML."""
        path = tmp_path / "config.yaml"
        path.write_text("interval: [30s\n")
        with pytest.raises(ConfigError) as exc_info:
            load_config_file(path)
        assert "malformed YAML" in str(exc_info.value)

    def test_not_a_mapping(self, tmp_path):
        """Test error when the document is not a mapping."""
        path = tmp_path / "config.yaml"
        path.write_text("- dashboard\n")
        with pytest.raises(ConfigError):
            load_config_file(path)

    def test_unknown_keys(self, tmp_path):
        """Test error on keys the controller does not understand."""
        path = tmp_path / "config.yaml"
        path.write_text("dashbaord: typo\n")
        with pytest.raises(ConfigError) as exc_info:
            load_config_file(path)
        assert "dashbaord" in str(exc_info.value)

    def test_invalid_encoding(self, tmp_path):
        """Test bytes that are not UTF-8 are reported as malformed YAML."""
        path = tmp_path / "config.yaml"
        path.write_bytes(b"namespace: \xff\xfe\n")
        with pytest.raises(ConfigError) as exc_info:
            load_config_file(path)
        assert "malformed YAML" in str(exc_info.value)

    def test_non_string_keys(self, tmp_path):
        """Test keys that are not strings are rejected."""
        path = tmp_path / "config.yaml"
        path.write_text("1: a\nfoo: b\n")
        with pytest.raises(ConfigError) as exc_info:
            load_config_file(path)
        assert "non-string keys: 1" in str(exc_info.value)


class TestApplyOverrides:
    """Tests for overlaying file values on flags."""

    def test_file_wins(self, run_config):
        """Test file values replace flag values."""
        result = apply_overrides(run_config, {"namespace": "rook-ceph", "prometheus": "", "debug": True})

        assert result.namespace == "rook-ceph"
        assert result.debug is True
        assert result.target_for("prometheus") == ""
        assert result.target_for("dashboard") == "ceph-mgr-dashboard"
        assert result.service_name == "ceph-mgr"

    def test_wrong_types(self, run_config):
        """Test type errors in the file are ConfigError."""
        with pytest.raises(ConfigError):
            apply_overrides(run_config, {"debug": "yes"})
        with pytest.raises(ConfigError):
            apply_overrides(run_config, {"namespace": 5})


class TestConfigSource:
    """Tests for ConfigSource."""

    def test_without_file(self, run_config):
        """Test the base configuration is returned when no file is set."""
        source = ConfigSource(run_config)

        assert source.reloadable is False
        assert source.load() == run_config

    def test_with_file(self, run_config, tmp_path):
        """Test the file is read again on every load."""
        path = tmp_path / "config.yaml"
        path.write_text("interval: 10s\n")
        source = ConfigSource(run_config, path)

        assert source.reloadable is True
        assert source.load().interval == 10.0

        path.write_text("interval: 1m\n")
        assert source.load().interval == 60.0

    def test_invalid_result(self, tmp_path):
        """Test validation runs on the merged configuration."""
        path = tmp_path / "config.yaml"
        path.write_text("dashboard: ceph-mgr-dashboard\n")

        with pytest.raises(ConfigError):
            ConfigSource(RunConfig(), path).load()

    @pytest.mark.parametrize("content", [b"namespace: \xff\xfe\n", b"1: a\nfoo: b\n"])
    def test_unreadable_content(self, run_config, tmp_path, content):
        """Test undecodable files and mixed-type keys are ConfigError."""
        path = tmp_path / "config.yaml"
        path.write_bytes(content)

        with pytest.raises(ConfigError):
            ConfigSource(run_config, path).load()

"""Run configuration for ceph-mgr-endpoints.

This module provides the immutable RunConfig used by each cycle, the
parsing of Go-style durations, and the reloadable YAML configuration file.
"""

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

from ceph_mgr_endpoints.exceptions import ConfigError
from ceph_mgr_endpoints.models import TRACKED_SERVICES

DEFAULT_NAMESPACE = "ceph"

_DURATION_UNITS: dict[str, float] = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")

# Keys accepted in the configuration file
_FILE_KEYS = frozenset({"interval", "debug", "namespace", "service", "resolve_hostnames", *TRACKED_SERVICES})


def parse_interval(value: Any) -> float:
    """Parse a polling interval into seconds.

    Accepts plain numbers of seconds and Go-style durations such as
    '500ms', '30s', '1m' or '1h30m'.

    Args:
        value: The interval as a number or string.

    Returns:
        The interval in seconds; 0 means run once.

    Raises:
        ConfigError: If the value is malformed or negative.

    """
    if isinstance(value, bool):
        raise ConfigError(f"Invalid interval: {value!r}")
    if isinstance(value, int | float):
        seconds = float(value)
    else:
        text = str(value).strip()
        if not text:
            return 0.0
        try:
            seconds = float(text)
        except ValueError:
            pos = 0
            seconds = 0.0
            for match in _DURATION_PART.finditer(text):
                if match.start() != pos:
                    break
                seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
                pos = match.end()
            if pos != len(text):
                raise ConfigError(f"Invalid interval: {text!r}") from None

    if not math.isfinite(seconds):
        raise ConfigError(f"Invalid interval: {value!r}")
    if seconds < 0:
        raise ConfigError(f"Interval must not be negative: {value!r}")
    return seconds


@dataclass(frozen=True)
class RunConfig:
    """Configuration read by a reconciliation cycle.

    Instances are never mutated; a reload produces a new instance that
    replaces the previous one between cycles.

    Attributes:
        interval: Polling interval in seconds, 0 to run once.
        debug: Enable debug logging.
        namespace: Namespace of the published EndpointSlices.
        service_name: Parent Service the EndpointSlices belong to.
        targets: Mgr service name -> EndpointSlice name. Services missing
            here or mapped to an empty string are not published.
        resolve_hostnames: Allow DNS lookup of non-literal service hosts.

    """

    interval: float = 0.0
    debug: bool = False
    namespace: str = DEFAULT_NAMESPACE
    service_name: str = ""
    targets: Mapping[str, str] = field(default_factory=dict)
    resolve_hostnames: bool = False

    def target_for(self, service: str) -> str:
        return self.targets.get(service) or ""

    @property
    def publishing(self) -> bool:
        """Whether any service has a target EndpointSlice."""
        return any(self.target_for(name) for name in TRACKED_SERVICES)

    def diff(self, other: "RunConfig") -> set[str]:
        """Return the names of the fields that differ from ``other``."""
        changed = {f.name for f in fields(self) if f.name != "targets" and getattr(self, f.name) != getattr(other, f.name)}
        if {n: self.target_for(n) for n in TRACKED_SERVICES} != {n: other.target_for(n) for n in TRACKED_SERVICES}:
            changed.add("targets")
        return changed


def validate(config: RunConfig) -> RunConfig:
    """Check the invariants of a RunConfig.

    Raises:
        ConfigError: If a target is set while the namespace or parent
            service name is empty.

    """
    if config.publishing:
        if not config.namespace:
            raise ConfigError("namespace must be set when publishing EndpointSlices")
        if not config.service_name:
            raise ConfigError("service name must be set when publishing EndpointSlices")
    return config


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Parse the YAML configuration file.

    Args:
        path: Path to the configuration file.

    Returns:
        The parsed mapping, empty if the file is empty.

    Raises:
        ConfigError: If the file is missing, malformed, not a mapping, or
            contains unknown keys.

    """
    try:
        # bytes let PyYAML detect the encoding and report bad input as a ReaderError
        with open(path, "rb") as stream:
            data = yaml.safe_load(stream)
    except FileNotFoundError as err:
        raise ConfigError(f"Config file '{path}' does not exist") from err
    except OSError as err:
        raise ConfigError(f"Config file '{path}' cannot be read: {err}") from err
    except yaml.YAMLError as err:
        raise ConfigError(f"Config file '{path}' contains malformed YAML: {err}") from err

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file '{path}' must contain a YAML mapping")

    non_string = [key for key in data if not isinstance(key, str)]
    if non_string:
        raise ConfigError(f"Config file '{path}' contains non-string keys: {', '.join(map(repr, non_string))}")

    unknown = sorted(set(data) - _FILE_KEYS)
    if unknown:
        raise ConfigError(f"Config file '{path}' contains unknown keys: {', '.join(unknown)}")
    return data


def _as_str(data: Mapping[str, Any], key: str, default: str) -> str:
    value = data.get(key, default)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigError(f"Config key '{key}' must be a string")
    return value


def _as_bool(data: Mapping[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"Config key '{key}' must be a boolean")
    return value


def apply_overrides(base: RunConfig, data: Mapping[str, Any]) -> RunConfig:
    """Overlay configuration file values on a base RunConfig."""
    targets = dict(base.targets)
    for name in TRACKED_SERVICES:
        if name in data:
            targets[name] = _as_str(data, name, "")

    return replace(
        base,
        interval=parse_interval(data["interval"]) if "interval" in data else base.interval,
        debug=_as_bool(data, "debug", base.debug),
        namespace=_as_str(data, "namespace", base.namespace),
        service_name=_as_str(data, "service", base.service_name),
        targets=targets,
        resolve_hostnames=_as_bool(data, "resolve_hostnames", base.resolve_hostnames),
    )


class ConfigSource:
    """Produces RunConfig values from flags and an optional file.

    Attributes:
        base: Configuration built from command-line flags and environment.
        path: Optional YAML file overlaid on ``base`` at every load.

    """

    def __init__(self, base: RunConfig, path: str | Path | None = None) -> None:
        self.base = base
        self.path = Path(path) if path else None

    @property
    def reloadable(self) -> bool:
        return self.path is not None

    def load(self) -> RunConfig:
        """Build and validate the current RunConfig.

        Raises:
            ConfigError: If the file or the resulting configuration is invalid.

        """
        if self.path is None:
            return validate(self.base)
        return validate(apply_overrides(self.base, load_config_file(self.path)))

    def __repr__(self) -> str:
        return f"ConfigSource(path={self.path!r})"

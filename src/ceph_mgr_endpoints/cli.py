#!/usr/bin/env python
"""Command-line interface for ceph-mgr-endpoints.

This module provides the main CLI entry point, handling option parsing,
opening the Ceph and Kubernetes connections and running the controller
until it finishes or is interrupted.
"""

import contextlib
import signal
import sys
from collections.abc import Generator
from typing import Any

import click

from ceph_mgr_endpoints import __version__, console
from ceph_mgr_endpoints.ceph import BACKENDS, open_channel
from ceph_mgr_endpoints.cluster import connect_kubernetes
from ceph_mgr_endpoints.config import DEFAULT_NAMESPACE, ConfigSource, RunConfig, parse_interval
from ceph_mgr_endpoints.controller import Controller
from ceph_mgr_endpoints.exceptions import ConfigError, ConnectionFailedError, MgrEndpointsError

_ENV_PREFIX = "CEPH_MGR_ENDPOINTS"


class IntervalType(click.ParamType):
    """Click parameter accepting seconds or Go-style durations (30s, 1m)."""

    name = "duration"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> float:
        try:
            return parse_interval(value)
        except ConfigError as e:
            self.fail(str(e), param, ctx)


@contextlib.contextmanager
def handle_signals(controller: Controller) -> Generator[None, None, None]:
    """Stop the controller on SIGINT and SIGTERM.

    The previous handlers are restored on exit.

    Args:
        controller: The controller to stop.

    Yields:
        None

    """

    def _stop(signum: int, frame: Any) -> None:
        console.console.log(f"Received {signal.Signals(signum).name}, finishing current cycle")
        controller.request_stop()

    previous = {sig: signal.signal(sig, _stop) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def _summary(run_config: RunConfig, source: ConfigSource, backend: str) -> dict[str, str]:
    items = {
        "Namespace": run_config.namespace or "-",
        "Service": run_config.service_name or "-",
        "Dashboard": run_config.target_for("dashboard") or "-",
        "Prometheus": run_config.target_for("prometheus") or "-",
        "Interval": f"{run_config.interval:g}s" if run_config.interval else "run once",
        "Ceph backend": backend,
    }
    if source.path is not None:
        items["Config file"] = str(source.path)
    return items


@click.command(help="Publish the active Ceph mgr services as Kubernetes EndpointSlices")
@click.option("--version", "-v", required=False, is_flag=True, help="print version")
@click.option("--debug", required=False, is_flag=True, envvar=f"{_ENV_PREFIX}_DEBUG", help="enable debug logging")
@click.option(
    "--kubeconfig",
    required=False,
    envvar=f"{_ENV_PREFIX}_KUBECONFIG",
    help="path to kubeconfig file (uses in-cluster config if not set)",
)
@click.option(
    "--namespace",
    "-n",
    default=DEFAULT_NAMESPACE,
    show_default=True,
    envvar=f"{_ENV_PREFIX}_NAMESPACE",
    help="namespace of the EndpointSlices",
)
@click.option("--service", default="", envvar=f"{_ENV_PREFIX}_SERVICE", help="parent Service of the EndpointSlices")
@click.option(
    "--dashboard-service",
    default="",
    envvar=f"{_ENV_PREFIX}_DASHBOARD_SERVICE",
    help="EndpointSlice name for the dashboard",
)
@click.option(
    "--prometheus-service",
    default="",
    envvar=f"{_ENV_PREFIX}_PROMETHEUS_SERVICE",
    help="EndpointSlice name for the prometheus exporter",
)
@click.option(
    "--interval",
    type=IntervalType(),
    default="0",
    envvar=f"{_ENV_PREFIX}_INTERVAL",
    help="polling interval (e.g. 30s, 1m); runs once if not set",
)
@click.option(
    "--config",
    "config_file",
    required=False,
    type=click.Path(dir_okay=False),
    envvar=f"{_ENV_PREFIX}_CONFIG",
    help="YAML configuration file, reloaded before every cycle",
)
@click.option(
    "--resolve-hostnames",
    is_flag=True,
    envvar=f"{_ENV_PREFIX}_RESOLVE_HOSTNAMES",
    help="resolve non-IP mgr service hosts through DNS",
)
@click.option(
    "--ceph-backend",
    type=click.Choice(BACKENDS),
    default="cli",
    show_default=True,
    envvar=f"{_ENV_PREFIX}_CEPH_BACKEND",
    help="how monitor commands are sent",
)
@click.option("--ceph-conf", required=False, envvar=f"{_ENV_PREFIX}_CEPH_CONF", help="path to ceph.conf")
@click.option("--ceph-id", required=False, envvar=f"{_ENV_PREFIX}_CEPH_ID", help="ceph client id")
@click.option(
    "--api-timeout",
    type=float,
    default=10.0,
    show_default=True,
    envvar=f"{_ENV_PREFIX}_API_TIMEOUT",
    help="deadline in seconds for each Kubernetes API call",
)
@click.option(
    "--ceph-timeout",
    type=float,
    default=30.0,
    show_default=True,
    envvar=f"{_ENV_PREFIX}_CEPH_TIMEOUT",
    help="deadline in seconds for each Ceph monitor command",
)
def cli(
    version: bool,
    debug: bool,
    kubeconfig: str | None,
    namespace: str,
    service: str,
    dashboard_service: str,
    prometheus_service: str,
    interval: float,
    config_file: str | None,
    resolve_hostnames: bool,
    ceph_backend: str,
    ceph_conf: str | None,
    ceph_id: str | None,
    api_timeout: float,
    ceph_timeout: float,
) -> None:
    """Process CLI arguments and run the controller.

    Args:
        version: Print version and exit.
        debug: Enable debug output.
        kubeconfig: Path to a kubeconfig file.
        namespace: Namespace of the EndpointSlices.
        service: Parent Service name.
        dashboard_service: EndpointSlice name for the dashboard.
        prometheus_service: EndpointSlice name for prometheus.
        interval: Polling interval in seconds, 0 to run once.
        config_file: Optional reloadable YAML configuration.
        resolve_hostnames: Allow DNS lookup of mgr service hosts.
        ceph_backend: 'cli' or 'rados'.
        ceph_conf: Path to ceph.conf.
        ceph_id: Ceph client id.
        api_timeout: Kubernetes API call deadline in seconds.
        ceph_timeout: Ceph monitor command deadline in seconds.

    """
    if version:
        click.echo(__version__)
        return

    base = RunConfig(
        interval=interval,
        debug=debug,
        namespace=namespace,
        service_name=service,
        targets={"dashboard": dashboard_service, "prometheus": prometheus_service},
        resolve_hostnames=resolve_hostnames,
    )
    source = ConfigSource(base, config_file)
    try:
        run_config = source.load()
    except ConfigError as e:
        raise click.UsageError(str(e)) from None

    console.configure_logging(run_config.debug)
    console.summary_panel("ceph-mgr-endpoints", _summary(run_config, source, ceph_backend))

    try:
        with contextlib.ExitStack() as stack:
            channel = stack.enter_context(
                open_channel(ceph_backend, conf=ceph_conf, client_id=ceph_id, timeout=ceph_timeout)
            )
            kube = None
            if run_config.publishing or source.reloadable:
                kube = stack.enter_context(connect_kubernetes(kubeconfig, timeout=api_timeout))

            controller = Controller(channel, kube, source, run_config, api_timeout=api_timeout)
            with handle_signals(controller):
                controller.run()
    except ConnectionFailedError as e:
        console.error(f"Connection failed: {e}")
        sys.exit(1)
    except MgrEndpointsError as e:
        console.error(f"Run failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli()

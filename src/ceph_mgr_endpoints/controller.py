"""Reconciliation scheduler.

This module provides the Controller, which runs the discover, resolve and
publish cycle once at startup and then on a timer, reloading its
configuration between cycles.
"""

import logging
import threading
import time
from collections.abc import Callable

from ceph_mgr_endpoints import console
from ceph_mgr_endpoints.ceph import AdminChannel, query_mgr_services
from ceph_mgr_endpoints.cluster import KubeClients
from ceph_mgr_endpoints.config import ConfigSource, RunConfig
from ceph_mgr_endpoints.desired import build_intents
from ceph_mgr_endpoints.endpoints import reconcile_all
from ceph_mgr_endpoints.exceptions import ConfigError, MgrEndpointsError, PublishError
from ceph_mgr_endpoints.models import PublishOutcome, PublishResult

log = logging.getLogger(__name__)

# longest a signal-requested stop waits to be noticed
STOP_POLL_INTERVAL = 0.5


class Controller:
    """Keeps the mgr service EndpointSlices in sync with the active mgr.

    The controller owns both client handles and the current RunConfig.
    Cycles never overlap: the loop is single threaded. ``stop()`` may be
    called from another thread and ``request_stop()`` from a signal
    handler; both are honoured once the cycle in flight has completed.

    Attributes:
        channel: Connected Ceph administrative channel.
        kube: Kubernetes API handles, or None when nothing is published.
        source: Where the configuration is reloaded from.
        config: The configuration used by the next cycle.
        api_timeout: Deadline in seconds for each Kubernetes API call.

    """

    def __init__(
        self,
        channel: AdminChannel,
        kube: KubeClients | None,
        source: ConfigSource,
        config: RunConfig | None = None,
        *,
        api_timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.channel = channel
        self.kube = kube
        self.source = source
        self.config: RunConfig = config if config is not None else source.load()
        self.api_timeout = api_timeout
        self._clock = clock
        self._stop = threading.Event()
        self._stop_requested = False

    def stop(self) -> None:
        """Request the loop to terminate after the current cycle."""
        self._stop.set()

    def request_stop(self) -> None:
        """Request termination from a signal handler.

        Only a flag is set, no lock is taken, so this is safe to call while
        the main thread is inside the loop's wait. The wait notices the flag
        within ``STOP_POLL_INTERVAL`` seconds.
        """
        self._stop_requested = True

    @property
    def stopped(self) -> bool:
        return self._stop_requested or self._stop.is_set()

    def _wait(self, delay: float) -> bool:
        """Wait up to delay seconds, returning True if a stop was requested."""
        deadline = self._clock() + delay
        while not self._stop_requested:
            remaining = deadline - self._clock()
            if remaining <= 0:
                return False
            if self._stop.wait(min(remaining, STOP_POLL_INTERVAL)):
                return True
        return True

    def run_cycle(self) -> list[PublishResult]:
        """Run one discover, resolve and publish cycle.

        Returns:
            The outcome of every published EndpointSlice.

        Raises:
            QueryFailedError: If mgr services cannot be queried.
            DecodeFailedError: If the mgr services response is malformed.
            ServiceUnavailableError: If a configured service is not reported.
            AddressResolutionError: If a configured service URL is unusable.
            PublishError: If any EndpointSlice failed to publish, raised
                after all of them were attempted.

        """
        config = self.config
        services = query_mgr_services(self.channel)
        intents = build_intents(services, config)
        if not intents:
            log.debug("no endpointslices configured, nothing to publish")
            return []

        if self.kube is None:
            raise PublishError("kubernetes client is not connected", namespace=config.namespace)

        results = reconcile_all(
            self.kube,
            intents,
            namespace=config.namespace,
            service_name=config.service_name,
            timeout=self.api_timeout,
        )

        failed = [result.record.name for result in results if result.outcome is PublishOutcome.FAILED]
        if failed:
            raise PublishError(
                f"failed to publish {len(failed)} of {len(results)} endpointslices: {', '.join(failed)}",
                service=",".join(failed),
                namespace=config.namespace,
            )
        return results

    def reload(self) -> bool:
        """Reload the configuration and apply what changed.

        A failed reload keeps the previous configuration.

        Returns:
            False if the new interval is 0 and the loop should stop.

        """
        try:
            new = self.source.load()
        except ConfigError as err:
            log.warning("config reload failed, keeping previous configuration error=%s", err)
            return True

        old = self.config
        changed = new.diff(old)
        if not changed:
            return True

        self.config = new

        if "debug" in changed:
            console.set_debug(new.debug)
            log.info("debug logging %s", "enabled" if new.debug else "disabled")

        if "interval" in changed:
            if new.interval <= 0:
                log.info("interval set to 0, stopping")
                return False
            log.info("interval changed old=%ss new=%ss", old.interval, new.interval)

        others = sorted(changed - {"debug", "interval"})
        if others:
            log.info("configuration changed fields=%s", ",".join(others))
        return True

    def _guarded_cycle(self, *, fatal: bool = False) -> None:
        try:
            self.run_cycle()
        except MgrEndpointsError as err:
            if fatal:
                raise
            log.error("run failed error=%s", err)
        except Exception:
            if fatal:
                raise
            log.exception("run failed with unexpected error")

    def run(self) -> None:
        """Run the first cycle, then keep running on the configured interval.

        With an interval of 0 only the first cycle runs and its failure is
        raised to the caller. Otherwise failures are logged and the loop
        continues until ``stop()`` is called or a reload sets the interval
        to 0.
        """
        single_shot = self.config.interval <= 0
        self._guarded_cycle(fatal=single_shot)
        if single_shot:
            return

        next_tick = self._clock() + self.config.interval
        while True:
            if self._wait(max(0.0, next_tick - self._clock())):
                log.info("shutdown requested, stopping")
                return

            tick = self._clock()
            if self.source.reloadable and not self.reload():
                return
            # missed ticks are dropped, not queued
            next_tick = tick + self.config.interval

            self._guarded_cycle()

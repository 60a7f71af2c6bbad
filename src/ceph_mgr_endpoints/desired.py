"""Desired-state builder.

Combines the discovered mgr service URLs with the run configuration into
the list of EndpointSlices a cycle should publish.
"""

import logging
from collections.abc import Mapping

from ceph_mgr_endpoints.config import RunConfig
from ceph_mgr_endpoints.exceptions import AddressResolutionError, ServiceUnavailableError
from ceph_mgr_endpoints.models import TRACKED_SERVICES, PublishIntent, ServiceRecord
from ceph_mgr_endpoints.resolver import resolve_service_url

log = logging.getLogger(__name__)


def build_intents(services: Mapping[str, str], config: RunConfig) -> list[PublishIntent]:
    """Build the publish intents for one cycle.

    Every tracked service is logged for visibility. Only services with a
    configured target produce an intent. The build is all-or-nothing: a
    configured service that is missing or cannot be resolved fails the
    whole cycle before anything is written.

    Args:
        services: Mgr service name -> URL, as returned by query_mgr_services.
        config: The configuration of the current cycle.

    Returns:
        One PublishIntent per configured service, in catalog order.

    Raises:
        ServiceUnavailableError: If a configured service has no URL.
        AddressResolutionError: If a configured service URL cannot be resolved.

    """
    for name in TRACKED_SERVICES:
        url = services.get(name, "")
        if url:
            log.debug("discovered service service=%s url=%s", name, url)
        else:
            log.debug("service not reported by mgr service=%s", name)

    intents: list[PublishIntent] = []
    for name, port_name in TRACKED_SERVICES.items():
        target = config.target_for(name)
        if not target:
            continue

        url = services.get(name, "")
        if not url:
            raise ServiceUnavailableError(name)

        try:
            address = resolve_service_url(url, resolve_hostnames=config.resolve_hostnames)
        except AddressResolutionError as err:
            raise type(err)(f"service {name!r}: {err}") from err
        intents.append(PublishIntent(record=ServiceRecord(name=name, target=target, port_name=port_name), address=address))

    return intents

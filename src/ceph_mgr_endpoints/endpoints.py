"""EndpointSlice reconciliation.

This module makes the EndpointSlices of the tracked mgr services match
the addresses discovered in the current cycle, writing only when the
published state differs.
"""

import logging
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from icecream import ic
from kubernetes import client
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from ceph_mgr_endpoints.cluster import KubeClients
from ceph_mgr_endpoints.exceptions import PublishError
from ceph_mgr_endpoints.models import PROTOCOL, PublishIntent, PublishOutcome, PublishResult

log = logging.getLogger(__name__)

SERVICE_NAME_LABEL = "kubernetes.io/service-name"
MANAGED_BY_LABEL = "endpointslice.kubernetes.io/managed-by"
MANAGED_BY = "ceph-mgr-endpoints.ceph.io"

T = TypeVar("T")


def endpoint_slice_matches(existing: client.V1EndpointSlice | None, intent: PublishIntent, service_name: str) -> bool:
    """Check whether a published EndpointSlice already reflects an intent.

    The comparison is total: any extra, missing or different address,
    port, label or address type counts as a mismatch.

    Args:
        existing: The EndpointSlice read from the API, or None if absent.
        intent: The desired address and port.
        service_name: The parent Service name expected in the labels.

    Returns:
        True if no write is needed.

    """
    if existing is None:
        return False

    labels = (existing.metadata.labels if existing.metadata else None) or {}
    if labels.get(SERVICE_NAME_LABEL) != service_name:
        return False

    if existing.address_type != intent.address.family.value:
        return False

    endpoints = existing.endpoints or []
    if len(endpoints) != 1:
        return False
    addresses = endpoints[0].addresses or []
    if len(addresses) != 1 or addresses[0] != intent.address.ip:
        return False

    ports = existing.ports or []
    if len(ports) != 1:
        return False
    port = ports[0]
    return (
        port.name == intent.record.port_name
        and port.port == intent.address.port
        and port.protocol == PROTOCOL
    )


def build_endpoint_slice(
    intent: PublishIntent,
    namespace: str,
    service_name: str,
    owner_references: list[client.V1OwnerReference] | None = None,
) -> client.V1EndpointSlice:
    """Build the complete desired EndpointSlice for an intent.

    Args:
        intent: The address and port to publish.
        namespace: Namespace of the EndpointSlice.
        service_name: The parent Service name.
        owner_references: Optional owner references for garbage collection.

    Returns:
        The EndpointSlice body to create or replace.

    """
    return client.V1EndpointSlice(
        api_version="discovery.k8s.io/v1",
        kind="EndpointSlice",
        metadata=client.V1ObjectMeta(
            name=intent.record.target,
            namespace=namespace,
            labels={
                SERVICE_NAME_LABEL: service_name,
                MANAGED_BY_LABEL: MANAGED_BY,
            },
            owner_references=owner_references or None,
        ),
        address_type=intent.address.family.value,
        endpoints=[
            client.V1Endpoint(
                addresses=[intent.address.ip],
                conditions=client.V1EndpointConditions(ready=True),
            )
        ],
        ports=[
            client.DiscoveryV1EndpointPort(
                name=intent.record.port_name,
                port=intent.address.port,
                protocol=PROTOCOL,
            )
        ],
    )


def _call(action: str, intent: PublishIntent, namespace: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run an API call, wrapping transport errors in PublishError.

    ApiException is re-raised untouched so callers can inspect the status.
    """
    try:
        return fn(*args, **kwargs)
    except ApiException:
        raise
    except HTTPError as err:
        raise PublishError(
            f"{action} endpointslice {namespace}/{intent.record.target}: {err}",
            service=intent.record.name,
            namespace=namespace,
            target=intent.record.target,
        ) from err


def _publish_error(action: str, intent: PublishIntent, namespace: str, err: ApiException) -> PublishError:
    return PublishError(
        f"{action} endpointslice {namespace}/{intent.record.target}: {err.status} {err.reason}",
        service=intent.record.name,
        namespace=namespace,
        target=intent.record.target,
    )


def _owner_references(
    clients: KubeClients,
    namespace: str,
    service_name: str,
    timeout: float,
) -> list[client.V1OwnerReference] | None:
    """Look up the parent Service and reference it as owner.

    Returns None when the Service cannot be read; the EndpointSlice is
    still published in that case.
    """
    try:
        service = clients.core.read_namespaced_service(service_name, namespace, _request_timeout=timeout)
    except (ApiException, HTTPError) as err:
        reason = err.reason if isinstance(err, ApiException) else err
        log.warning(
            "cannot set owner reference, parent service lookup failed namespace=%s service=%s error=%s",
            namespace,
            service_name,
            reason,
        )
        return None

    return [
        client.V1OwnerReference(
            api_version="v1",
            kind="Service",
            name=service.metadata.name,
            uid=service.metadata.uid,
            controller=True,
            block_owner_deletion=True,
        )
    ]


def reconcile_endpoint_slice(
    clients: KubeClients,
    intent: PublishIntent,
    *,
    namespace: str,
    service_name: str,
    timeout: float = 10.0,
) -> PublishOutcome:
    """Make the EndpointSlice of one service match its intent.

    Reads the current EndpointSlice and returns without writing when it
    already matches. Otherwise the complete object is written: replaced
    in place using the read resourceVersion, so a concurrent writer
    causes a conflict instead of a lost update, or created when absent.

    Args:
        clients: Kubernetes API handles.
        intent: The address and port to publish.
        namespace: Namespace of the EndpointSlice.
        service_name: The parent Service name.
        timeout: Deadline in seconds for each API call.

    Returns:
        The outcome: created, updated or unchanged.

    Raises:
        PublishError: If reading or writing the EndpointSlice fails.

    """
    record = intent.record
    slices = clients.discovery

    try:
        existing = _call(
            "get",
            intent,
            namespace,
            slices.read_namespaced_endpoint_slice,
            record.target,
            namespace,
            _request_timeout=timeout,
        )
    except ApiException as err:
        if err.status != 404:
            raise _publish_error("get", intent, namespace, err) from err
        existing = None

    if endpoint_slice_matches(existing, intent, service_name):
        log.debug(
            "endpointslice already up-to-date service=%s namespace=%s target=%s",
            record.name,
            namespace,
            record.target,
        )
        return PublishOutcome.UNCHANGED

    owners = _owner_references(clients, namespace, service_name, timeout)
    if owners is None and existing is not None and existing.metadata:
        owners = existing.metadata.owner_references

    body = build_endpoint_slice(intent, namespace, service_name, owners)
    ic(body.to_dict())

    if existing is not None:
        body.metadata.resource_version = existing.metadata.resource_version
        try:
            _call(
                "update",
                intent,
                namespace,
                slices.replace_namespaced_endpoint_slice,
                record.target,
                namespace,
                body,
                _request_timeout=timeout,
            )
        except ApiException as err:
            if err.status != 404:
                raise _publish_error("update", intent, namespace, err) from err
            body.metadata.resource_version = None
        else:
            log.info(
                "updated endpointslice service=%s namespace=%s target=%s ip=%s port=%d",
                record.name,
                namespace,
                record.target,
                intent.address.ip,
                intent.address.port,
            )
            return PublishOutcome.UPDATED

    try:
        _call(
            "create",
            intent,
            namespace,
            slices.create_namespaced_endpoint_slice,
            namespace,
            body,
            _request_timeout=timeout,
        )
    except ApiException as err:
        raise _publish_error("create", intent, namespace, err) from err

    log.info(
        "created endpointslice service=%s namespace=%s target=%s ip=%s port=%d",
        record.name,
        namespace,
        record.target,
        intent.address.ip,
        intent.address.port,
    )
    return PublishOutcome.CREATED


def reconcile_all(
    clients: KubeClients,
    intents: Iterable[PublishIntent],
    *,
    namespace: str,
    service_name: str,
    timeout: float = 10.0,
) -> list[PublishResult]:
    """Reconcile every intent independently.

    A failure on one EndpointSlice is logged and recorded in the results
    but never prevents the remaining ones from being reconciled.

    Returns:
        One PublishResult per intent, in order.

    """
    results: list[PublishResult] = []
    for intent in intents:
        try:
            outcome = reconcile_endpoint_slice(
                clients,
                intent,
                namespace=namespace,
                service_name=service_name,
                timeout=timeout,
            )
        except PublishError as err:
            log.error(
                "failed to publish endpointslice service=%s namespace=%s target=%s error=%s",
                err.service,
                err.namespace,
                err.target,
                err,
            )
            results.append(PublishResult(intent.record, PublishOutcome.FAILED, err))
        else:
            results.append(PublishResult(intent.record, outcome))
    return results

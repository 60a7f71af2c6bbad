"""Service URL resolution.

This module turns the URLs reported by ``ceph mgr services`` into
endpoint addresses that can be published in an EndpointSlice.
"""

import ipaddress
import logging
import socket
from urllib.parse import urlsplit

from ceph_mgr_endpoints.exceptions import (
    AddressResolutionError,
    HostnameNotSupportedError,
    InvalidPortError,
    MalformedURLError,
    UnknownSchemeNoPortError,
)
from ceph_mgr_endpoints.models import AddressFamily, EndpointAddress

log = logging.getLogger(__name__)

_DEFAULT_PORTS: dict[str, int] = {
    "https": 443,
    "http": 80,
}


def _split_port(netloc: str) -> str:
    """Return the raw port text of a URL netloc, or an empty string."""
    hostinfo = netloc.rpartition("@")[2]
    if hostinfo.startswith("["):
        rest = hostinfo.partition("]")[2]
        return rest[1:] if rest.startswith(":") else ""
    return hostinfo.partition(":")[2]


def _parse_port(port_text: str, scheme: str, raw_url: str) -> int:
    if not port_text:
        if scheme not in _DEFAULT_PORTS:
            raise UnknownSchemeNoPortError(f"no port specified and unknown scheme {scheme!r} in {raw_url!r}")
        return _DEFAULT_PORTS[scheme]

    if not (port_text.isascii() and port_text.isdigit()):
        raise InvalidPortError(f"invalid port {port_text!r} in {raw_url!r}")

    port = int(port_text)
    if not 1 <= port <= 65535:
        raise InvalidPortError(f"port {port} out of range in {raw_url!r}")
    return port


def _lookup_hostname(host: str, port: int) -> ipaddress.IPv4Address | ipaddress.IPv6Address:
    """Resolve a hostname, preferring the first IPv4 result."""
    try:
        infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError) as err:
        raise AddressResolutionError(f"resolve hostname {host!r}: {err}") from err

    if not infos:
        raise AddressResolutionError(f"no IPs found for hostname {host!r}")

    addresses = [ipaddress.ip_address(info[4][0]) for info in infos]
    chosen = next((addr for addr in addresses if addr.version == 4), addresses[0])
    log.warning(
        "resolved hostname through DNS, address may change between cycles host=%s ip=%s",
        host,
        chosen,
    )
    return chosen


def resolve_service_url(raw_url: str, *, resolve_hostnames: bool = False) -> EndpointAddress:
    """Resolve a mgr service URL into an endpoint address.

    The port defaults to 443 for https and 80 for http. The host must be
    an IP literal unless ``resolve_hostnames`` is set, in which case a
    hostname is looked up and the first IPv4 result is preferred.

    Args:
        raw_url: URL as reported by ``ceph mgr services``.
        resolve_hostnames: Allow DNS lookup of non-literal hosts.

    Returns:
        The resolved EndpointAddress.

    Raises:
        MalformedURLError: If the URL cannot be parsed or lacks a scheme or host.
        UnknownSchemeNoPortError: If there is no port and no default for the scheme.
        InvalidPortError: If the port is not numeric or out of range.
        HostnameNotSupportedError: If the host is not an IP literal and
            hostname resolution is disabled.
        AddressResolutionError: If hostname resolution fails.

    """
    try:
        parts = urlsplit(raw_url.strip())
        host = parts.hostname
    except ValueError as err:
        raise MalformedURLError(f"parse URL {raw_url!r}: {err}") from err

    if not parts.scheme or not host:
        raise MalformedURLError(f"URL {raw_url!r} must have a scheme and a host")

    scheme = parts.scheme.lower()
    port = _parse_port(_split_port(parts.netloc), scheme, raw_url)

    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        if not resolve_hostnames:
            raise HostnameNotSupportedError(
                f"host {host!r} in {raw_url!r} is not an IP literal and hostname resolution is disabled"
            ) from None
        ip = _lookup_hostname(host, port)

    family = AddressFamily.IPV4 if ip.version == 4 else AddressFamily.IPV6
    return EndpointAddress(ip=str(ip), port=port, family=family)

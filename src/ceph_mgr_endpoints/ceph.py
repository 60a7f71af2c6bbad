"""Ceph administrative channel and mgr service discovery.

This module provides the channels used to send monitor commands to the
Ceph cluster and the ``mgr services`` query built on top of them.
"""

import json
import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from types import TracebackType
from typing import Any, Protocol

from icecream import ic

from ceph_mgr_endpoints.exceptions import (
    CephConnectionError,
    DecodeFailedError,
    QueryFailedError,
)
from ceph_mgr_endpoints.models import TRACKED_SERVICES

log = logging.getLogger(__name__)

MGR_SERVICES_COMMAND: dict[str, str] = {
    "prefix": "mgr services",
    "format": "json",
}

BACKENDS = ("cli", "rados")


class AdminChannel(Protocol):
    """A connection that executes monitor commands."""

    def connect(self) -> None: ...

    def close(self) -> None: ...

    def mon_command(self, cmd: dict[str, str]) -> bytes: ...


class _ChannelContext(ABC):
    """Scoped acquisition shared by the channel implementations."""

    @abstractmethod
    def connect(self) -> None: ...

    @abstractmethod
    def close(self) -> None: ...

    @abstractmethod
    def mon_command(self, cmd: dict[str, str]) -> bytes: ...

    def __enter__(self) -> "_ChannelContext":
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


class CephCliChannel(_ChannelContext):
    """Monitor commands executed through the ``ceph`` binary.

    Attributes:
        binary: Name or path of the ceph executable.
        conf: Optional path to ceph.conf.
        client_id: Optional client id (``--id``) used for authentication.
        timeout: Seconds to wait for a single command.

    """

    def __init__(
        self,
        *,
        conf: str | None = None,
        client_id: str | None = None,
        timeout: float = 30.0,
        binary: str = "ceph",
    ) -> None:
        self.binary = binary
        self.conf = conf
        self.client_id = client_id
        self.timeout = timeout
        self._path: str | None = None

    def _base_cmd(self) -> list[str]:
        cmd = [self._path or self.binary]
        if self.conf:
            cmd += ["--conf", self.conf]
        if self.client_id:
            cmd += ["--id", self.client_id]
        return cmd

    def connect(self) -> None:
        """Check that the ceph binary is available and usable.

        Raises:
            CephConnectionError: If the binary is missing or does not run.

        """
        path = shutil.which(self.binary)
        if path is None:
            raise CephConnectionError(f"{self.binary!r} binary not found in PATH")
        self._path = path

        try:
            subprocess.run([path, "--version"], capture_output=True, check=True, timeout=self.timeout)
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as err:
            raise CephConnectionError(f"failed to run {path!r}: {err}") from err
        ic(self._base_cmd())

    def close(self) -> None:
        self._path = None

    def mon_command(self, cmd: dict[str, str]) -> bytes:
        """Run a monitor command and return its raw output.

        Raises:
            QueryFailedError: If the command fails or times out.

        """
        args = [*self._base_cmd(), *cmd["prefix"].split(), "--format", cmd.get("format", "json")]
        ic(args)
        try:
            result = subprocess.run(args, capture_output=True, check=True, timeout=self.timeout)
        except subprocess.CalledProcessError as err:
            stderr = err.stderr.decode(errors="replace").strip() if err.stderr else ""
            raise QueryFailedError(
                f"command {cmd['prefix']!r} failed (exit code {err.returncode}): {stderr}"
            ) from err
        except subprocess.TimeoutExpired as err:
            raise QueryFailedError(f"command {cmd['prefix']!r} timed out after {self.timeout}s") from err
        except OSError as err:
            raise QueryFailedError(f"command {cmd['prefix']!r} could not be executed: {err}") from err
        return result.stdout


class RadosChannel(_ChannelContext):
    """Monitor commands sent through librados.

    Requires the ``rados`` Python binding shipped with Ceph (``python3-rados``),
    which is imported when the channel connects.
    """

    def __init__(self, *, conf: str | None = None, client_id: str | None = None, timeout: float = 30.0) -> None:
        self.conf = conf
        self.client_id = client_id
        self.timeout = timeout
        self._cluster: Any = None
        self._rados: Any = None

    def connect(self) -> None:
        """Connect to the cluster monitors.

        Raises:
            CephConnectionError: If the binding is missing or the connection fails.

        """
        try:
            import rados
        except ImportError as err:
            raise CephConnectionError("the rados Python binding (python3-rados) is not installed") from err

        kwargs: dict[str, Any] = {"conffile": self.conf or ""}
        if self.client_id:
            kwargs["rados_id"] = self.client_id

        try:
            cluster = rados.Rados(**kwargs)
            if not self.conf:
                cluster.conf_read_file()
            cluster.connect(timeout=int(self.timeout))
        except rados.Error as err:
            raise CephConnectionError(f"failed to connect to cluster: {err}") from err
        self._rados = rados
        self._cluster = cluster

    def close(self) -> None:
        if self._cluster is not None:
            self._cluster.shutdown()
            self._cluster = None

    def mon_command(self, cmd: dict[str, str]) -> bytes:
        """Send a monitor command and return its output buffer.

        Raises:
            QueryFailedError: If the channel is closed or the command fails.

        """
        if self._cluster is None:
            raise QueryFailedError("rados channel is not connected")

        try:
            ret, outbuf, outs = self._cluster.mon_command(json.dumps(cmd), b"", timeout=int(self.timeout))
        except self._rados.Error as err:
            raise QueryFailedError(f"command {cmd['prefix']!r} failed: {err}") from err
        if ret != 0:
            raise QueryFailedError(f"command {cmd['prefix']!r} returned {ret}: {outs}")
        return outbuf


def open_channel(
    backend: str,
    *,
    conf: str | None = None,
    client_id: str | None = None,
    timeout: float = 30.0,
) -> CephCliChannel | RadosChannel:
    """Create an unconnected channel for the given backend.

    Args:
        backend: Either 'cli' or 'rados'.
        conf: Optional path to ceph.conf.
        client_id: Optional Ceph client id.
        timeout: Per-command timeout in seconds.

    Returns:
        The channel, to be used as a context manager.

    """
    match backend:
        case "cli":
            return CephCliChannel(conf=conf, client_id=client_id, timeout=timeout)
        case "rados":
            return RadosChannel(conf=conf, client_id=client_id, timeout=timeout)
        case _:
            raise ValueError(f"Unknown ceph backend: {backend!r}")


def query_mgr_services(channel: AdminChannel) -> dict[str, str]:
    """Ask the active mgr which service URLs it exposes.

    Args:
        channel: A connected administrative channel.

    Returns:
        Mapping of every tracked service name to its URL. Services the mgr
        does not report map to an empty string.

    Raises:
        QueryFailedError: If the command cannot be executed.
        DecodeFailedError: If the response is not a JSON object of strings.

    """
    buf = channel.mon_command(MGR_SERVICES_COMMAND)
    ic(buf)

    try:
        payload = json.loads(buf)
    except (json.JSONDecodeError, UnicodeDecodeError) as err:
        raise DecodeFailedError(f"mgr services response is not valid JSON: {err}") from err

    if not isinstance(payload, dict):
        raise DecodeFailedError(f"mgr services response must be a JSON object, got {type(payload).__name__}")

    services: dict[str, str] = {}
    for name in TRACKED_SERVICES:
        value = payload.get(name, "")
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise DecodeFailedError(f"mgr services value for {name!r} must be a string, got {type(value).__name__}")
        services[name] = value

    for name, value in payload.items():
        if name not in TRACKED_SERVICES:
            log.debug("discovered untracked service service=%s url=%s", name, value)

    return services

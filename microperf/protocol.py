"""Common interface for the transports a benchmark can drive."""

from __future__ import annotations

import enum
import select
import socket
from typing import Any

from .workorder import FlowopOptions

ANY_PORT = 0
NUM_PROTOCOLS = 8


class ProtocolType(enum.IntEnum):
    """Transport kinds, numbered as they travel between peers."""

    TCP = 1
    UDAPL = 2
    UDP = 3
    RDS = 4
    SSL = 5
    SCTP = 6
    VSOCK = 7
    UNSUPPORTED = 8


_DISPLAY_NAMES = {
    ProtocolType.TCP: "TCP",
    ProtocolType.UDAPL: "uDAPL",
    ProtocolType.UDP: "UDP",
    ProtocolType.SSL: "SSL",
    ProtocolType.SCTP: "SCTP",
    ProtocolType.VSOCK: "VSOCK",
}


def protocol_to_str(ptype: int) -> str:
    """Display name of a protocol type, or "Unknown"."""
    try:
        return _DISPLAY_NAMES.get(ProtocolType(ptype), "Unknown")
    except ValueError:
        return "Unknown"


class ProtocolError(Exception):
    """Raised when a transport operation fails or is not supported."""


class Protocol:
    """A connection endpoint; subclasses supply the transport behaviour."""

    type: ProtocolType = ProtocolType.UNSUPPORTED

    def __init__(self, host: str = "Init", port: int = -1) -> None:
        self.host = host
        self.port = port
        self.p_id = 0
        self.sock: socket.socket | None = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(host={self.host!r}, port={self.port})"

    def fileno(self) -> int:
        return -1 if self.sock is None else self.sock.fileno()

    def _undefined(self) -> ProtocolError:
        return ProtocolError("Undefined function in protocol called")

    def connect(self, options: FlowopOptions | None = None) -> None:
        raise self._undefined()

    def listen(self, options: FlowopOptions | None = None) -> int:
        raise self._undefined()

    def accept(self, options: FlowopOptions | None = None) -> Protocol:
        raise self._undefined()

    def read(self, size: int, options: FlowopOptions | None = None) -> bytes:
        raise self._undefined()

    def write(self, data: bytes, options: FlowopOptions | None = None) -> int:
        raise self._undefined()

    def disconnect(self) -> None:
        """Close the underlying socket, if any."""
        if self.sock is not None:
            self.sock.close()
            self.sock = None

    def close(self) -> Any:
        """Release every resource held by the endpoint."""
        self.disconnect()

    def __enter__(self) -> Protocol:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _require_socket(self) -> socket.socket:
        if self.sock is None:
            raise ProtocolError(f"{protocol_to_str(self.type)}: not connected")
        return self.sock

    @staticmethod
    def _apply_window(sock: socket.socket, wndsz: int) -> None:
        for opt in (socket.SO_SNDBUF, socket.SO_RCVBUF):
            try:
                sock.setsockopt(socket.SOL_SOCKET, opt, wndsz)
            except OSError:
                pass

    @staticmethod
    def _poll_timeout(options: FlowopOptions | None) -> float | None:
        """Poll timeout in seconds, truncated to whole milliseconds; None if unset."""
        if options is None:
            return None
        millis = int(options.poll_timeout / 1.0e6)
        return millis / 1000 if millis > 0 else None

    @staticmethod
    def _wait_ready(sock: socket.socket, timeout: float, write: bool = False) -> bool:
        if write:
            _, ready, _ = select.select([], [sock], [], timeout)
        else:
            ready, _, _ = select.select([sock], [], [], timeout)
        return bool(ready)

    @staticmethod
    def _resolve(host: str, port: int, socktype: int) -> list[tuple]:
        try:
            return socket.getaddrinfo(host, port, type=socktype)
        except socket.gaierror as exc:
            raise ProtocolError(f"cannot resolve {host}: {exc}") from exc
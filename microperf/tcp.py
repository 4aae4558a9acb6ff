"""Stream transport over TCP."""

from __future__ import annotations

import logging
import socket

from .protocol import ANY_PORT, Protocol, ProtocolError, ProtocolType
from .workorder import O_TCP_NODELAY, FlowopOptions

log = logging.getLogger(__name__)

LISTENQ = 10240


class TcpProtocol(Protocol):
    """A TCP listener or connected stream."""

    type = ProtocolType.TCP

    def _apply_options(self, sock: socket.socket, options: FlowopOptions | None) -> None:
        if options is None:
            return
        if options.wndsz > 0:
            self._apply_window(sock, options.wndsz)
        if options.flag & O_TCP_NODELAY:
            try:
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            except OSError as exc:
                log.warning("Cannot disable Nagle Algorithm for TCP: %s", exc)

    def _bound_socket(self, port: int, options: FlowopOptions | None) -> socket.socket:
        last: OSError | None = None
        for family, address in ((socket.AF_INET6, "::"), (socket.AF_INET, "0.0.0.0")):
            try:
                sock = socket.socket(family, socket.SOCK_STREAM)
            except OSError as exc:
                last = exc
                continue
            try:
                if family == socket.AF_INET6:
                    sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                self._apply_options(sock, options)
                sock.bind((address, port))
                return sock
            except OSError as exc:
                sock.close()
                last = exc
        raise ProtocolError("tcp: Cannot create socket") from last

    def listen(self, options: FlowopOptions | None = None) -> int:
        """Start listening; return the port actually bound."""
        port = self.port if self.port > 0 else ANY_PORT
        sock = self._bound_socket(port, options)
        sock.listen(LISTENQ)
        self.sock = sock
        self.port = sock.getsockname()[1]
        log.debug("tcp: Listening on port %d", self.port)
        return self.port

    def accept(self, options: FlowopOptions | None = None) -> TcpProtocol:
        """Accept one incoming connection and return it as a new endpoint."""
        sock = self._require_socket()
        timeout = self._poll_timeout(options)
        if timeout is not None and not self._wait_ready(sock, timeout):
            raise TimeoutError("tcp: accept timed out")
        try:
            conn, addr = sock.accept()
        except OSError as exc:
            raise ProtocolError(f"tcp: accept failed: {exc}") from exc
        newp = TcpProtocol(host=addr[0], port=addr[1])
        newp.sock = conn
        if options is not None:
            self._apply_options(conn, options)
        return newp

    def connect(self, options: FlowopOptions | None = None) -> None:
        """Connect to the configured host and port."""
        log.debug("tcp: Connecting to %s:%d", self.host, self.port)
        infos = self._resolve(self.host, self.port, socket.SOCK_STREAM)
        if options is not None and options.encaps_port > 0:
            raise ProtocolError(
                f"tcp: Enabling UDP encapsulation to port {options.encaps_port} not supported"
            )
        last: OSError | None = None
        for family, socktype, proto, _, address in infos:
            sock = socket.socket(family, socktype, proto)
            self._apply_options(sock, options)
            try:
                sock.connect(address)
            except OSError as exc:
                sock.close()
                last = exc
                continue
            self.sock = sock
            return
        raise ProtocolError(f"tcp: Cannot connect to {self.host}:{self.port}") from last

    def read(self, size: int, options: FlowopOptions | None = None) -> bytes:
        """Receive up to ``size`` bytes; empty bytes at end of stream."""
        sock = self._require_socket()
        timeout = self._poll_timeout(options)
        if timeout is not None and not self._wait_ready(sock, timeout):
            raise TimeoutError("tcp: read timed out")
        try:
            return sock.recv(size)
        except BlockingIOError:
            raise
        except OSError as exc:
            raise ProtocolError(f"tcp: read failed: {exc}") from exc

    def write(self, data: bytes, options: FlowopOptions | None = None) -> int:
        """Send all of ``data``; return the number of bytes sent."""
        sock = self._require_socket()
        timeout = self._poll_timeout(options)
        if timeout is not None and not self._wait_ready(sock, timeout, write=True):
            raise TimeoutError("tcp: write timed out")
        try:
            sock.sendall(data)
        except OSError as exc:
            raise ProtocolError(f"tcp: write failed: {exc}") from exc
        return len(data)

    def disconnect(self) -> None:
        """Close the connection."""
        super().disconnect()


def create_tcp(host: str, port: int) -> TcpProtocol:
    """Create a TCP endpoint for ``host``:``port``; an empty host means localhost."""
    newp = TcpProtocol(host=host or "localhost", port=port)
    log.debug("tcp - Creating TCP Protocol to %s:%d", host, port)
    return newp
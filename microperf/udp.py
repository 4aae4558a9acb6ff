"""Datagram transport over UDP with a one-message handshake."""

from __future__ import annotations

import logging
import socket
from typing import Any

from .protocol import ANY_PORT, Protocol, ProtocolError, ProtocolType
from .workorder import O_NONBLOCKING, FlowopOptions

log = logging.getLogger(__name__)

UDP_HANDSHAKE = b"uperf udp handshake"


class UdpProtocol(Protocol):
    """A UDP endpoint; one socket serves every logical connection."""

    type = ProtocolType.UDP

    def __init__(self, host: str = "", port: int = -1) -> None:
        super().__init__(host=host, port=port)
        self.rhost = host
        self.refcount = 0
        self.addr: Any = None

    def _apply_options(self, options: FlowopOptions | None) -> None:
        if options is None or self.sock is None:
            return
        if options.wndsz > 0:
            self._apply_window(self.sock, options.wndsz)
        if options.flag & O_NONBLOCKING:
            try:
                self.sock.setblocking(False)
            except OSError:
                log.warning("non-blocking failed, falling back")
                options.flag &= ~O_NONBLOCKING

    def _read_one(self, sock: socket.socket, size: int) -> bytes:
        try:
            data, addr = sock.recvfrom(size)
        except BlockingIOError:
            raise
        except OSError as exc:
            raise ProtocolError(f"recvfrom: {exc}") from exc
        if not data:
            raise ProtocolError("recvfrom: empty datagram")
        self.addr = addr
        return data

    def _write_one(self, sock: socket.socket, data: bytes) -> int:
        if self.addr is None:
            raise ProtocolError("udp: no destination address")
        try:
            return sock.sendto(data, self.addr)
        except BlockingIOError:
            raise
        except OSError as exc:
            raise ProtocolError(f"sendto: {exc}") from exc

    def read(self, size: int, options: FlowopOptions | None = None) -> bytes:
        """Receive one datagram of at most ``size`` bytes and remember its sender."""
        sock = self._require_socket()
        timeout = self._poll_timeout(options)
        if options is not None and options.flag & O_NONBLOCKING:
            try:
                return self._read_one(sock, size)
            except BlockingIOError:
                pass
        if timeout is not None:
            if not self._wait_ready(sock, timeout):
                raise TimeoutError("udp: read timed out")
        return self._read_one(sock, size)

    def write(self, data: bytes, options: FlowopOptions | None = None) -> int:
        """Send ``data`` as one datagram to the current peer."""
        sock = self._require_socket()
        timeout = self._poll_timeout(options)
        if options is not None and options.flag & O_NONBLOCKING:
            try:
                return self._write_one(sock, data)
            except BlockingIOError:
                pass
        if timeout is not None:
            if not self._wait_ready(sock, timeout, write=True):
                raise TimeoutError("udp: write timed out")
        return self._write_one(sock, data)

    def listen(self, options: FlowopOptions | None = None) -> int:
        """Open and bind the socket; return the port bound."""
        port = self.port if self.port > 0 else ANY_PORT
        last: OSError | None = None
        for family, address in ((socket.AF_INET6, "::"), (socket.AF_INET, "0.0.0.0")):
            try:
                sock = socket.socket(family, socket.SOCK_DGRAM)
            except OSError as exc:
                last = exc
                continue
            try:
                if family == socket.AF_INET6:
                    sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
                sock.bind((address, port))
            except OSError as exc:
                sock.close()
                last = exc
                continue
            self.sock = sock
            self.port = sock.getsockname()[1]
            log.debug("Listening on port %d", self.port)
            return self.port
        raise ProtocolError("udp: Cannot create socket") from last

    def accept(self, options: FlowopOptions | None = None) -> UdpProtocol:
        """Wait for a peer's handshake; the endpoint itself serves the new connection."""
        data = self.read(len(UDP_HANDSHAKE), options)
        self._apply_options(options)
        if data != UDP_HANDSHAKE:
            raise ProtocolError("Error in UDP Handshake")
        self.refcount += 1
        log.info("Handshake[%s] with %s:%d", data.decode(errors="replace"),
                 self.addr[0], self.addr[1])
        return self

    def connect(self, options: FlowopOptions | None = None) -> None:
        """Resolve the peer, open a socket and send the handshake."""
        infos = self._resolve(self.rhost, self.port, socket.SOCK_DGRAM)
        family, _, _, _, address = infos[0]
        if family not in (socket.AF_INET, socket.AF_INET6):
            raise ProtocolError(f"Unsupported protocol family: {family}")
        try:
            sock = socket.socket(family, socket.SOCK_DGRAM)
        except OSError as exc:
            raise ProtocolError("UDP: Cannot create socket") from exc
        if family == socket.AF_INET6:
            try:
                sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
            except OSError as exc:
                sock.close()
                raise ProtocolError("udp: cannot enable dual-stack socket") from exc
        if self.sock is not None:
            self.sock.close()
        self.sock = sock
        self.addr = address
        self._apply_options(options)
        try:
            self.write(UDP_HANDSHAKE)
        except (OSError, ProtocolError) as exc:
            raise ProtocolError("Error in UDP Handshake") from exc

    def disconnect(self) -> None:
        """Drop one logical connection; the shared socket stays open."""
        self.refcount -= 1
        log.debug("udp - disconnect done")

    def close(self) -> bool:
        """Close the socket once every connection is gone; return whether it was closed."""
        if self.refcount < -1:
            if self.sock is not None:
                self.sock.close()
                self.sock = None
            return True
        return False


def create_udp(host: str, port: int) -> UdpProtocol:
    """Create a UDP endpoint for ``host``:``port``."""
    newp = UdpProtocol(host=host, port=port)
    log.debug("udp - Creating UDP Protocol to %s:%d", host, port)
    return newp
"""Stream transport over VM sockets, addressed by context id and port."""

from __future__ import annotations

import logging
import re
import socket

from .protocol import ANY_PORT, ProtocolError, ProtocolType, protocol_to_str
from .tcp import TcpProtocol
from .workorder import O_NONBLOCKING, FlowopOptions

log = logging.getLogger(__name__)

AF_VSOCK = getattr(socket, "AF_VSOCK", None)
VMADDR_CID_ANY = getattr(socket, "VMADDR_CID_ANY", 0xFFFFFFFF)
VMADDR_PORT_ANY = getattr(socket, "VMADDR_PORT_ANY", 0xFFFFFFFF)
VMADDR_CID_LOCAL = 1

LISTENQ = 10240
ACCEPT_TIMEOUT = 10.0

_U32 = 0xFFFFFFFF
_CID_RE = re.compile(r"\s*[+-]?[0-9]+")


def vsock_address(cid_str: str | None, port: int) -> tuple[int, int]:
    """Build a (cid, port) address; ``None`` means any CID and port 0 any port."""
    if cid_str is None:
        cid = VMADDR_CID_ANY
    else:
        if not _CID_RE.fullmatch(cid_str):
            raise ProtocolError(f"VSOCK: {cid_str!r} is not a context id")
        cid = int(cid_str) & _U32
    vport = VMADDR_PORT_ANY if port == ANY_PORT else port & _U32
    return cid, vport


class VsockProtocol(TcpProtocol):
    """A VM socket listener or connected stream."""

    type = ProtocolType.VSOCK

    def _apply_options(self, sock: socket.socket, options: FlowopOptions | None) -> None:
        if options is None:
            return
        if options.wndsz > 0:
            self._apply_window(sock, options.wndsz)
        if options.flag & O_NONBLOCKING:
            try:
                sock.setblocking(False)
            except OSError:
                log.warning("non-blocking failed, falling back")
                options.flag &= ~O_NONBLOCKING

    def _new_socket(self) -> socket.socket:
        name = protocol_to_str(self.type)
        if AF_VSOCK is None:
            raise ProtocolError(f"{name}: address family not supported")
        try:
            return socket.socket(AF_VSOCK, socket.SOCK_STREAM)
        except OSError as exc:
            raise ProtocolError(f"{name}: Cannot create socket") from exc

    def listen(self, options: FlowopOptions | None = None) -> int:
        """Bind on every CID and start listening; return the port bound."""
        name = protocol_to_str(self.type)
        log.debug("%s: Binding on %s:%d", name, self.host, self.port)
        address = vsock_address(None, self.port)
        sock = self._new_socket()
        self._apply_options(sock, options)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        except OSError:
            log.error("%s: Cannot set SO_REUSEADDR", name)
        try:
            sock.bind(address)
        except OSError as exc:
            sock.close()
            raise ProtocolError(f"{name}: Cannot bind to port {self.port}") from exc
        if self.port == ANY_PORT:
            try:
                self.port = sock.getsockname()[1]
            except OSError as exc:
                sock.close()
                raise ProtocolError(f"{name}: Cannot getsockname") from exc
        sock.listen(LISTENQ)
        self.sock = sock
        log.debug("%s: Listening on port %d", name, self.port)
        return self.port

    def connect(self, options: FlowopOptions | None = None) -> None:
        """Connect to the CID held in ``host`` at ``port``."""
        name = protocol_to_str(self.type)
        log.debug("%s: Connecting to %s:%d", name, self.host, self.port)
        address = vsock_address(self.host, self.port)
        sock = self._new_socket()
        self._apply_options(sock, options)
        try:
            sock.connect(address)
        except OSError as exc:
            sock.close()
            raise ProtocolError(
                f"{name}: Cannot connect to {self.host}:{self.port}"
            ) from exc
        self.sock = sock

    def accept(self, options: FlowopOptions | None = None) -> VsockProtocol:
        """Wait up to ten seconds for a peer and return the new connection."""
        listener = self._require_socket()
        if not self._wait_ready(listener, ACCEPT_TIMEOUT):
            raise TimeoutError("vsock: accept timed out")
        try:
            conn, addr = listener.accept()
        except OSError as exc:
            raise ProtocolError(f"accept: {exc}") from exc
        if not (isinstance(addr, tuple) and len(addr) == 2):
            conn.close()
            raise ProtocolError(f"vsock: unexpected peer address {addr!r}")
        cid, port = addr
        newp = VsockProtocol(host=str(cid), port=port)
        newp.sock = conn
        log.info("Accepted connection from %s:%d", newp.host, newp.port)
        return newp


def create_vsock(host: str, port: int) -> VsockProtocol:
    """Create a VM socket endpoint; an empty host means the local CID."""
    newp = VsockProtocol(host=host or str(VMADDR_CID_LOCAL), port=port)
    log.debug("vsock - Creating VSOCK Protocol to %s:%d", host, port)
    return newp
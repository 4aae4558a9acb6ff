"""Stream transport over TLS on top of TCP."""

from __future__ import annotations

import logging
import socket
import ssl
from pathlib import Path

from .protocol import ProtocolError, ProtocolType
from .tcp import TcpProtocol
from .workorder import FlowopOptions

log = logging.getLogger(__name__)

PASSWORD = "password"
SERVER_KEY_FILE = "server.pem"
CLIENT_KEY_FILE = "client.pem"

_RETRYABLE = (ssl.SSLWantReadError, ssl.SSLWantWriteError, ssl.SSLZeroReturnError)


def find_key_file(name: str) -> Path:
    """Locate ``name`` in the current directory or its parent."""
    for candidate in (Path(name), Path("..") / name):
        if candidate.is_file():
            return candidate
    raise FileNotFoundError(f"Can't load {name}")


def initialize_context(
    keyfile: str | Path,
    password: str = PASSWORD,
    method: str | None = None,
    server_side: bool = False,
) -> ssl.SSLContext:
    """Build a TLS context presenting the certificate chain and key in ``keyfile``.

    Both the default method and ``"tls"`` negotiate the highest version the
    peers share. Peers are not verified.
    """
    log.debug("ssl - method %s", "tls" if method and method.lower() == "tls" else "default")
    proto = ssl.PROTOCOL_TLS_SERVER if server_side else ssl.PROTOCOL_TLS_CLIENT
    try:
        ctx = ssl.SSLContext(proto)
    except ssl.SSLError as exc:
        raise ProtocolError("Error getting SSL CTX") from exc
    if not server_side:
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
    try:
        ctx.load_cert_chain(str(keyfile), str(keyfile), password=password)
    except (OSError, ssl.SSLError) as exc:
        raise ProtocolError(f"Error getting SSL CTX: cannot load {keyfile}") from exc
    return ctx


class TlsProtocol(TcpProtocol):
    """A TLS listener or connected stream."""

    type = ProtocolType.SSL

    def __init__(
        self, host: str = "Init", port: int = -1, context: ssl.SSLContext | None = None
    ) -> None:
        super().__init__(host=host, port=port)
        self.context = context

    def _context(self, server_side: bool) -> ssl.SSLContext:
        if self.context is None:
            # The connecting side presents server.pem, the accepting side client.pem.
            name = CLIENT_KEY_FILE if server_side else SERVER_KEY_FILE
            self.context = initialize_context(find_key_file(name), server_side=server_side)
        return self.context

    @staticmethod
    def _note_engine(options: FlowopOptions | None) -> None:
        if options is not None and options.engine:
            log.info(
                "ssl - Engine %s does NOT exist! Using the default OpenSSL softtoken",
                options.engine,
            )

    def listen(self, options: FlowopOptions | None = None) -> int:
        """Start listening for TLS clients; return the port bound."""
        return super().listen(options)

    def connect(self, options: FlowopOptions | None = None) -> None:
        """Connect over TCP and complete the TLS handshake as client."""
        log.debug("ssl - Connecting to %s:%d", self.host, self.port)
        infos = self._resolve(self.host, self.port, socket.SOCK_STREAM)
        ctx = self._context(server_side=False)
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
            break
        else:
            raise ProtocolError(f"ssl: Cannot connect to {self.host}:{self.port}") from last
        self._note_engine(options)
        try:
            self.sock = ctx.wrap_socket(sock, server_side=False)
        except (ssl.SSLError, OSError) as exc:
            sock.close()
            raise ProtocolError("ssl connect error") from exc

    def accept(self, options: FlowopOptions | None = None) -> TlsProtocol:
        """Accept one client and complete the TLS handshake as server."""
        listener = self._require_socket()
        ctx = self._context(server_side=True)
        log.debug("ssl - ssl obj waiting for accept")
        try:
            conn, addr = listener.accept()
        except OSError as exc:
            raise ProtocolError(f"accept: {exc}") from exc
        newp = TlsProtocol(context=ctx)
        try:
            newp.host, _ = socket.getnameinfo(addr, 0)
            newp.port = addr[1]
            log.debug("ssl - Connection from %s:%d", newp.host, newp.port)
        except OSError:
            pass
        self._note_engine(options)
        try:
            newp.sock = ctx.wrap_socket(conn, server_side=True)
        except (ssl.SSLError, OSError) as exc:
            conn.close()
            raise ProtocolError("ssl accept error") from exc
        return newp

    def read(self, size: int, options: FlowopOptions | None = None) -> bytes:
        """Receive up to ``size`` decrypted bytes.

        Raises InterruptedError when the session must be retried or was closed.
        """
        sock = self._require_socket()
        log.debug("ssl - Reading %d bytes from %s:%d", size, self.host or "Unknown", self.port)
        try:
            data = sock.recv(size)
        except _RETRYABLE as exc:
            raise InterruptedError("ssl: read interrupted") from exc
        except (ssl.SSLError, OSError) as exc:
            raise ProtocolError(f"ssl: read failed: {exc}") from exc
        if not data and size > 0:
            raise InterruptedError("ssl: connection closed by peer")
        return data

    def write(self, data: bytes, options: FlowopOptions | None = None) -> int:
        """Encrypt and send all of ``data``; return its length."""
        sock = self._require_socket()
        log.debug("ssl - Writing %d bytes to %s:%d", len(data), self.host or "Unknown", self.port)
        try:
            sock.sendall(data)
        except _RETRYABLE as exc:
            raise InterruptedError("ssl: write interrupted") from exc
        except (ssl.SSLError, OSError) as exc:
            raise ProtocolError(f"ssl: write failed: {exc}") from exc
        return len(data)

    def disconnect(self) -> None:
        """Close the TLS session and its socket."""
        super().disconnect()


def create_tls(host: str, port: int) -> TlsProtocol:
    """Create a TLS endpoint for ``host``:``port``; an empty host means localhost."""
    newp = TlsProtocol(host=host or "lOcAlHoSt", port=port)
    log.debug("ssl - Creating SSL Protocol to %s:%d", host, port)
    return newp
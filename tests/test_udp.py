import socket

import pytest

from microperf.protocol import ProtocolError, ProtocolType
from microperf.udp import UDP_HANDSHAKE, UdpProtocol, create_udp
from microperf.workorder import O_NONBLOCKING, FlowopOptions

SHORT_POLL = FlowopOptions(poll_timeout=200_000_000)


def _force_close(endpoint):
    if endpoint.sock is not None:
        endpoint.sock.close()
        endpoint.sock = None


@pytest.fixture
def server():
    srv = create_udp("", 0)
    srv.listen(None)
    yield srv
    _force_close(srv)


def test_create_udp_fields():
    p = create_udp("127.0.0.1", 4000)
    assert p.type is ProtocolType.UDP
    assert p.rhost == "127.0.0.1"
    assert p.port == 4000
    assert p.refcount == 0


def test_listen_binds_port(server):
    assert server.port > 0
    assert server.sock.getsockname()[1] == server.port


def test_handshake_and_round_trip(server):
    client = create_udp("127.0.0.1", server.port)
    client.connect(None)
    try:
        accepted = server.accept(None)
        assert accepted is server
        assert server.refcount == 1
        assert server.write(b"pong") == 4
        assert client.read(64) == b"pong"
        assert client.write(b"ping") == 4
        assert server.read(64) == b"ping"
    finally:
        _force_close(client)


def test_handshake_bytes_on_the_wire(server):
    client = create_udp("127.0.0.1", server.port)
    client.connect(None)
    try:
        assert server.read(64) == UDP_HANDSHAKE
    finally:
        _force_close(client)


def test_accept_rejects_wrong_handshake(server):
    raw = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        raw.sendto(b"z" * len(UDP_HANDSHAKE), ("127.0.0.1", server.port))
        with pytest.raises(ProtocolError):
            server.accept(None)
        assert server.refcount == 0
    finally:
        raw.close()


def test_accept_times_out(server):
    with pytest.raises(TimeoutError):
        server.accept(SHORT_POLL)


def test_read_times_out(server):
    with pytest.raises(TimeoutError):
        server.read(16, SHORT_POLL)


def test_nonblocking_read_without_data(server):
    client = create_udp("127.0.0.1", server.port)
    options = FlowopOptions(flag=O_NONBLOCKING)
    client.connect(options)
    try:
        assert client.sock.getblocking() is False
        with pytest.raises(BlockingIOError):
            client.read(16, options)
    finally:
        _force_close(client)


def test_nonblocking_read_with_timeout_waits(server):
    client = create_udp("127.0.0.1", server.port)
    options = FlowopOptions(flag=O_NONBLOCKING, poll_timeout=200_000_000)
    client.connect(options)
    try:
        with pytest.raises(TimeoutError):
            client.read(16, options)
    finally:
        _force_close(client)


def test_write_without_peer_fails(server):
    with pytest.raises(ProtocolError):
        server.write(b"data")


def test_read_before_listen_fails():
    with pytest.raises(ProtocolError):
        UdpProtocol("127.0.0.1", 1).read(8)


def test_close_waits_for_refcount_below_minus_one(server):
    server.disconnect()
    assert server.refcount == -1
    assert server.close() is False
    assert server.sock is not None
    server.disconnect()
    assert server.refcount == -2
    assert server.close() is True
    assert server.sock is None


def test_disconnect_keeps_socket_open(server):
    sock = server.sock
    server.disconnect()
    assert server.sock is sock
    assert sock.fileno() >= 0
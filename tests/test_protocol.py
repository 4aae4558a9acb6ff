import socket

import pytest

from microperf.protocol import Protocol, ProtocolError, ProtocolType, protocol_to_str


@pytest.mark.parametrize(
    "ptype, name",
    [
        (ProtocolType.TCP, "TCP"),
        (ProtocolType.UDAPL, "uDAPL"),
        (ProtocolType.UDP, "UDP"),
        (ProtocolType.SSL, "SSL"),
        (ProtocolType.SCTP, "SCTP"),
        (ProtocolType.VSOCK, "VSOCK"),
    ],
)
def test_protocol_to_str_known(ptype, name):
    assert protocol_to_str(ptype) == name


def test_protocol_to_str_rds_and_unsupported_are_unknown():
    assert protocol_to_str(ProtocolType.RDS) == "Unknown"
    assert protocol_to_str(ProtocolType.UNSUPPORTED) == "Unknown"


def test_protocol_to_str_out_of_range():
    assert protocol_to_str(99) == "Unknown"


def test_protocol_to_str_accepts_plain_int():
    assert protocol_to_str(int(ProtocolType.UDP)) == "UDP"


@pytest.mark.parametrize("method", ["connect", "listen", "accept"])
def test_base_operations_are_undefined(method):
    p = Protocol()
    with pytest.raises(ProtocolError):
        getattr(p, method)(None)
    assert p.fileno() == -1
    assert p.sock is None
    assert p.host == "Init"


def test_base_read_write_undefined():
    p = Protocol()
    with pytest.raises(ProtocolError):
        p.read(10)
    with pytest.raises(ProtocolError):
        p.write(b"data")


def test_new_endpoint_has_no_socket():
    p = Protocol()
    assert p.fileno() == -1
    assert p.host == "Init"


def test_context_manager_closes_socket():
    p = Protocol("localhost", 0)
    p.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    raw = p.sock
    with p as entered:
        assert entered is p
        assert p.fileno() == raw.fileno()
    assert p.sock is None
    assert raw.fileno() == -1


def test_disconnect_twice_is_harmless():
    p = Protocol()
    p.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    p.disconnect()
    p.disconnect()
    assert p.sock is None
import ssl
import threading

import pytest

from microperf.protocol import ProtocolError, ProtocolType
from microperf.tcp import create_tcp
from microperf.tls import (
    TlsProtocol,
    create_tls,
    find_key_file,
    initialize_context,
)


def test_create_with_empty_host():
    p = create_tls("", 443)
    assert p.host == "lOcAlHoSt"
    assert p.port == 443
    assert p.type is ProtocolType.SSL


def test_find_key_file_in_current_dir(tmp_path, monkeypatch):
    (tmp_path / "server.pem").write_text("x")
    monkeypatch.chdir(tmp_path)
    assert find_key_file("server.pem").resolve() == (tmp_path / "server.pem").resolve()


def test_find_key_file_in_parent_dir(tmp_path, monkeypatch):
    (tmp_path / "client.pem").write_text("x")
    sub = tmp_path / "sub"
    sub.mkdir()
    monkeypatch.chdir(sub)
    assert find_key_file("client.pem").resolve() == (tmp_path / "client.pem").resolve()


def test_find_key_file_missing(tmp_path, monkeypatch):
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    monkeypatch.chdir(nested)
    with pytest.raises(FileNotFoundError):
        find_key_file("server.pem")


def test_find_key_file_ignores_directories(tmp_path, monkeypatch):
    nested = tmp_path / "a" / "b"
    (nested / "server.pem").mkdir(parents=True)
    monkeypatch.chdir(nested)
    with pytest.raises(FileNotFoundError):
        find_key_file("server.pem")


def test_initialize_context_missing_file(tmp_path):
    with pytest.raises(ProtocolError):
        initialize_context(tmp_path / "nope.pem")


def test_initialize_context_garbage_file(tmp_path):
    bad = tmp_path / "bad.pem"
    bad.write_text("not a certificate\n")
    with pytest.raises(ProtocolError):
        initialize_context(bad, server_side=True)


def test_read_without_connection():
    with pytest.raises(ProtocolError):
        TlsProtocol().read(10)


def test_write_without_connection():
    with pytest.raises(ProtocolError):
        TlsProtocol().write(b"data")


def test_connect_without_key_file(tmp_path, monkeypatch):
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    monkeypatch.chdir(nested)
    p = TlsProtocol(host="127.0.0.1", port=1)
    with pytest.raises(FileNotFoundError):
        p.connect()


def test_handshake_failure_raises_protocol_error():
    server = create_tcp("", 0)
    port = server.listen()

    def serve():
        conn = server.accept()
        conn.close()

    t = threading.Thread(target=serve)
    t.start()
    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    client = TlsProtocol(host="127.0.0.1", port=port, context=ctx)
    try:
        with pytest.raises(ProtocolError):
            client.connect()
        assert client.sock is None
    finally:
        t.join(5)
        server.close()
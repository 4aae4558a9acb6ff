import socket

import pytest

from microperf.sendfile import SendfileRegistry

CONTENTS = {"a.bin": b"a" * 100, "b.bin": b"b" * 50}


@pytest.fixture
def filedir(tmp_path):
    for name, data in CONTENTS.items():
        (tmp_path / name).write_bytes(data)
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "c.bin").write_bytes(b"c" * 30)
    return str(tmp_path)


@pytest.fixture
def registry():
    reg = SendfileRegistry()
    yield reg
    reg.close()


@pytest.fixture
def pair():
    a, b = socket.socketpair()
    yield a, b
    a.close()
    b.close()


def _recv_exact(sock, n):
    buf = b""
    while len(buf) < n:
        chunk = sock.recv(n - len(buf))
        if not chunk:
            break
        buf += chunk
    return buf


ALL_DATA = set(CONTENTS.values()) | {b"c" * 30}


def test_init_collects_all_files(registry, filedir):
    fs = registry.init(filedir)
    assert fs.nfiles == 3
    assert sorted(e.size for e in fs.files) == [30, 50, 100]


def test_init_is_idempotent(registry, filedir):
    first = registry.init(filedir)
    assert registry.init(filedir) is first
    assert registry.find(filedir) is first


def test_find_unknown(registry):
    assert registry.find("/nonexistent") is None


def test_init_missing_directory(registry, tmp_path):
    with pytest.raises(FileNotFoundError):
        registry.init(str(tmp_path / "missing"))


def test_init_empty_directory(registry, tmp_path):
    with pytest.raises(ValueError):
        registry.init(str(tmp_path))


def test_select_file_in_range(registry, filedir):
    fs = registry.init(filedir)
    assert all(0 <= fs.select_file() < fs.nfiles for _ in range(50))


def test_send_whole_file(registry, filedir, pair):
    registry.init(filedir)
    n = registry.send(pair[0], filedir)
    assert _recv_exact(pair[1], n) in ALL_DATA


def test_send_chunked(registry, filedir, pair):
    registry.init(filedir)
    n = registry.send(pair[0], filedir, chunk_size=7)
    assert _recv_exact(pair[1], n) in ALL_DATA


def test_send_unknown_directory(registry, pair):
    with pytest.raises(KeyError):
        registry.send(pair[0], "/nonexistent")


def test_sendv_multiple_files(registry, filedir, pair):
    registry.init(filedir)
    n = registry.sendv(pair[0], filedir, 3)
    data = _recv_exact(pair[1], n)
    assert len(data) == n
    assert set(data) <= set(b"abc")


def test_sendv_chunked(registry, filedir, pair):
    registry.init(filedir)
    n = registry.sendv(pair[0], filedir, 2, chunk_size=16)
    assert _recv_exact(pair[1], n) in ALL_DATA


def test_close_empties_registry(filedir):
    reg = SendfileRegistry()
    reg.init(filedir)
    reg.close()
    assert reg.find(filedir) is None
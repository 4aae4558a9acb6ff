import pytest

from microperf.stats import StatsType
from microperf.strand import (
    ANY_CONNECTION,
    CONNECTION_CACHE_SIZE,
    SlaveInfo,
    Strand,
    StrandState,
    init_group,
)
from microperf.tcp import create_tcp
from microperf.workorder import Group


def _conn(p_id):
    p = create_tcp("", 0)
    p.p_id = p_id
    return p


def test_init_group_names_and_leader():
    strands = init_group(Group(nthreads=3), 0)
    assert [s.nstats.name for s in strands] == ["Thr0", "Thr1", "Thr2"]
    assert [s.is_leader for s in strands] == [True, False, False]
    assert all(s.nstats.type is StatsType.STRAND for s in strands)
    assert all(s.state is StrandState.AT_BARRIER for s in strands)


def test_init_group_empty():
    assert init_group(Group(nthreads=0), 5) == []


def test_slave_ports():
    s = Strand()
    s.add_slave(SlaveInfo("hostA", [0, 10, 20, 30, 0, 0, 0, 0]))
    assert s.get_port("hostA", 2) == 20


def test_newer_slave_shadows_older():
    s = Strand()
    s.add_slave(SlaveInfo("hostA", [1] * 8))
    s.add_slave(SlaveInfo("hostA", [2] * 8))
    assert s.get_port("hostA", 0) == 2


def test_add_slave_copies():
    s = Strand()
    info = SlaveInfo("hostA", [5] * 8)
    s.add_slave(info)
    info.ports[3] = 99
    assert s.get_port("hostA", 3) == 5


def test_unknown_slave():
    with pytest.raises(KeyError):
        Strand().get_port("nowhere", 1)


def test_connection_pool_front_insertion():
    s = Strand()
    a, b = _conn(1), _conn(2)
    s.add_connection(a)
    s.add_connection(b)
    assert s.connections == [b, a]


def test_get_connection_fills_cache():
    s = Strand()
    a = _conn(7)
    s.add_connection(a)
    assert s.get_connection(7) is a
    assert s.ccache_size == 1
    assert s.get_connection(ANY_CONNECTION) is a


def test_get_connection_missing_and_empty():
    s = Strand()
    assert s.get_connection(1) is None
    s.add_connection(_conn(1))
    assert s.get_connection(2) is None


def test_cache_size_bounded():
    s = Strand()
    for i in range(CONNECTION_CACHE_SIZE + 3):
        s.put_connection_in_cache(_conn(i))
    assert s.ccache_size == CONNECTION_CACHE_SIZE - 1


def test_delete_connection_flushes_cache():
    s = Strand()
    a, b = _conn(1), _conn(2)
    s.add_connection(a)
    s.add_connection(b)
    s.get_connection(1)
    s.delete_connection(1)
    assert s.connections == [b]
    assert s.ccache_size == 0
    assert s.get_connection(1) is None


def test_delete_missing_connection():
    s = Strand()
    s.add_connection(_conn(1))
    with pytest.raises(KeyError):
        s.delete_connection(9)


def test_fini_releases_everything():
    s = Strand()
    listener = create_tcp("", 0)
    listener.listen()
    s.listen_conn[listener.type] = listener
    s.add_connection(_conn(1))
    s.add_slave(SlaveInfo("hostA"))
    s.worklist = Group(nthreads=1)
    s.fini()
    assert listener.sock is None
    assert s.connections == []
    assert s.listen_conn == {}
    assert s.slave_list == []
    assert s.worklist is None
"""Per-strand bookkeeping: connections, peer ports and statistics."""

from __future__ import annotations

import copy
import enum
import logging
from dataclasses import dataclass, field

from .protocol import NUM_PROTOCOLS, Protocol
from .registry import destroy_protocol
from .stats import History, NewStats, StatsType
from .workorder import STRAND_LEADER, STRAND_TYPE_PROCESS, Group

log = logging.getLogger(__name__)

CONNECTION_CACHE_SIZE = 8
ANY_CONNECTION = -1


class StrandState(enum.IntEnum):
    """Where a strand currently is in its run."""

    AT_BARRIER = 0
    EXECUTING = 1
    EXIT = 2


@dataclass
class SlaveInfo:
    """Ports a remote host listens on, indexed by protocol type."""

    host: str
    ports: list[int] = field(default_factory=lambda: [0] * NUM_PROTOCOLS)


@dataclass
class Strand:
    """One thread of execution working through a group's transactions."""

    nstats: NewStats = field(default_factory=lambda: NewStats(type=StatsType.STRAND))
    strand_flag: int = 0
    signalled: bool = False
    state: StrandState = StrandState.AT_BARRIER
    role: int = 0
    worklist: Group | None = None
    pid: int = 0
    tid: int = 0
    errors: int = 0
    datasz: int = 0
    history: History | None = None
    listen_conn: dict[int, Protocol] = field(default_factory=dict)
    connections: list[Protocol] = field(default_factory=list)
    slave_list: list[SlaveInfo] = field(default_factory=list)
    ccache: list[Protocol | None] = field(
        default_factory=lambda: [None] * CONNECTION_CACHE_SIZE
    )
    ccache_size: int = 0
    _replacement: int = field(default=0, repr=False)

    @property
    def is_leader(self) -> bool:
        return bool(self.strand_flag & STRAND_LEADER)

    @property
    def is_process(self) -> bool:
        return bool(self.strand_flag & STRAND_TYPE_PROCESS)

    @property
    def at_barrier(self) -> bool:
        return self.state is StrandState.AT_BARRIER

    def add_slave(self, info: SlaveInfo) -> None:
        """Remember a copy of a peer's ports; newer entries shadow older ones."""
        self.slave_list.insert(0, copy.deepcopy(info))

    def get_port(self, host: str, protocol: int) -> int:
        """Port ``host`` listens on for ``protocol``; KeyError if the host is unknown."""
        for info in self.slave_list:
            if info.host == host:
                return info.ports[protocol]
        raise KeyError(host)

    def add_connection(self, protocol: Protocol) -> None:
        """Add a connection to the front of the strand's pool."""
        self.connections.insert(0, protocol)

    def delete_connection(self, conn_id: int) -> None:
        """Remove and destroy the connection with ``conn_id``; KeyError if absent."""
        for index, conn in enumerate(self.connections):
            if conn.p_id == conn_id:
                del self.connections[index]
                destroy_protocol(conn)
                self.ccache_size = 0
                return
        raise KeyError(conn_id)

    def put_connection_in_cache(self, protocol: Protocol) -> None:
        """Cache a connection, replacing slots round-robin once the cache is full."""
        if self.ccache_size == CONNECTION_CACHE_SIZE - 1:
            self.ccache[self._replacement] = protocol
            self._replacement = (self._replacement + 1) % CONNECTION_CACHE_SIZE
        else:
            self.ccache[self.ccache_size] = protocol
            self.ccache_size += 1

    def get_connection(self, conn_id: int) -> Protocol | None:
        """Connection with ``conn_id``, or the first cached one for ANY_CONNECTION."""
        if not self.connections:
            return None
        for cached in self.ccache[: self.ccache_size]:
            if cached is None:
                continue
            if cached.p_id == conn_id or conn_id == ANY_CONNECTION:
                return cached
        for conn in self.connections:
            if conn.p_id == conn_id:
                self.put_connection_in_cache(conn)
                return conn
        log.info("No such connection with id %d", conn_id)
        return None

    def fini(self) -> None:
        """Close listeners and connections and drop everything the strand holds."""
        for conn in list(self.listen_conn.values()):
            destroy_protocol(conn)
        self.listen_conn.clear()
        for conn in self.connections:
            destroy_protocol(conn)
        self.connections.clear()
        self.ccache = [None] * CONNECTION_CACHE_SIZE
        self.ccache_size = 0
        self.slave_list.clear()
        self.worklist = None


def init_group(group: Group, ssid: int = 0) -> list[Strand]:
    """Create the strands of ``group``; the first one leads."""
    log.debug("init_group: ssid=%d", ssid)
    strands = []
    for j in range(group.nthreads):
        strand = Strand(
            nstats=NewStats(type=StatsType.STRAND, sid=ssid + j, name=f"Thr{j}")
        )
        if j == 0:
            strand.strand_flag |= STRAND_LEADER
        strands.append(strand)
    return strands
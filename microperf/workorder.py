"""Workload description: groups of strands running transactions of flowops."""

from __future__ import annotations

import copy
import enum
from dataclasses import dataclass, field
from typing import Callable

DATA_VERSION = "0.3.1"
VERSION = "1.0.8"

MAXHOSTNAME = 256
PATHMAX = 128
MASTER_PORT = 20000
MAXTHREADGROUPS = 1024
MAXSLAVES = 1024
NUM_PROTOCOLS = 8
NAMELEN = 128
NAME_LEN = 32

DEFAULT_BUFFER_SIZE = 8192
SLAVE_READ_SIZE = 64 * 1024
ENDIAN_VALUE = 0xBADC
REPEATED_SIGNAL_RETRIES = 5

# Strand flags
STRAND_LEADER = 1 << 0
STRAND_TYPE_PROCESS = 1 << 1
STRAND_TYPE_THREAD = 1 << 2
STRAND_ROLE_MASTER = 1 << 3
STRAND_ROLE_SLAVE = 1 << 4

# Flowop option flags
O_TCP_NODELAY = 1 << 1
O_CANFAIL = 1 << 2
O_NONBLOCKING = 1 << 3
O_THINK_IDLE = 1 << 4
O_THINK_BUSY = 1 << 5
O_SIZE_RAND = 1 << 6
O_SCTP_UNORDERED = 1 << 7
O_SCTP_NODELAY = 1 << 8


def _bswap(value: int, nbytes: int) -> int:
    mask = (1 << (8 * nbytes)) - 1
    return int.from_bytes((value & mask).to_bytes(nbytes, "little"), "big")


def bswap16(value: int) -> int:
    """Reverse the byte order of a 16-bit value."""
    return _bswap(value, 2)


def bswap32(value: int) -> int:
    """Reverse the byte order of a 32-bit value."""
    return _bswap(value, 4)


def bswap64(value: int) -> int:
    """Reverse the byte order of a 64-bit value."""
    return _bswap(value, 8)


class FlowopType(enum.Enum):
    """Kinds of flowop a transaction can hold."""

    CONNECT = enum.auto()
    ACCEPT = enum.auto()
    DISCONNECT = enum.auto()
    READ = enum.auto()
    WRITE = enum.auto()
    SEND = enum.auto()
    RECV = enum.auto()
    SENDFILE = enum.auto()
    SENDFILEV = enum.auto()
    THINK = enum.auto()
    NOP = enum.auto()


_OPTION_SWAP16 = ("sctp_out_streams", "sctp_in_streams", "sctp_stream_id", "sctp_padding")
_OPTION_SWAP32 = (
    "size", "rand_sz_min", "rand_sz_max", "rsize", "protocol", "port", "flag",
    "nfiles", "encaps_port", "sctp_rto_min", "sctp_rto_max", "sctp_rto_initial",
    "sctp_sack_delay", "sctp_sack_frequency", "sctp_max_burst_size",
    "sctp_max_fragment_size", "sctp_hb_interval", "sctp_path_mtu", "sctp_pr_value",
)
_OPTION_SWAP64 = ("duration", "wndsz", "count", "poll_timeout")


@dataclass
class FlowopOptions:
    """Options attached to a single flowop."""

    size: int = 0
    rand_sz_min: int = 0
    rand_sz_max: int = 0
    rsize: int = 0
    protocol: int = 0
    port: int = 0
    flag: int = 0
    nfiles: int = 0
    duration: int = 0
    wndsz: int = 0
    count: int = 0
    poll_timeout: int = 0
    encaps_port: int = 0
    bblog: int = 0
    sctp_rto_min: int = 0
    sctp_rto_max: int = 0
    sctp_rto_initial: int = 0
    sctp_sack_delay: int = 0
    sctp_sack_frequency: int = 0
    sctp_max_burst_size: int = 0
    sctp_max_fragment_size: int = 0
    sctp_hb_interval: int = 0
    sctp_path_mtu: int = 0
    sctp_out_streams: int = 0
    sctp_in_streams: int = 0
    sctp_stream_id: int = 0
    sctp_padding: int = 0
    sctp_pr_value: int = 0
    sctp_pr_policy: str = ""
    cc: str = ""
    stack: str = ""
    dir: str = ""
    remotehost: str = ""
    localhost: str = ""
    engine: str = ""
    cipher: str = ""
    method: str = ""


@dataclass
class Flowop:
    """One step of a transaction."""

    type: FlowopType
    options: FlowopOptions = field(default_factory=FlowopOptions)
    id: int = 0
    p_id: int = 0
    errors: int = 0
    name: str = ""


@dataclass
class Transaction:
    """A sequence of flowops repeated for a number of iterations or a duration."""

    txnid: int = 0
    iter: int = 1
    duration: int = 0
    rate_count: int = 0
    rate_str: str = ""
    name: str = ""
    flowops: list[Flowop] = field(default_factory=list)

    @property
    def nflowop(self) -> int:
        return len(self.flowops)

    def optimize_for_slave(self) -> None:
        """Enlarge the slave's reads where a flowop asks for a bigger read size."""
        optimized = 0
        for flowop in self.flowops:
            o = flowop.options
            if o.rsize > o.size:
                if o.count > 1:
                    o.count = o.size * o.count // o.rsize
                else:
                    optimized = o.size // o.rsize
                o.size = o.rsize
        if optimized == 0 or self.duration > 0:
            return
        self.iter //= optimized


@dataclass
class Group:
    """A group of identical strands executing the same transactions."""

    name: str = ""
    endian: int = 0
    strand_flag: int = 0
    nthreads: int = 0
    max_async: int = 0
    groupid: int = 0
    transactions: list[Transaction] = field(default_factory=list)
    protocols: list[int] = field(default_factory=lambda: [0] * NUM_PROTOCOLS)

    @property
    def ntxn(self) -> int:
        return len(self.transactions)

    def num_stats(self) -> int:
        """Number of statistics slots one strand of this group needs."""
        return 1 + sum(1 + txn.nflowop for txn in self.transactions)

    def max_open_connections(self) -> int:
        """Largest number of connections a strand may hold open at once."""
        count = 0
        for txn in self.transactions:
            local = 1
            for flowop in txn.flowops:
                if flowop.type in (FlowopType.CONNECT, FlowopType.ACCEPT):
                    local += txn.iter
                elif flowop.type is FlowopType.DISCONNECT:
                    local -= txn.iter
            count = max(count, local)
        return count

    def max_dto_size(self) -> int:
        """Largest flowop size, never below the default buffer size."""
        return max(
            [DEFAULT_BUFFER_SIZE]
            + [f.options.size for txn in self.transactions for f in txn.flowops]
        )

    def clone(self) -> Group:
        """Return an independent copy of the group."""
        return copy.deepcopy(self)

    def opposite(self, flip: Callable[[FlowopType], FlowopType]) -> None:
        """Turn the group into its peer-side counterpart, flowop by flowop."""
        for txn in self.transactions:
            for flowop in txn.flowops:
                if flowop.type in (FlowopType.SENDFILEV, FlowopType.SENDFILE):
                    flowop.options.size = SLAVE_READ_SIZE
                flowop.type = flip(flowop.type)
                o = flowop.options
                o.sctp_in_streams, o.sctp_out_streams = o.sctp_out_streams, o.sctp_in_streams
            txn.optimize_for_slave()

    def bitswap(self) -> None:
        """Reverse the byte order of every numeric field sent over the wire."""
        self.nthreads = bswap32(self.nthreads)
        self.max_async = bswap32(self.max_async)
        for txn in self.transactions:
            txn.iter = bswap64(txn.iter)
            txn.txnid = bswap32(txn.txnid)
            txn.duration = bswap64(txn.duration)
            txn.rate_count = bswap32(txn.rate_count)
            for flowop in txn.flowops:
                o = flowop.options
                for names, swap in (
                    (_OPTION_SWAP16, bswap16),
                    (_OPTION_SWAP32, bswap32),
                    (_OPTION_SWAP64, bswap64),
                ):
                    for name in names:
                        setattr(o, name, swap(getattr(o, name)))


@dataclass
class Workorder:
    """A complete application profile made of groups."""

    name: str = ""
    groups: list[Group] = field(default_factory=list)

    @property
    def ngrp(self) -> int:
        return len(self.groups)

    def num_strands(self) -> int:
        return sum(g.nthreads for g in self.groups)

    def num_stats(self) -> int:
        return sum(g.num_stats() for g in self.groups)

    def num_strands_bytype(self, strand_type: int) -> int:
        return sum(g.nthreads for g in self.groups if g.strand_flag & strand_type)

    def max_txn(self) -> int:
        return max((g.ntxn for g in self.groups), default=0)

    def num_connections(self) -> int:
        return sum(g.nthreads * g.max_open_connections() for g in self.groups)
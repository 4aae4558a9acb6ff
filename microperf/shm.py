"""State shared between the controller and the strands of a run."""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable

from .stats import AGG_STAT_NAME, NewStats, StatsType, hrtime
from .sync import Barrier
from .workorder import MAXTHREADGROUPS, Group, Workorder

log = logging.getLogger(__name__)

NUM_BARRIER = 100
CALLOUT_GRANULARITY = 1_000_000_000


class Role(enum.IntEnum):
    """Which side of the benchmark this process plays."""

    MASTER = 0
    SLAVE = 1


class ShmError(Exception):
    """Raised when shared state cannot be set up or updated."""


@dataclass
class SharedState:
    """Barriers, callouts, counters and statistics shared by all strands."""

    role: Role = Role.MASTER
    workorder: Workorder | None = None
    worklist: Group | None = None
    no_strands: int = 0
    nstats_capacity: int | None = None
    nstats: list[NewStats] = field(default_factory=list)
    agg_stat: NewStats = field(default_factory=lambda: NewStats(name=AGG_STAT_NAME))
    barriers: list[Barrier] = field(default_factory=list)
    nobarrier: int = 0
    global_error: int = 0
    finished: int = 0
    bitswap: bool = False
    current_time: int = 0
    txn_begin: int = 0
    bytes_xfer: int = 0
    txn_count: int = 0
    callouts: list[int] = field(default_factory=lambda: [0] * MAXTHREADGROUPS)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        if self.workorder is not None:
            if self.no_strands == 0:
                self.no_strands = self.workorder.num_strands()
            if self.nstats_capacity is None:
                self.nstats_capacity = self.no_strands * self.workorder.num_stats()

    def callout_register(self, stop: int, group_id: int) -> None:
        """Arrange for the group's strands to be called out at time ``stop`` (ns)."""
        if self.callouts[group_id] != 0:
            raise ShmError(f"callout already registered for group {group_id}")
        self.callouts[group_id] = stop // CALLOUT_GRANULARITY

    def process_callouts(
        self,
        now: int | None = None,
        signal_group: Callable[[int], None] | None = None,
    ) -> int:
        """Fire every callout that is due; return how many fired."""
        if self.role is Role.MASTER and self.workorder is not None:
            no_groups = self.workorder.ngrp
        else:
            no_groups = 1
        current = (hrtime() if now is None else now) // CALLOUT_GRANULARITY
        called_out = 0
        for i in range(no_groups):
            timeout = self.callouts[i]
            if 0 < timeout <= current:
                if signal_group is not None:
                    try:
                        signal_group(i)
                    except Exception as exc:
                        self.global_error += 1
                        log.error("Error signalling strands")
                        raise ShmError("error signalling strands") from exc
                self.callouts[i] = 0
                called_out += 1
                log.info("called out")
        return called_out

    def init_barriers_master(self, workorder: Workorder) -> None:
        """Create one barrier per transaction index, sized to all strands using it."""
        n = workorder.max_txn()
        if n > NUM_BARRIER:
            raise ShmError("Shm exhausted!")
        strand_per_txn = [0] * n
        for g in workorder.groups:
            for j in range(g.ntxn):
                strand_per_txn[j] += g.nthreads
        self.barriers = [Barrier(limit) for limit in strand_per_txn]
        self.nobarrier = n

    def init_barriers_slave(self, group: Group) -> None:
        """Create one barrier per transaction of the group, sized to its strands."""
        n = group.ntxn
        if n > NUM_BARRIER:
            raise ShmError("Shm exhausted!")
        self.barriers = [Barrier(group.nthreads) for _ in range(n)]
        self.nobarrier = n

    def get_barrier(self, grp: int, txn: int) -> Barrier:
        """Barrier guarding transaction ``txn``; shared across groups."""
        return self.barriers[txn]

    def update_strand_exit(self) -> None:
        """Count one more strand as finished."""
        with self.lock:
            self.finished += 1

    def flag_error(self, reason: str | None = None) -> None:
        """Raise the global error count so strands stop at their next check."""
        with self.lock:
            self.global_error += 1
        if reason:
            log.error("flag_error:global_error=%d, %s", self.global_error, reason)

    def new_stats(
        self,
        stats_type: StatsType,
        sid: int,
        gid: int,
        tid: int,
        fid: int,
        name: str,
    ) -> NewStats:
        """Allocate and return a fresh statistics record."""
        with self.lock:
            if self.nstats_capacity is not None and len(self.nstats) >= self.nstats_capacity:
                raise ShmError("statistics area exhausted")
            ns = NewStats(type=stats_type, sid=sid, gid=gid, tid=tid, fid=fid, name=name)
            self.nstats.append(ns)
        return ns

    def update_aggr_stat(self, strand_stats: Iterable[NewStats]) -> None:
        """Recompute the aggregate size and count from the strands' own totals."""
        self.agg_stat.size = 0
        self.agg_stat.count = 0
        for ns in strand_stats:
            self.agg_stat.size += ns.size
            self.agg_stat.count += ns.count
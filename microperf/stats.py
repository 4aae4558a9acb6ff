"""Per-flowop, per-transaction and per-group timing statistics."""

from __future__ import annotations

import enum
import sys
import time
from dataclasses import dataclass, field
from typing import TextIO

AGG_STAT_NAME = "Total"
HISTORY_PER_STRAND = 8192
ULONG_MAX = 2**64 - 1


def hrtime() -> int:
    """Current wall-clock time in nanoseconds."""
    return time.time_ns()


def _hrvtime() -> int:
    """CPU time consumed by the calling thread, in nanoseconds."""
    return time.thread_time_ns()


class StatsType(enum.IntEnum):
    """What a statistics record measures."""

    FLOWOP = 0
    TXN = 1
    GROUP = 2
    APP = 3
    STRAND = 4


class StatsEvent(enum.IntEnum):
    """Points in execution at which statistics are updated."""

    FLOWOP_BEGIN = 1
    FLOWOP_END = 2
    TXN_BEGIN = 3
    TXN_END = 4
    GROUP_BEGIN = 5
    GROUP_END = 6


@dataclass
class StatsOptions:
    """Which kinds of statistics are being collected."""

    enabled: bool = True
    flowop: bool = False
    txn: bool = False
    group: bool = False
    history: bool = False
    utilization: bool = False
    cpucounter: bool = False


@dataclass
class NewStats:
    """Accumulated timing and volume for one measured entity."""

    start_time: int = 0
    end_time: int = 0
    time_used_start: int = 0
    cpu_time_start: int = 0
    max: int = 0
    min: int = 0
    size: int = 0
    count: int = 0
    time_used: int = 0
    cpu_time: int = 0
    pic0: int = 0
    pic1: int = 0
    type: StatsType = StatsType.FLOWOP
    sid: int = 0
    gid: int = 0
    tid: int = 0
    fid: int = 0
    name: str = ""

    def begin(self, options: StatsOptions | None = None) -> None:
        """Mark the start of a measured interval."""
        now = hrtime()
        if self.start_time == 0:
            self.start_time = now
        if self.min == 0:
            self.min = ULONG_MAX
        self.time_used_start = hrtime()
        if options is not None and options.utilization:
            self.cpu_time_start = _hrvtime()

    def end(self, size: int = 0, count: int = 0, options: StatsOptions | None = None) -> None:
        """Mark the end of a measured interval and fold it into the totals."""
        self.end_time = hrtime()
        if options is not None and options.utilization:
            self.cpu_time_start = _hrvtime()
        self.size += size
        self.count += count
        delta = self.end_time - self.time_used_start
        self.time_used += delta
        self.max = max(self.max, delta)
        self.min = min(self.min, delta)

    def add(self, other: NewStats) -> None:
        """Fold another record's totals into this one."""
        self.count += other.count
        self.time_used += other.time_used
        self.cpu_time += other.cpu_time
        self.size += other.size
        self.pic0 += other.pic0
        self.pic1 += other.pic1
        self.start_time = min(self.start_time, other.start_time)
        self.end_time = max(self.end_time, other.end_time)
        self.max = max(self.max, other.max)
        self.min = min(self.min, other.min)


@dataclass(frozen=True)
class HistoryEntry:
    """One recorded flowop completion."""

    type: int
    etime: int
    delta: int


@dataclass
class History:
    """Bounded buffer of per-strand history entries written out when full."""

    stream: TextIO = field(default_factory=lambda: sys.stdout)
    pid: int = 0
    tid: int = 0
    capacity: int = HISTORY_PER_STRAND
    entries: list[HistoryEntry] = field(default_factory=list)

    def record(self, entry_type: int, etime: int, delta: int) -> None:
        """Append an entry, flushing first if the buffer is full."""
        if len(self.entries) >= self.capacity:
            self.flush()
        self.entries.append(HistoryEntry(int(entry_type), etime, delta))

    def flush(self) -> None:
        """Write every buffered entry to the stream and empty the buffer."""
        for h in self.entries:
            self.stream.write(
                f"{self.pid:6d} {self.tid:6d} {h.type:2d} {h.etime:15d} {h.delta:15d}\n"
            )
        self.entries.clear()


def stats_update(
    event: StatsEvent,
    strand_stats: NewStats,
    stats: NewStats | None,
    size: int,
    count: int,
    options: StatsOptions,
    history: History | None = None,
) -> None:
    """Update statistics for an execution event according to the options."""
    if not options.enabled:
        return
    per_flowop = options.flowop or options.group or options.history

    if event is StatsEvent.FLOWOP_BEGIN:
        if per_flowop and stats is not None:
            stats.begin(options)
    elif event is StatsEvent.FLOWOP_END:
        strand_stats.size += size * count
        strand_stats.count += count
        if per_flowop and stats is not None:
            stats.end(size, count, options)
            if options.history and history is not None:
                history.record(
                    StatsType.FLOWOP, stats.end_time, stats.end_time - stats.time_used_start
                )
    elif event is StatsEvent.TXN_BEGIN:
        if options.txn and stats is not None:
            stats.begin(options)
    elif event is StatsEvent.GROUP_BEGIN:
        if options.group and stats is not None:
            stats.begin(options)
    elif event is StatsEvent.TXN_END:
        if options.txn and stats is not None:
            stats.end(0, count, options)
    elif event is StatsEvent.GROUP_END:
        if options.group and stats is not None:
            stats.end(0, count, options)
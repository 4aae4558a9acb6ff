import io
import time

from microperf.stats import (
    ULONG_MAX,
    History,
    NewStats,
    StatsEvent,
    StatsOptions,
    StatsType,
    hrtime,
    stats_update,
)


def test_hrtime_advances():
    a = hrtime()
    time.sleep(0.001)
    b = hrtime()
    assert a > 0
    assert b > a


def test_begin_sets_start_and_min():
    ns = NewStats()
    ns.begin()
    assert ns.start_time > 0
    assert ns.min == ULONG_MAX
    assert ns.time_used_start >= ns.start_time


def test_begin_keeps_existing_start_time():
    ns = NewStats(start_time=42)
    ns.begin()
    assert ns.start_time == 42


def test_end_accumulates():
    ns = NewStats()
    ns.begin()
    ns.end(100, 2)
    ns.begin()
    ns.end(50, 3)
    assert ns.size == 150
    assert ns.count == 5
    assert ns.min <= ns.max
    assert ns.time_used >= ns.max
    assert ns.end_time >= ns.start_time


def test_add_combines_records():
    a = NewStats(count=2, size=10, start_time=5, end_time=20, max=7, min=3, time_used=9)
    b = NewStats(count=3, size=4, start_time=2, end_time=15, max=9, min=4, time_used=1)
    a.add(b)
    assert a.count == 2 + 3
    assert a.size == 10 + 4
    assert a.start_time == 2
    assert a.end_time == 20
    assert a.max == 9
    assert a.min == 3
    assert a.time_used == 9 + 1


def test_disabled_stats_change_nothing():
    strand = NewStats()
    fs = NewStats()
    stats_update(StatsEvent.FLOWOP_END, strand, fs, 10, 2, StatsOptions(enabled=False))
    assert strand.size == 0 and strand.count == 0


def test_flowop_end_updates_strand_even_without_flowop_stats():
    strand = NewStats()
    fs = NewStats()
    stats_update(StatsEvent.FLOWOP_END, strand, fs, 10, 3, StatsOptions())
    assert strand.size == 10 * 3
    assert strand.count == 3
    assert fs.count == 0


def test_flowop_stats_collected_when_enabled():
    strand = NewStats()
    fs = NewStats()
    opts = StatsOptions(flowop=True)
    stats_update(StatsEvent.FLOWOP_BEGIN, strand, fs, 0, 0, opts)
    stats_update(StatsEvent.FLOWOP_END, strand, fs, 8, 1, opts)
    assert fs.size == 8
    assert fs.count == 1
    assert fs.start_time > 0


def test_txn_events_respect_txn_flag():
    strand = NewStats()
    ts = NewStats()
    stats_update(StatsEvent.TXN_BEGIN, strand, ts, 0, 0, StatsOptions(group=True))
    assert ts.start_time == 0
    opts = StatsOptions(txn=True)
    stats_update(StatsEvent.TXN_BEGIN, strand, ts, 0, 0, opts)
    stats_update(StatsEvent.TXN_END, strand, ts, 99, 4, opts)
    assert ts.count == 4
    assert ts.size == 0


def test_group_events_respect_group_flag():
    strand = NewStats()
    gs = NewStats()
    opts = StatsOptions(group=True)
    stats_update(StatsEvent.GROUP_BEGIN, strand, gs, 0, 0, opts)
    stats_update(StatsEvent.GROUP_END, strand, gs, 0, 6, opts)
    assert gs.count == 6


def test_history_recorded_on_flowop_end():
    out = io.StringIO()
    hist = History(stream=out)
    opts = StatsOptions(history=True)
    strand = NewStats()
    fs = NewStats()
    stats_update(StatsEvent.FLOWOP_BEGIN, strand, fs, 0, 0, opts, hist)
    stats_update(StatsEvent.FLOWOP_END, strand, fs, 1, 1, opts, hist)
    assert len(hist.entries) == 1
    assert hist.entries[0].type == StatsType.FLOWOP
    assert hist.entries[0].etime == fs.end_time


def test_history_flush_format():
    out = io.StringIO()
    hist = History(stream=out, pid=1, tid=2)
    hist.record(StatsType.FLOWOP, 100, 5)
    hist.flush()
    assert out.getvalue() == "     1      2  0             100               5\n"
    assert hist.entries == []


def test_history_flushes_when_full():
    out = io.StringIO()
    hist = History(stream=out, capacity=2)
    for i in range(3):
        hist.record(StatsType.TXN, i, i)
    assert len(out.getvalue().splitlines()) == 2
    assert len(hist.entries) == 1
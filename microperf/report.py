"""Human-readable reports of run statistics."""

from __future__ import annotations

import functools
import math
import shutil
from dataclasses import dataclass
from typing import Iterable, Sequence

from .shm import SharedState
from .stats import ULONG_MAX, NewStats, StatsType
from .strand import Strand

WINDOW_WIDTH = 128
DEFAULT_WIDTH = 80

AVG_HDR = "   Count         avg         cpu         max         min "
GOODBYE_HDR = (
    "\nRun Statistics\nHostname            Time       Data   "
    "Throughput   Operations      Errors\n"
)

NUMBER_BASE = 1024
NUMBER_UNITS = ("B", "KB", "MB", "GB", "TB", "PB")
BITS_BASE = 1000
BITS_UNITS = ("b/s", "Kb/s", "Mb/s", "Gb/s", "Tb/s", "Pb/s")
TIME_BASE = 1000
TIME_UNITS = ("ns", "us", "ms", "s")


@dataclass
class GoodbyeStat:
    """Totals a peer reports at the end of a run."""

    elapsed_time: int = 0
    error: int = 0
    bytes_xfer: int = 0
    count: int = 0


@functools.lru_cache(maxsize=1)
def _window_width() -> int:
    columns = shutil.get_terminal_size((DEFAULT_WIDTH, 24)).columns or DEFAULT_WIDTH
    return min(columns, WINDOW_WIDTH)


def _width(width: int | None) -> int:
    return _window_width() if width is None else width


def _div(a: float, b: float) -> float:
    """Floating division that yields inf or nan instead of raising."""
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a)
    return a / b


def _scale(value: float, base: int, units: Sequence[str]) -> tuple[float, str]:
    for unit in units[:-1]:
        if abs(value) < base:
            return value, unit
        value /= base
    return value, units[-1]


def _format_scaled(value: float, width: int, base: int, units: Sequence[str]) -> str:
    if not math.isfinite(value):
        return f"{value}".rjust(width)
    scaled, unit = _scale(float(value), base, units)
    return f"{scaled:.2f}{unit}".rjust(width)


def format_number(value: float, width: int) -> str:
    """Byte count scaled to B, KB, MB... and right-aligned in ``width`` columns."""
    return _format_scaled(value, width, NUMBER_BASE, NUMBER_UNITS)


def format_bits(value: float, width: int) -> str:
    """Bit rate scaled to b/s, Kb/s, Mb/s... and right-aligned in ``width`` columns."""
    return _format_scaled(value, width, BITS_BASE, BITS_UNITS)


def format_time(nanoseconds: float, width: int) -> str:
    """Duration in nanoseconds scaled to ns, us, ms or s, right-aligned."""
    return _format_scaled(nanoseconds, width, TIME_BASE, TIME_UNITS)


def uperf_line(width: int | None = None) -> str:
    """A separator rule one column narrower than the window."""
    return "-" * (_width(width) - 1)


def _avg_header(label: str, width: int | None = None) -> str:
    return f"\n{label:<15} {AVG_HDR}\n{uperf_line(width)}\n"


def _empty_accumulator(name: str = "") -> NewStats:
    return NewStats(min=ULONG_MAX, start_time=ULONG_MAX, name=name)


def format_summary(stats: NewStats, raw: bool = False, width: int | None = None) -> str:
    """One-line throughput summary; empty when the interval has no length.

    With ``width`` the line is padded so it covers a previous line of that window.
    """
    elapsed = stats.end_time - stats.start_time
    if elapsed <= 0:
        return ""
    if raw:
        return (
            f"timestamp_ms:{stats.end_time / 1.0e6:.4f} name:{stats.name} "
            f"nr_bytes:{stats.size} nr_ops:{stats.count}"
        )
    time_s = elapsed / 1.0e9
    throughput = stats.size * 8.0 / time_s
    ops = stats.count / time_s
    line = (
        f"{stats.name[:8]:<8} {format_number(stats.size, 8)}/{time_s:7.2f}(s) = "
        f"{format_bits(throughput, 12)} {ops:10.0f}op/s"
    )
    if width is not None:
        line = line.ljust(width - 1)
    return line


def format_average(stats: NewStats | None) -> str:
    """Per-operation averages of a record; empty when nothing was counted."""
    if stats is None or stats.count == 0:
        return ""
    avg = stats.time_used // stats.count
    cpu = stats.cpu_time // stats.count
    line = (
        f"{stats.name:<15} {stats.count:8d} "
        + " ".join(format_time(v, 11) for v in (avg, cpu, stats.max, stats.min))
    )
    if stats.pic0 > 0:
        line += f" {stats.pic0 / stats.count:<12.0f} {stats.pic1 / stats.count:<12.0f}"
    return line


def _lines(parts: Iterable[str]) -> str:
    return "".join(f"{p}\n" for p in parts if p)


def _matching(shared: SharedState, stype: StatsType, gid: int, tid: int,
              fid: int | None = None) -> Iterable[NewStats]:
    for p in shared.nstats:
        if p.type == stype and p.gid == gid and p.tid == tid and (fid is None or p.fid == fid):
            yield p


def format_txn_averages(shared: SharedState) -> str:
    """Averages of every transaction, summed over the strands that ran it."""
    out = [_avg_header("Txn")]
    rows = []
    workorder = shared.workorder
    for g in (workorder.groups if workorder else []):
        for txn in g.transactions:
            ns = _empty_accumulator(f"Txn{txn.txnid}")
            for p in _matching(shared, StatsType.TXN, g.groupid, txn.txnid):
                ns.add(p)
            rows.append(format_average(ns))
    out.append(_lines(rows))
    out.append("\n")
    return "".join(out)


def format_group_details(shared: SharedState) -> str:
    """Throughput summary of every group."""
    out = [f"\nGroup Details\n{uperf_line()}\n"]
    rows = []
    workorder = shared.workorder
    for g in (workorder.groups if workorder else []):
        ns = _empty_accumulator(g.name)
        for txn in g.transactions:
            for _ in txn.flowops:
                for p in _matching(shared, StatsType.FLOWOP, g.groupid, txn.txnid):
                    ns.add(p)
        rows.append(format_summary(ns))
    out.append(_lines(rows))
    out.append("\n")
    return "".join(out)


def format_strand_details(shared: SharedState, strands: Sequence[Strand]) -> str:
    """Throughput summary of every strand of the run."""
    limit = shared.no_strands if shared.no_strands else len(strands)
    out = [f"\nStrand Details\n{uperf_line()}\n"]
    out.append(_lines(format_summary(s.nstats) for s in strands[:limit]))
    out.append("\n")
    return "".join(out)


def format_flowop_averages(shared: SharedState) -> str:
    """Averages of every flowop, summed over the strands that ran it."""
    out = [_avg_header("Flowop")]
    rows = []
    workorder = shared.workorder
    for i, g in enumerate(workorder.groups if workorder else []):
        for txn in g.transactions:
            for f in txn.flowops:
                ns = _empty_accumulator(f.name)
                for p in _matching(shared, StatsType.FLOWOP, i, txn.txnid, f.id):
                    ns.add(p)
                rows.append(format_average(ns))
    out.append(_lines(rows))
    out.append("\n")
    return "".join(out)


def format_goodbye_header(width: int | None = None) -> str:
    """Heading of the per-host run statistics table."""
    return f"{GOODBYE_HDR}{uperf_line(width)}\n"


def format_goodbye_stat(host: str, gstat: GoodbyeStat) -> str:
    """One row of the run statistics table."""
    thro = 1.0
    if gstat.elapsed_time > 0:
        thro = (gstat.bytes_xfer * 8) / (gstat.elapsed_time / 1.0e9)
    err = _div(100.0 * gstat.error, gstat.count)
    return (
        f"{host[:15]:<15} {format_time(gstat.elapsed_time, 8)} "
        f"{format_number(float(gstat.bytes_xfer), 10)} {format_bits(thro, 12)} "
        f"{gstat.count:12d} {err:11.2f}\n"
    )


def _err_per(a: float, b: float) -> float:
    return 0.0 if b == 0 else 100.0 - _div(100.0 * b, a)


def format_difference(local: GoodbyeStat, remote: GoodbyeStat,
                      width: int | None = None) -> str:
    """Percentage differences between what the two peers measured."""
    ta = _div(local.bytes_xfer * 8, local.elapsed_time / 1.0e9)
    tb = _div(remote.bytes_xfer * 8, remote.elapsed_time / 1.0e9)
    em = _div(100.0 * local.error, local.count)
    es = _div(100.0 * remote.error, remote.count)
    worst = em if em > es else es
    return (
        f"{uperf_line(width)}\n"
        f"{'Difference(%)':<15} "
        f"{_err_per(local.elapsed_time, remote.elapsed_time):7.2f}% "
        f"{_err_per(local.bytes_xfer, remote.bytes_xfer):9.2f}% "
        f"{_err_per(ta, tb):11.2f}% "
        f"{_err_per(local.count, remote.count):11.2f}% "
        f"{worst:10.2f}%\n\n"
    )
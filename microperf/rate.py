"""Run a callback at a fixed rate for roughly one second."""

from __future__ import annotations

import time
from typing import Callable

INTERVALS_PER_SEC = 2
_TIMESHIFT = 10
_ONE_SEC = 1_000_000_000
_MIN_SLEEP_NS = 2000

Callback = Callable[[], "int | None"]


def _now() -> int:
    return time.monotonic_ns()


def _sleep_ns(ns: int) -> int:
    time.sleep(ns / 1e9)
    return 0


def _check_rate(rate: int) -> None:
    if rate <= 0:
        raise ValueError("rate must be positive")


def _rate_delta(callback: Callback, rate: int) -> int:
    """Run one interval's share of calls, then sleep out the interval."""
    per_loop = max(rate // INTERVALS_PER_SEC, 1)
    local_stop = _now() + _ONE_SEC // INTERVALS_PER_SEC
    for _ in range(per_loop):
        if (_now() >> _TIMESHIFT) > (local_stop >> _TIMESHIFT):
            break
        ret = callback()
        if ret:
            return ret
    sleep_time = local_stop - _now()
    if sleep_time > _MIN_SLEEP_NS:
        return _sleep_ns(sleep_time)
    return 0


def rate_execute_1s(callback: Callback, rate: int) -> int:
    """Call ``callback`` about ``rate`` times over one second, sleeping between bursts.

    Returns 0, or the first non-zero value the callback returned.
    """
    _check_rate(rate)
    begin = _now()
    ret = 0
    for _ in range(INTERVALS_PER_SEC):
        ret = _rate_delta(callback, rate)
        if ret:
            return ret
    elapsed = _now() - begin
    if elapsed < _ONE_SEC:
        return _sleep_ns(_ONE_SEC - elapsed)
    return ret


def rate_execute_1s_busywait(callback: Callback, rate: int) -> int:
    """Call ``callback`` at evenly spaced instants over one second, spinning between calls.

    Returns 0, or the first non-zero value the callback returned.
    """
    _check_rate(rate)
    interval = int(_ONE_SEC / rate)
    begin = _now()
    now = _now()
    i = 0
    ret = 0
    while now - begin < _ONE_SEC:
        if now - begin >= interval * i:
            ret = callback()
            if ret:
                return ret
            ret = 0
            i += 1
        now = _now()
    return ret
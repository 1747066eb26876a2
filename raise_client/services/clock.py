"""Time sources and small timestamp helpers.

Lifecycle rules never read the wall clock themselves; callers pass a unix
timestamp taken from a Clock.
"""
import time
from typing import Optional, Protocol


class Clock(Protocol):
    def now(self) -> int:
        ...


class SystemClock:
    """Wall clock, unix seconds"""

    def now(self) -> int:
        return int(time.time())


class FixedClock:
    """Manually advanced clock for tests and simulations"""

    def __init__(self, start: int = 1_700_000_000):
        self._now = start

    def now(self) -> int:
        return self._now

    def set(self, timestamp: int) -> None:
        self._now = timestamp

    def advance(self, seconds: int) -> int:
        self._now += seconds
        return self._now


def has_passed(timestamp: Optional[int], now: int) -> bool:
    return timestamp is not None and now > timestamp


def time_remaining(timestamp: int, now: int) -> int:
    """Seconds left until timestamp, 0 once passed"""
    return max(timestamp - now, 0)


def format_duration(seconds: int) -> str:
    """e.g. "2d 5h 30m"; seconds are only shown for sub-day durations"""
    if seconds <= 0:
        return "0s"
    days, rest = divmod(seconds, 86_400)
    hours, rest = divmod(rest, 3_600)
    minutes, secs = divmod(rest, 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs and not days:
        parts.append(f"{secs}s")
    return " ".join(parts) or "0s"

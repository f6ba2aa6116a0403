"""
Core Module - Clock.

============================================================
RESPONSIBILITY
============================================================
Single source of "now" for the risk definition workflows:
domain and element "updated at" markers, event times and
change log rows.

- All workflow timestamps MUST come from a ClockProtocol
- Timestamps are timezone-aware UTC
- Tests install a FixedClock instead of patching datetime

============================================================
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Generator, Optional
import threading


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


# ============================================================
# CLOCK PROTOCOL
# ============================================================

class ClockProtocol(ABC):
    """Time source injected into the engine."""

    @abstractmethod
    def now(self) -> datetime:
        """Current moment, timezone-aware UTC."""
        pass


class SystemClock(ClockProtocol):
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(ClockProtocol):
    """
    Clock frozen at a given moment until advanced.

    Lets tests assert the exact timestamp a workflow wrote.
    Naive datetimes are taken as UTC.
    """

    def __init__(self, moment: Optional[datetime] = None):
        self._moment = _as_utc(moment or datetime.now(timezone.utc))
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._moment

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        """Move forward by a timedelta built from seconds and kwargs; returns the new moment."""
        with self._lock:
            self._moment = self._moment + timedelta(seconds=seconds, **kwargs)
            return self._moment


# ============================================================
# PROCESS-WIDE CLOCK
# ============================================================

class ClockFactory:
    """
    Holds the clock used when none is injected.

    The engine takes an explicit clock; this default only serves
    helpers such as now_utc() and engines built without one.
    """

    _clock: Optional[ClockProtocol] = None
    _lock = threading.Lock()

    @classmethod
    def get_clock(cls) -> ClockProtocol:
        with cls._lock:
            if cls._clock is None:
                cls._clock = SystemClock()
            return cls._clock

    @classmethod
    def set_clock(cls, clock: ClockProtocol) -> None:
        with cls._lock:
            cls._clock = clock

    @classmethod
    def reset(cls) -> None:
        """Back to the wall clock."""
        cls.set_clock(SystemClock())

    @classmethod
    @contextmanager
    def use_fixed(cls, moment: Optional[datetime] = None) -> Generator[FixedClock, None, None]:
        """Install a FixedClock for the duration of the block."""
        previous = cls.get_clock()
        fixed = FixedClock(moment)
        cls.set_clock(fixed)
        try:
            yield fixed
        finally:
            cls.set_clock(previous)


def now_utc() -> datetime:
    """Current moment from the process-wide clock."""
    return ClockFactory.get_clock().now()


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "FixedClock",
    "ClockFactory",
    "now_utc",
]

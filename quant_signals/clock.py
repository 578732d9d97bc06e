"""
Time Sources
============
Injectable clocks. Cooldowns and regime durations read time only through
one of these, so tests and backtests can drive virtual time.
"""

import time
from abc import ABC, abstractmethod


class Clock(ABC):
    """Source of the current time in epoch milliseconds."""

    @abstractmethod
    def now_ms(self) -> int:
        pass


class SystemClock(Clock):
    """Wall-clock time."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


class ManualClock(Clock):
    """
    Clock that only moves when told to.

    Used by tests and by the backtest engine, which sets it to each
    candle's time before asking for a signal.
    """

    def __init__(self, start_ms: int = 0):
        self.current_ms = int(start_ms)

    def now_ms(self) -> int:
        return self.current_ms

    def advance(self, ms: int):
        if ms < 0:
            raise ValueError("Clock cannot move backwards")
        self.current_ms += int(ms)

    def set(self, ms: int):
        """Jump to an absolute time; never earlier than the current one."""
        ms = int(ms)
        if ms < self.current_ms:
            raise ValueError(f"Clock cannot move backwards ({ms} < {self.current_ms})")
        self.current_ms = ms

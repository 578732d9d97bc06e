"""
Trade Records
=============
Immutable trade value object shared by the backtest engine and the live
performance tracker, so both compute P&L with the same formula.
"""

from dataclasses import dataclass, asdict, replace
from typing import Optional, Tuple
from enum import Enum

from .exceptions import TradeStateError


class TradeDirection(Enum):
    LONG = "long"
    SHORT = "short"


class TradeStatus(Enum):
    OPEN = "open"
    CLOSED = "closed"
    STOPPED_OUT = "stopped_out"


def pnl_fraction(direction: TradeDirection, entry_price: float, exit_price: float) -> float:
    """Direction-aware profit as a fraction of the entry price."""
    if entry_price <= 0:
        raise ValueError("entry_price must be positive")
    if direction == TradeDirection.LONG:
        return (exit_price - entry_price) / entry_price
    return (entry_price - exit_price) / entry_price


@dataclass(frozen=True)
class Trade:
    """
    Single round-trip trade.

    Created open; ``close`` returns the closed copy and refuses to run twice,
    so a closed id can never become open again.
    """
    id: str
    direction: TradeDirection
    entry_price: float
    entry_time: float
    position_size: float = 1.0
    entry_signal_id: Optional[str] = None

    # Exit
    exit_price: Optional[float] = None
    exit_time: Optional[float] = None
    status: TradeStatus = TradeStatus.OPEN
    pnl_percent: Optional[float] = None
    pnl_absolute: Optional[float] = None
    exit_signal_id: Optional[str] = None

    # Annotations
    entry_reason: Optional[str] = None
    exit_reason: Optional[str] = None
    tags: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.entry_price <= 0:
            raise ValueError(f"Trade {self.id}: entry_price must be positive")
        if self.position_size <= 0:
            raise ValueError(f"Trade {self.id}: position_size must be positive")

    @property
    def is_open(self) -> bool:
        return self.status == TradeStatus.OPEN

    @property
    def profit(self) -> float:
        """Realized profit as a fraction of entry (0 while open)."""
        if self.pnl_percent is None:
            return 0.0
        return self.pnl_percent / 100

    def close(self, exit_price: float, exit_time: float, reason: Optional[str] = None,
              stopped_out: bool = False, exit_signal_id: Optional[str] = None) -> 'Trade':
        """Return the closed copy of this trade with P&L filled in."""
        if not self.is_open:
            raise TradeStateError(f"Trade {self.id} is already {self.status.value}")

        fraction = pnl_fraction(self.direction, self.entry_price, exit_price)
        return replace(
            self,
            exit_price=exit_price,
            exit_time=exit_time,
            status=TradeStatus.STOPPED_OUT if stopped_out else TradeStatus.CLOSED,
            pnl_percent=fraction * 100,
            pnl_absolute=fraction * self.entry_price * self.position_size,
            exit_signal_id=exit_signal_id,
            exit_reason=reason,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data['direction'] = self.direction.value
        data['status'] = self.status.value
        data['tags'] = list(self.tags)
        return data

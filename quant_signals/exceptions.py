"""
Exceptions
==========
Errors raised for caller-side contract violations.

Thin data (a window shorter than an indicator needs) is never an error:
indicators, the regime detector and the signal generator return sentinels
instead so streaming callers do not crash while history is still short.
"""


class QuantSignalsError(Exception):
    """Base class for all engine errors."""


class InsufficientDataError(QuantSignalsError, ValueError):
    """Raised when a caller requests a computation with too few candles."""

    def __init__(self, required: int, received: int, what: str = "calculation"):
        self.required = required
        self.received = received
        super().__init__(
            f"Need at least {required} candles for {what}, got {received}"
        )


class InvalidCandleError(QuantSignalsError, ValueError):
    """Candle violates the OHLCV invariants."""


class CandleOrderError(QuantSignalsError, ValueError):
    """Candle arrived out of time order."""


class ConfigError(QuantSignalsError, ValueError):
    """Configuration value is out of range or unknown."""


class TradeStateError(QuantSignalsError):
    """Illegal trade lifecycle transition (e.g. closing a closed trade)."""


class DuplicateTradeError(TradeStateError):
    """Trade id already recorded."""

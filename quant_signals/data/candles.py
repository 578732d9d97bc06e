"""
Candle Data Module
==================
OHLCV candle model plus the conversions collaborators need to hand candles
to the engine: raw exchange rows, dicts and pandas DataFrames.

The engine expects ``time`` in seconds since the epoch. Exchange feeds that
report milliseconds must be normalized with ``normalize_timestamp`` first.
"""

import pandas as pd
from dataclasses import dataclass, asdict
from typing import Any, Iterable, List, Optional, Sequence
import logging

from ..exceptions import InvalidCandleError

logger = logging.getLogger(__name__)

# Anything above this is treated as a millisecond timestamp (year ~2286 in seconds)
_MS_THRESHOLD = 10_000_000_000

CANDLE_COLUMNS = ['time', 'open', 'high', 'low', 'close', 'volume']


@dataclass(frozen=True)
class Candle:
    """Fixed-interval OHLCV aggregate."""
    time: float
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    # Optional exchange metadata
    close_time: Optional[float] = None
    quote_volume: Optional[float] = None
    trade_count: Optional[int] = None
    taker_buy_base_volume: Optional[float] = None
    taker_buy_quote_volume: Optional[float] = None

    @property
    def typical_price(self) -> float:
        return (self.high + self.low + self.close) / 3

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


def normalize_timestamp(ts: float) -> float:
    """Convert a millisecond epoch to seconds; seconds pass through."""
    ts = float(ts)
    if ts > _MS_THRESHOLD:
        return ts / 1000.0
    return ts


def _opt_float(value) -> Optional[float]:
    if value is None or value == '':
        return None
    return float(value)


def parse_candle(raw: Any) -> Candle:
    """
    Flexible candle parser - handles dict, list/tuple row, or object.

    List rows follow the exchange kline layout:
    ``[open_time, open, high, low, close, volume, close_time, quote_volume,
    trade_count, taker_buy_base, taker_buy_quote, ...]``.
    Timestamps are normalized to seconds.
    """
    if isinstance(raw, Candle):
        return raw

    if isinstance(raw, dict):
        ts = raw.get('time', raw.get('timestamp'))
        if ts is None:
            raise InvalidCandleError(f"Candle is missing a time field: {raw}")
        close_time = _opt_float(raw.get('close_time', raw.get('closeTime')))
        trade_count = raw.get('trade_count', raw.get('tradeCount'))
        return Candle(
            time=normalize_timestamp(ts),
            open=float(raw['open']),
            high=float(raw['high']),
            low=float(raw['low']),
            close=float(raw['close']),
            volume=float(raw.get('volume', 0) or 0),
            close_time=normalize_timestamp(close_time) if close_time is not None else None,
            quote_volume=_opt_float(raw.get('quote_volume', raw.get('quoteVolume'))),
            trade_count=int(trade_count) if trade_count is not None else None,
            taker_buy_base_volume=_opt_float(raw.get('taker_buy_base_volume')),
            taker_buy_quote_volume=_opt_float(raw.get('taker_buy_quote_volume')),
        )

    if isinstance(raw, (list, tuple)):
        if len(raw) < 5:
            raise InvalidCandleError(f"Candle row needs at least 5 fields, got {len(raw)}")
        extra = list(raw[6:11]) + [None] * (5 - len(raw[6:11]))
        return Candle(
            time=normalize_timestamp(raw[0]),
            open=float(raw[1]),
            high=float(raw[2]),
            low=float(raw[3]),
            close=float(raw[4]),
            volume=float(raw[5]) if len(raw) > 5 else 0.0,
            close_time=normalize_timestamp(extra[0]) if extra[0] is not None else None,
            quote_volume=_opt_float(extra[1]),
            trade_count=int(extra[2]) if extra[2] is not None else None,
            taker_buy_base_volume=_opt_float(extra[3]),
            taker_buy_quote_volume=_opt_float(extra[4]),
        )

    ts = getattr(raw, 'time', getattr(raw, 'timestamp', None))
    if ts is None:
        raise InvalidCandleError(f"Cannot parse candle from {type(raw).__name__}")
    return Candle(
        time=normalize_timestamp(ts),
        open=float(raw.open),
        high=float(raw.high),
        low=float(raw.low),
        close=float(raw.close),
        volume=float(getattr(raw, 'volume', 0) or 0),
    )


def parse_candles(rows: Iterable[Any]) -> List[Candle]:
    return [parse_candle(r) for r in rows]


def validate_candle(candle: Candle) -> Candle:
    """Check the OHLCV invariants, raising InvalidCandleError on violation."""
    if candle.high < max(candle.open, candle.close):
        raise InvalidCandleError(f"high {candle.high} below open/close at t={candle.time}")
    if candle.low > min(candle.open, candle.close):
        raise InvalidCandleError(f"low {candle.low} above open/close at t={candle.time}")
    if candle.volume < 0:
        raise InvalidCandleError(f"negative volume at t={candle.time}")
    return candle


def validate_series(candles: Sequence[Candle]) -> Sequence[Candle]:
    """Validate every candle and the strictly ascending time order."""
    prev_time = None
    for candle in candles:
        validate_candle(candle)
        if prev_time is not None and candle.time <= prev_time:
            raise InvalidCandleError(
                f"Candles must be strictly ascending by time ({candle.time} after {prev_time})"
            )
        prev_time = candle.time
    return candles


def candles_to_frame(candles: Sequence[Candle]) -> pd.DataFrame:
    """Candles as a DataFrame with the OHLCV columns."""
    if not candles:
        return pd.DataFrame(columns=CANDLE_COLUMNS)
    return pd.DataFrame(
        [[c.time, c.open, c.high, c.low, c.close, c.volume] for c in candles],
        columns=CANDLE_COLUMNS
    )


def candles_from_frame(df: pd.DataFrame) -> List[Candle]:
    """
    Build candles from a DataFrame.

    Column names are matched case-insensitively. Without a ``time`` or
    ``timestamp`` column the index is used (datetimes become epoch seconds).
    """
    frame = df.rename(columns={c: str(c).lower() for c in df.columns})
    missing = [c for c in ('open', 'high', 'low', 'close') if c not in frame.columns]
    if missing:
        raise InvalidCandleError(f"DataFrame is missing columns: {missing}")

    if 'time' in frame.columns:
        times = frame['time']
    elif 'timestamp' in frame.columns:
        times = frame['timestamp']
    else:
        times = pd.Series(frame.index, index=frame.index)

    if pd.api.types.is_datetime64_any_dtype(times):
        times = times.map(pd.Timestamp.timestamp)

    volumes = frame['volume'] if 'volume' in frame.columns else pd.Series(0.0, index=frame.index)

    candles = [
        Candle(
            time=normalize_timestamp(t),
            open=float(o),
            high=float(h),
            low=float(l),
            close=float(c),
            volume=float(v),
        )
        for t, o, h, l, c, v in zip(times, frame['open'], frame['high'],
                                    frame['low'], frame['close'], volumes)
    ]
    logger.debug(f"Built {len(candles)} candles from DataFrame")
    return candles

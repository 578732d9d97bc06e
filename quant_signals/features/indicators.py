"""
Technical Indicators
====================
Pure indicator functions over a candle window.

Every function takes a list-like candle sequence (oldest first) and keeps no
state between calls. When the window is shorter than the indicator needs, the
documented sentinel comes back (NaN, 0 or False) instead of an exception, so
callers must check for it before acting on the value.
"""

import numpy as np
from dataclasses import dataclass
from typing import Callable, Sequence, Tuple
import math

from ..data.candles import Candle

NAN = float('nan')


@dataclass(frozen=True)
class BollingerBands:
    """Bollinger band levels for the latest candle."""
    upper: float
    middle: float
    lower: float


@dataclass(frozen=True)
class DirectionalIndex:
    """ADX / +DI / -DI series, one value per candle (NaN where undefined)."""
    adx: np.ndarray
    plus_di: np.ndarray
    minus_di: np.ndarray


def _closes(candles: Sequence[Candle]) -> np.ndarray:
    return np.array([c.close for c in candles], dtype=float)


def _volumes(candles: Sequence[Candle]) -> np.ndarray:
    return np.array([c.volume for c in candles], dtype=float)


# ---------------------------------------------------------------------------
# Moving averages
# ---------------------------------------------------------------------------

def ema(period: int) -> Callable[[Sequence[Candle]], float]:
    """
    Exponential Moving Average factory.

    The returned function seeds with the close of the oldest candle in the
    last ``period`` candles and applies ``k = 2 / (period + 1)`` forward
    through the rest of that window. NaN when fewer than ``period`` candles.
    """
    k = 2 / (period + 1)

    def _ema(candles: Sequence[Candle]) -> float:
        n = len(candles)
        if period < 1 or n < period:
            return NAN
        value = candles[n - period].close
        for i in range(n - period + 1, n):
            value = candles[i].close * k + value * (1 - k)
        return float(value)

    return _ema


def ema_value(candles: Sequence[Candle], period: int) -> float:
    """EMA of the latest candle."""
    return ema(period)(candles)


def volume_sma(candles: Sequence[Candle], period: int) -> float:
    """Mean volume over the trailing ``period`` candles; 0 if insufficient data."""
    if period < 1 or len(candles) < period:
        return 0.0
    return float(_volumes(candles[-period:]).mean())


def vwap(candles: Sequence[Candle]) -> float:
    """
    Volume Weighted Average Price over the whole slice.

    No implicit session reset: the caller decides the window.
    Returns 0 for an empty slice or zero total volume.
    """
    if not candles:
        return 0.0
    typical = np.array([(c.high + c.low + c.close) / 3 for c in candles], dtype=float)
    volume = _volumes(candles)
    total_volume = volume.sum()
    if total_volume <= 0:
        return 0.0
    return float((typical * volume).sum() / total_volume)


# ---------------------------------------------------------------------------
# Oscillators
# ---------------------------------------------------------------------------

def rsi(candles: Sequence[Candle], period: int = 14) -> float:
    """
    Relative Strength Index over the trailing ``period`` deltas.

    Average gain and loss are simple means over that window only (no
    recursive smoothing across older history). NaN with fewer than
    ``period + 1`` candles; a window with no movement at all reads 50.
    """
    if period < 1 or len(candles) < period + 1:
        return NAN

    deltas = np.diff(_closes(candles[-(period + 1):]))
    gains = deltas[deltas > 0].sum()
    losses = -deltas[deltas < 0].sum()

    if gains == 0 and losses == 0:
        return 50.0
    if losses == 0:
        return 100.0

    rs = gains / losses
    return float(100 - 100 / (1 + rs))


def rsi14(candles: Sequence[Candle]) -> float:
    """RSI over the last 15 closes."""
    return rsi(candles, 14)


# ---------------------------------------------------------------------------
# Volatility
# ---------------------------------------------------------------------------

def true_range(candles: Sequence[Candle]) -> np.ndarray:
    """True range per candle; the first candle uses high - low."""
    n = len(candles)
    if n == 0:
        return np.zeros(0)

    high = np.array([c.high for c in candles], dtype=float)
    low = np.array([c.low for c in candles], dtype=float)
    close = _closes(candles)

    tr = high - low
    if n > 1:
        prev_close = close[:-1]
        tr[1:] = np.maximum(
            tr[1:],
            np.maximum(np.abs(high[1:] - prev_close), np.abs(low[1:] - prev_close))
        )
    return tr


def calculate_atr(candles: Sequence[Candle], period: int = 14) -> np.ndarray:
    """
    Wilder Average True Range, one value per candle.

    The first ATR (index ``period - 1``) is the simple mean of the first
    ``period`` true ranges; after that ``ATR = (prev * (n - 1) + TR) / n``.
    Earlier indices are 0, and everything is 0 when there are fewer than
    ``period`` candles.
    """
    n = len(candles)
    atr = np.zeros(n)
    if period < 1 or n < period:
        return atr

    tr = true_range(candles)
    value = tr[:period].mean()
    atr[period - 1] = value
    for i in range(period, n):
        value = (value * (period - 1) + tr[i]) / period
        atr[i] = value
    return atr


def current_atr(candles: Sequence[Candle], period: int = 14) -> float:
    """Most recent ATR value, or 0 if not enough data."""
    if len(candles) < period:
        return 0.0
    return float(calculate_atr(candles, period)[-1])


def bollinger_bands(candles: Sequence[Candle], period: int = 20,
                    k: float = 2.0) -> BollingerBands:
    """Bollinger Bands: SMA of close +/- k population standard deviations."""
    if period < 1 or len(candles) < period:
        return BollingerBands(NAN, NAN, NAN)

    closes = _closes(candles[-period:])
    middle = closes.mean()
    std = closes.std()  # population (ddof=0)

    return BollingerBands(
        upper=float(middle + k * std),
        middle=float(middle),
        lower=float(middle - k * std)
    )


# ---------------------------------------------------------------------------
# Trend strength
# ---------------------------------------------------------------------------

def directional_movement(candles: Sequence[Candle], period: int = 14) -> DirectionalIndex:
    """
    Average Directional Index with Wilder smoothing.

    +DM, -DM and TR are Wilder-smoothed from candle ``period`` on, giving
    +DI / -DI; ``DX = 100 * |+DI - -DI| / (+DI + -DI)`` and ADX is the
    Wilder-smoothed DX, first defined at index ``2 * period - 1``.
    """
    n = len(candles)
    adx = np.full(n, np.nan)
    plus_di = np.full(n, np.nan)
    minus_di = np.full(n, np.nan)

    if period < 1 or n < period + 1:
        return DirectionalIndex(adx, plus_di, minus_di)

    high = np.array([c.high for c in candles], dtype=float)
    low = np.array([c.low for c in candles], dtype=float)

    up_move = high[1:] - high[:-1]
    down_move = low[:-1] - low[1:]
    plus_dm = np.where((up_move > down_move) & (up_move > 0), up_move, 0.0)
    minus_dm = np.where((down_move > up_move) & (down_move > 0), down_move, 0.0)
    tr = true_range(candles)[1:]

    # Move j is the move into candle j + 1
    smooth_tr = tr[:period].sum()
    smooth_plus = plus_dm[:period].sum()
    smooth_minus = minus_dm[:period].sum()

    dx = np.full(n, np.nan)
    for i in range(period, n):
        if i > period:
            j = i - 1
            smooth_tr = smooth_tr - smooth_tr / period + tr[j]
            smooth_plus = smooth_plus - smooth_plus / period + plus_dm[j]
            smooth_minus = smooth_minus - smooth_minus / period + minus_dm[j]

        pdi = 100 * smooth_plus / smooth_tr if smooth_tr > 0 else 0.0
        mdi = 100 * smooth_minus / smooth_tr if smooth_tr > 0 else 0.0
        plus_di[i] = pdi
        minus_di[i] = mdi

        total = pdi + mdi
        dx[i] = 100 * abs(pdi - mdi) / total if total > 0 else 0.0

    first = 2 * period - 1
    if n > first:
        value = dx[period:first + 1].mean()
        adx[first] = value
        for i in range(first + 1, n):
            value = (value * (period - 1) + dx[i]) / period
            adx[i] = value

    return DirectionalIndex(adx, plus_di, minus_di)


def calculate_adx(candles: Sequence[Candle], period: int = 14) -> np.ndarray:
    return directional_movement(candles, period).adx


def calculate_plus_di(candles: Sequence[Candle], period: int = 14) -> np.ndarray:
    return directional_movement(candles, period).plus_di


def calculate_minus_di(candles: Sequence[Candle], period: int = 14) -> np.ndarray:
    return directional_movement(candles, period).minus_di


def latest_directional_index(candles: Sequence[Candle],
                             period: int = 14) -> Tuple[float, float, float]:
    """(ADX, +DI, -DI) of the latest candle; NaN where not yet defined."""
    if not candles:
        return NAN, NAN, NAN
    di = directional_movement(candles, period)
    return float(di.adx[-1]), float(di.plus_di[-1]), float(di.minus_di[-1])


# ---------------------------------------------------------------------------
# Volume
# ---------------------------------------------------------------------------

def is_volume_spike(candles: Sequence[Candle], lookback: int = 20,
                    multiplier: float = 2.5) -> bool:
    """True iff the latest volume exceeds ``multiplier`` x the mean of the preceding ``lookback``."""
    if lookback < 1 or len(candles) < lookback + 1:
        return False
    avg_volume = _volumes(candles[-lookback - 1:-1]).mean()
    return bool(candles[-1].volume > avg_volume * multiplier)


def is_volume_confirming(candles: Sequence[Candle], lookback: int = 3,
                         threshold: float = 1.5) -> int:
    """
    Volume confirmation of the price move over ``lookback`` candles.

    Returns 1 for a rise on above-average volume, -1 for a fall on
    above-average volume, 0 otherwise.
    """
    if lookback < 1 or len(candles) < lookback + 1:
        return 0

    price_change = candles[-1].close - candles[-lookback - 1].close
    avg_volume = _volumes(candles[-lookback - 1:-1]).mean()
    heavy = candles[-1].volume > avg_volume * threshold

    if price_change > 0 and heavy:
        return 1
    if price_change < 0 and heavy:
        return -1
    return 0


def volume_ratio(candles: Sequence[Candle], lookback: int = 20) -> float:
    """Latest volume over the mean of the previous ``lookback - 1`` volumes; 1 if unknown."""
    if lookback < 2 or len(candles) < lookback:
        return 1.0
    avg_volume = _volumes(candles[-lookback:-1]).mean()
    if avg_volume <= 0:
        return 1.0
    return float(candles[-1].volume / avg_volume)


def obv(candles: Sequence[Candle]) -> float:
    """On-Balance Volume over the slice."""
    if len(candles) < 2:
        return 0.0
    closes = _closes(candles)
    direction = np.sign(np.diff(closes))
    return float((direction * _volumes(candles)[1:]).sum())


def is_missing(value: float) -> bool:
    """True for the NaN sentinel."""
    return value is None or (isinstance(value, float) and math.isnan(value))

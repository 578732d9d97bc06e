"""
Market Regime Detection
=======================
ADX/DI-based regime state machine fed one candle at a time.

The detector keeps a bounded rolling window, recomputes its indicators on
every update and only moves ``entered_at`` when the classification actually
changes, so the reported duration grows monotonically while a regime holds.
"""

from collections import deque
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Deque, List, Optional
import math
import logging

from ..clock import Clock, SystemClock
from ..data.candles import Candle
from ..features import indicators as ind

logger = logging.getLogger(__name__)

# Confidence reported before the indicators have enough history
INSUFFICIENT_DATA_CONFIDENCE = 10.0


class MarketRegime(Enum):
    """Market regime states."""
    STRONG_TREND_UP = "strong-trend-up"
    STRONG_TREND_DOWN = "strong-trend-down"
    WEAK_TREND_UP = "weak-trend-up"
    WEAK_TREND_DOWN = "weak-trend-down"
    RANGING = "ranging"

    @property
    def is_trending(self) -> bool:
        return self != MarketRegime.RANGING

    @property
    def is_strong(self) -> bool:
        return self in (MarketRegime.STRONG_TREND_UP, MarketRegime.STRONG_TREND_DOWN)

    @property
    def direction(self) -> int:
        """+1 for up trends, -1 for down trends, 0 when ranging."""
        if self in (MarketRegime.STRONG_TREND_UP, MarketRegime.WEAK_TREND_UP):
            return 1
        if self in (MarketRegime.STRONG_TREND_DOWN, MarketRegime.WEAK_TREND_DOWN):
            return -1
        return 0


_DESCRIPTIONS = {
    MarketRegime.STRONG_TREND_UP: "Strong uptrend - favour longs, avoid fading the move",
    MarketRegime.STRONG_TREND_DOWN: "Strong downtrend - favour shorts, avoid catching the knife",
    MarketRegime.WEAK_TREND_UP: "Weak uptrend - trend trades with reduced size",
    MarketRegime.WEAK_TREND_DOWN: "Weak downtrend - trend trades with reduced size",
    MarketRegime.RANGING: "Range-bound market - mean reversion setups work best",
}


def describe_regime(regime: MarketRegime) -> str:
    """Human-readable regime description."""
    return _DESCRIPTIONS.get(regime, "Unknown regime")


@dataclass(frozen=True)
class RegimeState:
    current: MarketRegime
    entered_at: Optional[int]
    confidence: float

    def to_dict(self) -> dict:
        return {
            'current': self.current.value,
            'entered_at': self.entered_at,
            'confidence': self.confidence,
        }


@dataclass(frozen=True)
class RegimeAnalysis:
    """Result of one ``update``: the classification and the inputs behind it."""
    regime: MarketRegime
    confidence: float
    changed: bool
    timestamp: int
    adx: float
    plus_di: float
    minus_di: float
    rsi: float
    ema_slope: float
    volume_ratio: float

    @property
    def description(self) -> str:
        return describe_regime(self.regime)

    def to_dict(self) -> dict:
        data = asdict(self)
        data['regime'] = self.regime.value
        data['description'] = self.description
        for key, value in data.items():
            if isinstance(value, float) and math.isnan(value):
                data[key] = None
        return data


@dataclass(frozen=True)
class RegimeChange:
    """History entry for a regime transition."""
    regime: MarketRegime
    previous: Optional[MarketRegime]
    timestamp: int
    confidence: float

    def to_dict(self) -> dict:
        return {
            'regime': self.regime.value,
            'previous': self.previous.value if self.previous else None,
            'timestamp': self.timestamp,
            'confidence': self.confidence,
        }


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


class MarketRegimeDetector:
    """
    Stateful regime classifier.

    Classification, evaluated top-down:

    1. ADX >= strong threshold and the larger DI at least
       ``di_ratio_threshold`` times the smaller one: strong trend in the
       direction of ``+DI - -DI``.
    2. ADX >= weak threshold and +DI != -DI: weak trend.
    3. Otherwise ranging (also whenever ADX is not yet defined).
    """

    def __init__(self, config=None, clock: Optional[Clock] = None):
        from ..config import RegimeConfig
        self.config = RegimeConfig.resolve(config)
        self.clock = clock or SystemClock()

        cfg = self.config
        self.window_size = max(
            2 * cfg.adx_period + 1,
            cfg.volume_lookback + 1,
            2 * cfg.ema_period,
            cfg.rsi_period + 1,
        )

        self._buffer: Deque[Candle] = deque(maxlen=self.window_size)
        self._current = MarketRegime.RANGING
        self._entered_at: Optional[int] = None
        self._confidence = 0.0
        self._last_analysis: Optional[RegimeAnalysis] = None
        self._history: List[RegimeChange] = []

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, candle: Candle) -> RegimeAnalysis:
        """Add one candle and reclassify the regime."""
        self._buffer.append(candle)
        window = list(self._buffer)
        cfg = self.config

        adx, plus_di, minus_di = ind.latest_directional_index(window, cfg.adx_period)
        rsi = ind.rsi(window, cfg.rsi_period)
        slope = self._ema_slope(window)
        vol_ratio = ind.volume_ratio(window, cfg.volume_lookback)

        regime = self._classify(adx, plus_di, minus_di)
        confidence = self._calculate_confidence(regime, adx, plus_di, minus_di, slope, vol_ratio)

        now = self.clock.now_ms()
        changed = False
        if self._entered_at is None:
            self._entered_at = now
            if regime != self._current:
                self._record_change(regime, None, now, confidence)
                changed = True
        elif regime != self._current:
            logger.info(
                f"Regime change: {self._current.value} -> {regime.value} "
                f"(ADX {adx:.1f}, confidence {confidence:.0f})"
            )
            self._record_change(regime, self._current, now, confidence)
            self._entered_at = now
            changed = True

        self._current = regime
        self._confidence = confidence

        self._last_analysis = RegimeAnalysis(
            regime=regime,
            confidence=confidence,
            changed=changed,
            timestamp=now,
            adx=adx,
            plus_di=plus_di,
            minus_di=minus_di,
            rsi=rsi,
            ema_slope=slope,
            volume_ratio=vol_ratio,
        )
        return self._last_analysis

    def _ema_slope(self, window: List[Candle]) -> float:
        """Percent change of the EMA between the previous and the current window."""
        period = self.config.ema_period
        current = ind.ema_value(window, period)
        previous = ind.ema_value(window[:-1], period)
        if math.isnan(current) or math.isnan(previous) or previous == 0:
            return ind.NAN
        return (current - previous) / previous * 100

    def _classify(self, adx: float, plus_di: float, minus_di: float) -> MarketRegime:
        if math.isnan(adx) or math.isnan(plus_di) or math.isnan(minus_di):
            return MarketRegime.RANGING

        cfg = self.config
        up = plus_di > minus_di
        larger, smaller = max(plus_di, minus_di), min(plus_di, minus_di)

        if adx >= cfg.strong_trend_adx and larger > 0 and larger >= cfg.di_ratio_threshold * smaller:
            return MarketRegime.STRONG_TREND_UP if up else MarketRegime.STRONG_TREND_DOWN

        if adx >= cfg.weak_trend_adx and plus_di != minus_di:
            return MarketRegime.WEAK_TREND_UP if up else MarketRegime.WEAK_TREND_DOWN

        return MarketRegime.RANGING

    def _calculate_confidence(self, regime: MarketRegime, adx: float, plus_di: float,
                              minus_di: float, slope: float, vol_ratio: float) -> float:
        """
        Weighted confidence in [0, 100].

        Trending: ADX magnitude, DI separation and volume confirmation.
        Ranging: low ADX, quiet volume and a flat EMA.
        """
        if math.isnan(adx):
            return INSUFFICIENT_DATA_CONFIDENCE

        cfg = self.config

        if regime.is_trending:
            adx_span = 2 * cfg.strong_trend_adx - cfg.weak_trend_adx
            adx_score = _clamp((adx - cfg.weak_trend_adx) / adx_span) if adx_span > 0 else 1.0
            di_total = plus_di + minus_di
            di_separation = abs(plus_di - minus_di) / di_total if di_total > 0 else 0.0
            volume_score = _clamp((vol_ratio - 0.8) / 0.7)
            score = 0.4 + 0.3 * adx_score + 0.2 * di_separation + 0.1 * volume_score
        else:
            calm = _clamp((cfg.weak_trend_adx - adx) / cfg.weak_trend_adx) if cfg.weak_trend_adx > 0 else 0.0
            quiet = _clamp((1.2 - vol_ratio) / 0.7)
            flat = 0.0 if math.isnan(slope) else _clamp(1 - abs(slope) / 0.5)
            score = 0.4 + 0.3 * calm + 0.15 * quiet + 0.15 * flat

        return _clamp(score) * 100

    def _record_change(self, regime: MarketRegime, previous: Optional[MarketRegime],
                       timestamp: int, confidence: float):
        self._history.append(RegimeChange(regime, previous, timestamp, confidence))
        if len(self._history) > self.config.max_history:
            self._history = self._history[-self.config.max_history:]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_current_regime(self) -> MarketRegime:
        return self._current

    def get_regime_confidence(self) -> float:
        return self._confidence

    def get_regime_duration_ms(self) -> int:
        """Time spent in the current regime; 0 before the first update."""
        if self._entered_at is None:
            return 0
        return self.clock.now_ms() - self._entered_at

    def get_state(self) -> RegimeState:
        return RegimeState(self._current, self._entered_at, self._confidence)

    def get_adx(self) -> float:
        """ADX of the latest update (NaN until defined)."""
        if self._last_analysis is None:
            return ind.NAN
        return self._last_analysis.adx

    def get_last_analysis(self) -> Optional[RegimeAnalysis]:
        return self._last_analysis

    def get_regime_history(self) -> List[RegimeChange]:
        return list(self._history)

    @property
    def candle_count(self) -> int:
        return len(self._buffer)

    def reset(self):
        """Forget all candles and return to the initial ranging state."""
        self._buffer.clear()
        self._current = MarketRegime.RANGING
        self._entered_at = None
        self._confidence = 0.0
        self._last_analysis = None
        self._history = []

"""
Signal Generator
================
Turns a candle window into BUY / SELL / HOLD with a reason, a confidence
score and optional ATR price targets.

Decision precedence:
    1. No candles            -> HOLD
    2. Cooldown active       -> HOLD
    3. Volume below average  -> HOLD
    4. SELL triggers         (EMA cross down, or RSI overbought above the upper band)
    5. BUY triggers          (EMA cross up, or RSI oversold below the lower band)
    6. Otherwise             -> HOLD

The only state kept between calls is the time and price of the last
non-HOLD signal. Time comes from the injected clock, so identical history,
config and clock always give the identical result.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence
import logging

from ..clock import Clock, SystemClock
from ..data.candles import Candle
from ..features import indicators as ind
from ..features.feature_engine import FeatureEngine, IndicatorSnapshot
from ..regime.regime_detector import MarketRegime
from .price_targets import price_targets_from_atr

logger = logging.getLogger(__name__)

# Trigger base scores
CROSS_CONFIDENCE = 60.0
EXTREME_CONFIDENCE = 65.0
COMBINED_CONFIDENCE = 80.0

VOLUME_CONFIRM_THRESHOLD = 1.5


class SignalType(Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"

    @property
    def direction(self) -> int:
        return {SignalType.BUY: 1, SignalType.SELL: -1}.get(self, 0)


@dataclass(frozen=True)
class SignalResult:
    """One signal decision. Never mutated after creation."""
    signal: SignalType
    confidence: float
    reason: str
    timestamp: int
    regime: Optional[MarketRegime] = None
    entry_price: Optional[float] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    raw_indicators: Optional[Dict[str, Optional[float]]] = None

    @property
    def is_actionable(self) -> bool:
        return self.signal != SignalType.HOLD

    def to_dict(self) -> dict:
        return {
            'signal': self.signal.value,
            'confidence': self.confidence,
            'reason': self.reason,
            'regime': self.regime.value if self.regime else None,
            'timestamp': self.timestamp,
            'entry_price': self.entry_price,
            'stop_loss': self.stop_loss,
            'take_profit': self.take_profit,
            'raw_indicators': dict(self.raw_indicators) if self.raw_indicators else None,
        }


@dataclass
class _Triggers:
    cross: bool = False
    extreme: bool = False
    reasons: List[str] = field(default_factory=list)

    @property
    def fired(self) -> bool:
        return self.cross or self.extreme


class SignalGenerator:
    """
    Rule-based signal generator.

    Usage:
        generator = SignalGenerator(SignalConfig(rsi_buy=25), clock=ManualClock())
        result = generator.generate(candles, regime=MarketRegime.RANGING)
    """

    def __init__(self, config=None, clock: Optional[Clock] = None, regime_detector=None):
        from ..config import SignalConfig
        self.config = SignalConfig.resolve(config)
        self.clock = clock or SystemClock()
        self.regime_detector = regime_detector
        self.features = FeatureEngine(self.config)
        self.window_size = self.features.window_size

        self._ema_fast = ind.ema(self.config.ema_fast)
        self._ema_slow = ind.ema(self.config.ema_slow)

        self.last_signal_time: Optional[int] = None
        self.last_signal_price: Optional[float] = None

    def is_in_cooldown(self, now: Optional[int] = None) -> bool:
        if self.last_signal_time is None:
            return False
        now = self.clock.now_ms() if now is None else now
        return now - self.last_signal_time < self.config.cooldown_ms

    def reset(self):
        self.last_signal_time = None
        self.last_signal_price = None

    def generate(self, candles: Sequence[Candle],
                 regime: Optional[MarketRegime] = None,
                 snapshot: Optional[IndicatorSnapshot] = None) -> SignalResult:
        """
        Evaluate the latest candle of ``candles``.

        Args:
            candles: Candle window, oldest first. With ``snapshot`` given, the
                trailing ``window_size`` candles are enough.
            regime: Current market regime; read from the attached detector when omitted
            snapshot: Indicators of the latest candle over its full history,
                e.g. from ``FeatureEngine.snapshots``
        """
        cfg = self.config
        now = self.clock.now_ms()
        if regime is None and self.regime_detector is not None:
            regime = self.regime_detector.get_current_regime()

        if not candles:
            return SignalResult(SignalType.HOLD, 0.0, "No data available", now, regime)

        if self.is_in_cooldown(now):
            remaining = cfg.cooldown_ms - (now - self.last_signal_time)
            logger.debug(f"Cooldown active, {remaining}ms remaining")
            return SignalResult(SignalType.HOLD, 0.0, "Signal cooldown active", now, regime)

        last = candles[-1]
        vol_sma = ind.volume_sma(candles, cfg.volume_period)
        if last.volume < vol_sma * cfg.volume_threshold:
            logger.debug(f"Low volume: {last.volume:.2f} < {vol_sma * cfg.volume_threshold:.2f}")
            return SignalResult(SignalType.HOLD, 0.0, "Low volume", now, regime)

        if snapshot is None:
            snapshot = self.features.snapshot(candles)
        sell = self._sell_triggers(candles, snapshot.rsi, snapshot.bb_upper)
        buy = self._buy_triggers(candles, snapshot.rsi, snapshot.bb_lower)

        if sell.fired:
            signal, triggers = SignalType.SELL, sell
        elif buy.fired:
            signal, triggers = SignalType.BUY, buy
        else:
            return SignalResult(SignalType.HOLD, 0.0, "No clear signal", now, regime,
                                raw_indicators=snapshot.to_dict())

        confidence = self._score(signal, triggers, candles, regime)
        entry = last.close
        stop_loss = take_profit = None
        if cfg.include_targets and len(candles) >= cfg.atr_period + 1:
            targets = price_targets_from_atr(
                entry, snapshot.atr, signal == SignalType.BUY,
                cfg.atr_multiplier, cfg.risk_reward_ratio
            )
            stop_loss, take_profit = targets.stop_loss, targets.take_profit

        self.last_signal_time = now
        self.last_signal_price = entry

        reason = " + ".join(triggers.reasons)
        logger.info(f"{signal.value} @ {entry:.2f} ({reason}, confidence {confidence:.0f})")

        return SignalResult(
            signal=signal,
            confidence=confidence,
            reason=reason,
            timestamp=now,
            regime=regime,
            entry_price=entry,
            stop_loss=stop_loss,
            take_profit=take_profit,
            raw_indicators=snapshot.to_dict(),
        )

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def _ema_cross(self, candles: Sequence[Candle]) -> int:
        """+1 on a fast-over-slow cross on the latest candle, -1 for the reverse, else 0."""
        fast = self._ema_fast(candles)
        slow = self._ema_slow(candles)
        previous = candles[:-1]
        prev_fast = self._ema_fast(previous)
        prev_slow = self._ema_slow(previous)

        if any(ind.is_missing(v) for v in (fast, slow, prev_fast, prev_slow)):
            return 0
        if prev_fast <= prev_slow and fast > slow:
            return 1
        if prev_fast >= prev_slow and fast < slow:
            return -1
        return 0

    def _sell_triggers(self, candles: Sequence[Candle], rsi: float, upper: float) -> _Triggers:
        triggers = _Triggers()
        if self._ema_cross(candles) == -1:
            triggers.cross = True
            triggers.reasons.append("EMA cross down")
        if not ind.is_missing(rsi) and not ind.is_missing(upper):
            if rsi >= self.config.rsi_sell and candles[-1].close > upper:
                triggers.extreme = True
                triggers.reasons.append("RSI overbought & above band")
        return triggers

    def _buy_triggers(self, candles: Sequence[Candle], rsi: float, lower: float) -> _Triggers:
        triggers = _Triggers()
        if self._ema_cross(candles) == 1:
            triggers.cross = True
            triggers.reasons.append("EMA cross up")
        if not ind.is_missing(rsi) and not ind.is_missing(lower):
            if rsi <= self.config.rsi_buy and candles[-1].close < lower:
                triggers.extreme = True
                triggers.reasons.append("RSI oversold & below band")
        return triggers

    # ------------------------------------------------------------------
    # Confidence
    # ------------------------------------------------------------------

    def _score(self, signal: SignalType, triggers: _Triggers, candles: Sequence[Candle],
               regime: Optional[MarketRegime]) -> float:
        """Trigger base score adjusted by volume and regime, clamped to [0, 100]."""
        cfg = self.config
        direction = signal.direction

        if triggers.cross and triggers.extreme:
            score = COMBINED_CONFIDENCE
        elif triggers.extreme:
            score = EXTREME_CONFIDENCE
        else:
            score = CROSS_CONFIDENCE

        if ind.is_volume_confirming(candles, cfg.volume_confirm_lookback,
                                    VOLUME_CONFIRM_THRESHOLD) == direction:
            score += 10
        if ind.is_volume_spike(candles, cfg.volume_spike_lookback, cfg.volume_spike_multiplier):
            score += 5

        if regime is not None:
            if regime.direction == direction:
                score += 10 if regime.is_strong else 5
            elif regime.direction == -direction and regime.is_strong:
                score -= 15
            elif regime == MarketRegime.RANGING and triggers.extreme:
                score += 5

        return max(0.0, min(100.0, score))

"""
Position Sizing
===============
Regime and confidence aware position sizing for live signals.
"""

from dataclasses import dataclass, asdict
from typing import Optional, Sequence, Union
import math
import logging

from ..data.candles import Candle
from ..features.indicators import current_atr
from ..regime.regime_detector import MarketRegime
from ..signals.signal_generator import SignalType
from ..trades import TradeDirection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PositionSizing:
    """Sizing recommendation for one trade."""
    entry_price: float
    position_size: float
    risk_amount: float
    stop_loss: float
    take_profit: float
    risk_reward_ratio: float
    max_account_risk: float  # percent of the account at risk
    method: str  # 'atr' or 'fallback'

    def to_dict(self) -> dict:
        return asdict(self)


def _floor2(value: float) -> float:
    return math.floor(value * 100) / 100


def _is_long(direction: Union[SignalType, TradeDirection]) -> bool:
    if direction in (SignalType.BUY, TradeDirection.LONG):
        return True
    if direction in (SignalType.SELL, TradeDirection.SHORT):
        return False
    raise ValueError(f"Cannot size a position for {direction}")


class PositionSizer:
    """
    ATR stop sizing with risk scaled by regime and signal confidence.

    ``risk = base_risk_pct x regime multiplier x confidence multiplier`` of
    the account, stop at ``ATR x atr_multiplier`` from the entry and target at
    ``min_risk_reward`` times the stop distance.
    """

    REGIME_MULTIPLIERS = {
        'strong': 1.5,
        'weak': 0.75,
        'ranging': 0.5,
    }

    def __init__(self, config=None):
        from ..config import RiskConfig
        self.config = RiskConfig.resolve(config)

    @classmethod
    def regime_multiplier(cls, regime: Optional[MarketRegime]) -> float:
        if regime is None:
            return 1.0
        if regime == MarketRegime.RANGING:
            return cls.REGIME_MULTIPLIERS['ranging']
        return cls.REGIME_MULTIPLIERS['strong' if regime.is_strong else 'weak']

    @staticmethod
    def confidence_multiplier(confidence: float) -> float:
        if confidence >= 80:
            return 1.2
        if confidence >= 60:
            return 1.0
        if confidence >= 40:
            return 0.8
        return 0.5

    def calculate(self, candles: Sequence[Candle], account_balance: float, price: float,
                  direction: Union[SignalType, TradeDirection],
                  regime: Optional[MarketRegime] = None,
                  confidence: float = 50.0) -> PositionSizing:
        """Size a position entered at ``price``."""
        cfg = self.config
        long = _is_long(direction)

        atr = current_atr(candles, cfg.atr_period)
        if math.isnan(atr) or atr <= 0:
            logger.debug("ATR unavailable, using fallback sizing")
            return self._fallback(account_balance, price, long)

        risk_pct = cfg.base_risk_pct * self.regime_multiplier(regime) * self.confidence_multiplier(confidence)
        risk_amount = account_balance * risk_pct

        stop_distance = atr * cfg.atr_multiplier
        stop_loss = price - stop_distance if long else price + stop_distance
        profit_distance = stop_distance * cfg.min_risk_reward
        take_profit = price + profit_distance if long else price - profit_distance

        return PositionSizing(
            entry_price=price,
            position_size=_floor2(risk_amount / stop_distance),
            risk_amount=risk_amount,
            stop_loss=round(stop_loss, 2),
            take_profit=round(take_profit, 2),
            risk_reward_ratio=profit_distance / stop_distance,
            max_account_risk=risk_pct * 100,
            method='atr',
        )

    def _fallback(self, account_balance: float, price: float, long: bool) -> PositionSizing:
        cfg = self.config
        stop_distance = price * cfg.fallback_stop_pct
        risk_amount = account_balance * cfg.fallback_risk_pct
        profit_distance = stop_distance * 2

        return PositionSizing(
            entry_price=price,
            position_size=_floor2(risk_amount / stop_distance) if stop_distance > 0 else 0.0,
            risk_amount=risk_amount,
            stop_loss=round(price - stop_distance if long else price + stop_distance, 2),
            take_profit=round(price + profit_distance if long else price - profit_distance, 2),
            risk_reward_ratio=2.0,
            max_account_risk=cfg.fallback_risk_pct * 100,
            method='fallback',
        )

    def validate(self, sizing: PositionSizing, account_balance: float,
                 max_position_pct: Optional[float] = None) -> bool:
        """Position value within the account cap and reward/risk at least the minimum."""
        max_pct = self.config.max_position_pct if max_position_pct is None else max_position_pct
        position_value = sizing.position_size * sizing.entry_price
        return (position_value <= account_balance * max_pct
                and sizing.risk_reward_ratio >= self.config.min_risk_reward)

"""
ATR Price Targets
=================
Volatility-based stop loss / take profit levels and risk-based sizing.
"""

from dataclasses import dataclass, asdict
from typing import Sequence

from ..data.candles import Candle
from ..exceptions import InsufficientDataError
from ..features.indicators import calculate_atr

# Prices never go below this
MIN_PRICE = 0.01


@dataclass(frozen=True)
class PriceTargets:
    entry: float
    stop_loss: float
    take_profit: float
    risk_reward_ratio: float
    stop_distance: float
    target_distance: float
    atr: float
    atr_multiple: float
    is_long: bool

    def to_dict(self) -> dict:
        return asdict(self)


def calculate_price_targets(candles: Sequence[Candle], entry_price: float, is_long: bool,
                            atr_period: int = 14, atr_multiplier: float = 2.5,
                            risk_reward_ratio: float = 2.0) -> PriceTargets:
    """
    Stop loss at ``entry -/+ ATR x multiplier`` and take profit at
    ``risk_reward_ratio`` times that distance on the other side.

    Raises:
        InsufficientDataError: fewer than ``atr_period + 1`` candles
    """
    if len(candles) < atr_period + 1:
        raise InsufficientDataError(atr_period + 1, len(candles), "ATR calculation")

    atr = float(calculate_atr(candles, atr_period)[-1])
    return price_targets_from_atr(entry_price, atr, is_long, atr_multiplier, risk_reward_ratio)


def price_targets_from_atr(entry_price: float, atr: float, is_long: bool,
                           atr_multiplier: float = 2.5,
                           risk_reward_ratio: float = 2.0) -> PriceTargets:
    """Targets for an ATR value that is already known."""
    stop_distance = atr * atr_multiplier

    if is_long:
        stop_loss = entry_price - stop_distance
        take_profit = entry_price + stop_distance * risk_reward_ratio
    else:
        stop_loss = entry_price + stop_distance
        take_profit = entry_price - stop_distance * risk_reward_ratio

    stop_loss = max(MIN_PRICE, stop_loss)

    return PriceTargets(
        entry=entry_price,
        stop_loss=stop_loss,
        take_profit=take_profit,
        risk_reward_ratio=risk_reward_ratio,
        stop_distance=abs(entry_price - stop_loss),
        target_distance=abs(take_profit - entry_price),
        atr=atr,
        atr_multiple=atr_multiplier,
        is_long=is_long,
    )


def calculate_position_size(account_size: float, risk_percentage: float,
                            entry_price: float, stop_loss_price: float) -> float:
    """
    Units to buy so that hitting the stop loses ``risk_percentage`` percent
    of the account (``1`` means 1%).
    """
    price_distance = abs(entry_price - stop_loss_price)
    if price_distance == 0:
        raise ValueError("Entry and stop loss prices are the same")
    risk_amount = account_size * (risk_percentage / 100)
    return risk_amount / price_distance

"""
Performance Metrics
===================
The one set of metric formulas used by both the backtest engine and the live
performance tracker.
"""

import numpy as np
from dataclasses import dataclass, asdict
from typing import Optional, Sequence

from ..trades import Trade


@dataclass(frozen=True)
class Metrics:
    """Aggregate performance statistics. Percent fields are in percent (5.0 = 5%)."""
    total_trades: int
    win_rate: float
    profit_factor: float
    max_drawdown: float
    net_profit: float

    winning_trades: int = 0
    losing_trades: int = 0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    expectancy: float = 0.0
    risk_reward_ratio: float = 0.0
    total_pnl_percent: float = 0.0
    final_equity: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def max_drawdown(equity: Sequence[float], initial_balance: Optional[float] = None) -> float:
    """
    Largest peak-to-trough decline in percent, tracked with a running
    high-water mark that starts at ``initial_balance`` (or the first point).
    """
    if len(equity) == 0:
        return 0.0

    peak = initial_balance if initial_balance is not None else equity[0]
    worst = 0.0
    for value in equity:
        if value > peak:
            peak = value
        if peak > 0:
            drawdown = (peak - value) / peak * 100
            if drawdown > worst:
                worst = drawdown
    return float(worst)


def compute_metrics(trades: Sequence[Trade], equity: Sequence[float],
                    initial_balance: float) -> Metrics:
    """
    Metrics from closed trades and an equity curve.

    A trade wins when its profit is strictly positive; break-even trades
    count as losses. Profit factor is ``inf`` when there are winning trades
    but no losing amount, and 0 when there is no profit at all.
    """
    profits = np.array([t.profit for t in trades], dtype=float)
    total = len(profits)

    wins = profits[profits > 0]
    losses = profits[profits <= 0]
    gross_profit = float(wins.sum())
    gross_loss = float(np.abs(losses).sum())

    if gross_loss == 0:
        profit_factor = float('inf') if gross_profit > 0 else 0.0
    else:
        profit_factor = gross_profit / gross_loss

    win_rate = len(wins) / total * 100 if total else 0.0
    avg_win = float(wins.mean()) * 100 if len(wins) else 0.0
    avg_loss = float(np.abs(losses).mean()) * 100 if len(losses) else 0.0
    expectancy = (win_rate / 100) * avg_win - (1 - win_rate / 100) * avg_loss if total else 0.0
    risk_reward = avg_win / avg_loss if avg_loss > 0 else 0.0

    final_equity = float(equity[-1]) if len(equity) else float(initial_balance)

    return Metrics(
        total_trades=total,
        win_rate=win_rate,
        profit_factor=profit_factor,
        max_drawdown=max_drawdown(equity, initial_balance),
        net_profit=final_equity - initial_balance,
        winning_trades=len(wins),
        losing_trades=len(losses),
        avg_win=avg_win,
        avg_loss=avg_loss,
        expectancy=expectancy,
        risk_reward_ratio=risk_reward,
        total_pnl_percent=float(profits.sum()) * 100,
        final_equity=final_equity,
    )

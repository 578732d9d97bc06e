"""
Live Performance Tracking
=========================
Records real-time trade entries and exits and reports metrics with the same
formulas the backtest engine uses.
"""

import pandas as pd
from typing import Dict, List, Optional
import logging

from ..backtest.metrics import Metrics, compute_metrics
from ..clock import Clock, SystemClock
from ..exceptions import DuplicateTradeError
from ..trades import Trade

logger = logging.getLogger(__name__)


class PerformanceTracker:
    """
    Open / closed trade book for live signals.

    Trade ids are single-use: recording an entry whose id is already open
    or already closed raises ``DuplicateTradeError``.
    """

    def __init__(self, initial_balance: float = 1000.0, clock: Optional[Clock] = None):
        if initial_balance <= 0:
            raise ValueError("initial_balance must be positive")
        self.initial_balance = float(initial_balance)
        self.clock = clock or SystemClock()

        self._open: Dict[str, Trade] = {}
        self._closed: List[Trade] = []
        self._closed_ids = set()

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_entry(self, trade: Trade) -> Trade:
        """Add an open trade."""
        if not trade.is_open:
            raise DuplicateTradeError(f"Trade {trade.id} is not open ({trade.status.value})")
        if trade.id in self._open:
            raise DuplicateTradeError(f"Trade {trade.id} is already open")
        if trade.id in self._closed_ids:
            raise DuplicateTradeError(f"Trade {trade.id} was already closed")

        self._open[trade.id] = trade
        logger.info(
            f"Entry #{trade.id}: {trade.direction.value} {trade.position_size:g} @ {trade.entry_price:.2f}"
        )
        return trade

    def record_exit(self, trade_id: str, exit_price: float, exit_time: float,
                    reason: Optional[str] = None, stopped_out: bool = False,
                    exit_signal_id: Optional[str] = None) -> bool:
        """
        Close an open trade.

        Returns:
            False (and changes nothing) when ``trade_id`` is not an open trade
        """
        trade = self._open.get(trade_id)
        if trade is None:
            logger.debug(f"Exit for unknown or closed trade {trade_id} ignored")
            return False

        closed = trade.close(exit_price, exit_time, reason=reason, stopped_out=stopped_out,
                             exit_signal_id=exit_signal_id)
        del self._open[trade_id]
        self._closed.append(closed)
        self._closed_ids.add(trade_id)

        logger.info(
            f"Exit #{trade_id} @ {exit_price:.2f}: {closed.pnl_percent:+.2f}% "
            f"({closed.pnl_absolute:+.2f}){' - ' + reason if reason else ''}"
        )
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_open_trades(self) -> List[Trade]:
        return list(self._open.values())

    def get_closed_trades(self) -> List[Trade]:
        return list(self._closed)

    def get_trade(self, trade_id: str) -> Optional[Trade]:
        if trade_id in self._open:
            return self._open[trade_id]
        for trade in self._closed:
            if trade.id == trade_id:
                return trade
        return None

    def equity_curve(self) -> List[float]:
        """Balance compounded by ``(1 + profit)`` per closed trade, in closing order."""
        balance = self.initial_balance
        equity = [balance]
        for trade in self._closed:
            balance *= 1 + trade.profit
            equity.append(balance)
        return equity

    def calculate_metrics(self) -> Metrics:
        return compute_metrics(self._closed, self.equity_curve(), self.initial_balance)

    def summary(self) -> dict:
        metrics = self.calculate_metrics()
        return {
            'open_trades': len(self._open),
            'closed_trades': len(self._closed),
            'initial_balance': self.initial_balance,
            **metrics.to_dict(),
        }

    def reset(self):
        self._open.clear()
        self._closed = []
        self._closed_ids = set()

    def generate_report(self) -> str:
        """Text performance report."""
        metrics = self.calculate_metrics()
        now = pd.Timestamp(self.clock.now_ms(), unit='ms').strftime('%Y-%m-%d %H:%M:%S')

        report = f"""
╔══════════════════════════════════════════════════════════════╗
║                  SIGNAL PERFORMANCE REPORT                   ║
╠══════════════════════════════════════════════════════════════╣
║ Time: {now:55s}║
║ Open Trades:        {len(self._open):>22d}                   ║
╠══════════════════════════════════════════════════════════════╣
║ PERFORMANCE                                                  ║
╟──────────────────────────────────────────────────────────────╢
║ Initial Balance:    {self.initial_balance:>22,.2f}                   ║
║ Final Equity:       {metrics.final_equity:>22,.2f}                   ║
║ Net Profit:         {metrics.net_profit:>22,.2f}                   ║
║ Max Drawdown:       {metrics.max_drawdown:>21.2f}%                   ║
╠══════════════════════════════════════════════════════════════╣
║ TRADING STATISTICS                                           ║
╟──────────────────────────────────────────────────────────────╢
║ Total Trades:       {metrics.total_trades:>22d}                   ║
║ Win Rate:           {metrics.win_rate:>21.2f}%                   ║
║ Avg Win:            {metrics.avg_win:>21.2f}%                   ║
║ Avg Loss:           {metrics.avg_loss:>21.2f}%                   ║
║ Expectancy:         {metrics.expectancy:>21.2f}%                   ║
║ Profit Factor:      {metrics.profit_factor:>22.2f}                   ║
║ Risk/Reward:        {metrics.risk_reward_ratio:>22.2f}                   ║
╚══════════════════════════════════════════════════════════════╝
"""
        return report

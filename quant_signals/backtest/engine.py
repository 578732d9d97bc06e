"""
Backtest Engine
===============
Replays historical candles through the live signal policy and simulates the
trade lifecycle candle by candle.

Per candle:
    - Open position: exit on stop or limit (stop wins when both are touched
      in the same candle); after ``breakeven_after`` candles the stop is
      ratcheted to the entry price.
    - Flat and cooled down: ask the signal generator (which only ever sees
      ``candles[:i + 1]``) and open at the close when the signal is
      actionable and confident enough, with fixed-percentage stop/limit.

The account compounds by ``(1 + profit)`` on every exit. The equity curve
starts at the initial balance and gets one point per flat candle and one per
trade close.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence
import logging

from ..clock import ManualClock
from ..data.candles import Candle, validate_series
from ..regime.regime_detector import MarketRegimeDetector
from ..signals.signal_generator import SignalGenerator, SignalType
from ..trades import Trade, TradeDirection, pnl_fraction
from .metrics import Metrics, compute_metrics

logger = logging.getLogger(__name__)


@dataclass
class BacktestResult:
    trades: List[Trade]
    equity: List[float]
    metrics: Metrics
    signals_evaluated: int = 0

    def to_dict(self) -> dict:
        return {
            'trades': [t.to_dict() for t in self.trades],
            'equity': list(self.equity),
            'metrics': self.metrics.to_dict(),
            'signals_evaluated': self.signals_evaluated,
        }


@dataclass
class _OpenPosition:
    trade: Trade
    entry_index: int
    stop: float
    limit: float
    breakeven: bool = False


class BacktestEngine:
    """
    Candle-by-candle backtester.

    Usage:
        engine = BacktestEngine(BacktestConfig(preset='aggressive'))
        result = engine.run(candles)
        print(result.metrics.win_rate)
    """

    def __init__(self, config=None, signal_config=None, regime_config=None):
        from ..config import BacktestConfig, SignalConfig, RegimeConfig
        self.config = BacktestConfig.resolve(config)
        self.signal_config = SignalConfig.resolve(signal_config)
        self.regime_config = RegimeConfig.resolve(regime_config)

    def run(self, candles: Sequence[Candle]) -> BacktestResult:
        """Replay ``candles`` and return trades, equity curve and metrics."""
        candles = list(candles)
        validate_series(candles)

        cfg = self.config
        rules = cfg.rules
        initial_balance = float(cfg.initial_balance)

        balance = initial_balance
        equity: List[float] = [balance]
        trades: List[Trade] = []
        position: Optional[_OpenPosition] = None
        cooldown = 0
        evaluated = 0

        # Fresh state per run: the generator's cooldown and the detector's
        # regime both run on candle time
        clock = ManualClock()
        generator = SignalGenerator(self.signal_config, clock=clock)
        detector = MarketRegimeDetector(self.regime_config, clock=clock) if cfg.use_regime else None

        last_index = len(candles) - 1
        end_index = last_index if cfg.end_index is None else min(cfg.end_index, last_index)
        start_index = cfg.start_index

        # Wilder series computed once; the generator itself only reads a bounded tail
        snapshots = generator.features.snapshots(candles[:end_index + 1])
        tail = generator.window_size

        logger.info(
            f"Running backtest over candles {start_index}..{end_index} "
            f"(preset '{cfg.preset}', balance {initial_balance:.2f})"
        )

        if detector is not None:
            for candle in candles[:start_index]:
                clock.set(int(candle.time * 1000))
                detector.update(candle)

        for i in range(start_index, end_index + 1):
            current = candles[i]
            clock.set(int(current.time * 1000))
            regime = detector.update(current).regime if detector is not None else None

            if position is not None:
                trade = position.trade
                is_long = trade.direction == TradeDirection.LONG
                reached_stop = current.low <= position.stop if is_long else current.high >= position.stop
                reached_limit = current.high >= position.limit if is_long else current.low <= position.limit

                if reached_stop or reached_limit:
                    exit_price = position.stop if reached_stop else position.limit
                    profit = pnl_fraction(trade.direction, trade.entry_price, exit_price)
                    balance *= 1 + profit

                    if reached_stop:
                        reason = "breakeven stop" if position.breakeven else "stop loss"
                    else:
                        reason = "take profit"
                    closed = trade.close(exit_price, current.time, reason=reason, stopped_out=reached_stop)
                    trades.append(closed)
                    equity.append(balance)

                    logger.debug(
                        f"Closed {trade.direction.value} #{trade.id} @ {exit_price:.2f} "
                        f"({reason}, {profit:+.2%})"
                    )
                    position = None
                    cooldown = rules.cooldown_candles
                    continue

                if i - position.entry_index >= rules.breakeven_after:
                    if is_long:
                        position.stop = max(position.stop, trade.entry_price)
                    else:
                        position.stop = min(position.stop, trade.entry_price)
                    position.breakeven = True

            elif cooldown == 0:
                window = candles[max(0, i + 1 - tail):i + 1]
                signal = generator.generate(window, regime=regime, snapshot=snapshots[i])
                evaluated += 1
                if signal.signal != SignalType.HOLD and signal.confidence >= rules.min_confidence:
                    position = self._open(signal, current, i, len(trades) + 1, rules)

            if cooldown > 0 and position is None:
                cooldown -= 1
            if position is None:
                equity.append(balance)

        metrics = compute_metrics(trades, equity, initial_balance)
        logger.info(
            f"Backtest complete: {metrics.total_trades} trades, win rate {metrics.win_rate:.1f}%, "
            f"net profit {metrics.net_profit:.2f}, max drawdown {metrics.max_drawdown:.2f}%"
        )
        return BacktestResult(trades=trades, equity=equity, metrics=metrics,
                              signals_evaluated=evaluated)

    @staticmethod
    def _open(signal, candle: Candle, index: int, number: int, rules) -> _OpenPosition:
        long = signal.signal == SignalType.BUY
        entry = candle.close
        if long:
            stop, limit = entry * (1 - rules.stop_pct), entry * (1 + rules.limit_pct)
        else:
            stop, limit = entry * (1 + rules.stop_pct), entry * (1 - rules.limit_pct)

        trade = Trade(
            id=f"bt-{number}",
            direction=TradeDirection.LONG if long else TradeDirection.SHORT,
            entry_price=entry,
            entry_time=candle.time,
            entry_signal_id=f"signal-{signal.timestamp}",
            entry_reason=signal.reason,
        )
        logger.debug(f"Opened {trade.direction.value} #{trade.id} @ {entry:.2f} ({signal.reason})")
        return _OpenPosition(trade=trade, entry_index=index, stop=stop, limit=limit)


def run_backtest(candles: Sequence[Candle], config=None, signal_config=None,
                 regime_config=None) -> BacktestResult:
    """Convenience wrapper around ``BacktestEngine(...).run(candles)``."""
    return BacktestEngine(config, signal_config, regime_config).run(candles)

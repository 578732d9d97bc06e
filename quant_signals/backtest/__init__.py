"""
Backtesting Module
==================
"""
from .metrics import Metrics, compute_metrics, max_drawdown
from .engine import BacktestEngine, BacktestResult, run_backtest

__all__ = [
    'Metrics',
    'compute_metrics',
    'max_drawdown',
    'BacktestEngine',
    'BacktestResult',
    'run_backtest'
]

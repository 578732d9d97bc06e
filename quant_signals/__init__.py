"""
Quant Signals - Technical Analysis & Decision Engine
====================================================

Turns OHLCV candles into trade signals, classifies the market regime and
replays history through the same signal policy to measure performance.

PIPELINE:
    ┌──────────────┐
    │   CANDLES    │  ← pushed in by the data feed, oldest first
    └────┬─────────┘
         ↓
    ┌──────────────┐
    │ FEATURE ENG. │  ← EMA, RSI, VWAP, ATR, ADX/DI, Bollinger, volume
    └────┬─────────┘
         ↓
    ┌──────────────┐
    │   REGIME     │  ← strong/weak trend up/down, ranging
    └────┬─────────┘
         ↓
    ┌──────────────┐
    │   SIGNALS    │  ← BUY / SELL / HOLD, cooldown + volume gates
    └────┬─────────┘
         ↓
    ┌──────────────┐
    │ RISK / SIZE  │  ← ATR stops, regime-scaled risk
    └────┬─────────┘
         ↓
    ┌──────────────┐
    │ MONITORING   │  ← live trade book, same metrics as the backtest
    └──────────────┘

USAGE:
    from quant_signals import SignalPipeline, EngineConfig, parse_candles

    pipeline = SignalPipeline(EngineConfig())
    pipeline.add_handler(lambda update: print(update.signal.to_dict()))
    for candle in parse_candles(rows):
        pipeline.on_candle(candle)

    # Backtesting
    result = run_backtest(candles, BacktestConfig(preset='aggressive'))
    print(result.metrics.win_rate, result.metrics.max_drawdown)

MODULES:
    - data: Candle model, parsing, validation, DataFrame conversion
    - features: Indicator library and indicator snapshots
    - regime: Market regime state machine
    - signals: Signal generator and ATR price targets
    - risk: Position sizing
    - backtest: Replay engine and performance metrics
    - monitoring: Live performance tracking
"""

from .config import (
    EngineConfig,
    RegimeConfig,
    SignalConfig,
    BacktestConfig,
    BacktestRules,
    RiskConfig,
    LoggingConfig,
    BACKTEST_PRESETS,
    setup_logging
)
from .clock import Clock, SystemClock, ManualClock
from .exceptions import (
    QuantSignalsError,
    InsufficientDataError,
    InvalidCandleError,
    CandleOrderError,
    ConfigError,
    TradeStateError,
    DuplicateTradeError
)
from .data import Candle, parse_candle, parse_candles, candles_from_frame, candles_to_frame
from .features import FeatureEngine, IndicatorSnapshot
from .regime import MarketRegime, MarketRegimeDetector, RegimeState, RegimeAnalysis
from .signals import SignalGenerator, SignalResult, SignalType, PriceTargets, calculate_price_targets
from .trades import Trade, TradeDirection, TradeStatus
from .risk import PositionSizer, PositionSizing
from .backtest import BacktestEngine, BacktestResult, Metrics, compute_metrics, run_backtest
from .monitoring import PerformanceTracker
from .orchestrator import SignalPipeline, PipelineUpdate

__version__ = "1.0.0"
__all__ = [
    # Main
    'SignalPipeline',
    'PipelineUpdate',
    'EngineConfig',
    'setup_logging',

    # Config
    'RegimeConfig',
    'SignalConfig',
    'BacktestConfig',
    'BacktestRules',
    'RiskConfig',
    'LoggingConfig',
    'BACKTEST_PRESETS',

    # Clock
    'Clock',
    'SystemClock',
    'ManualClock',

    # Errors
    'QuantSignalsError',
    'InsufficientDataError',
    'InvalidCandleError',
    'CandleOrderError',
    'ConfigError',
    'TradeStateError',
    'DuplicateTradeError',

    # Data
    'Candle',
    'parse_candle',
    'parse_candles',
    'candles_from_frame',
    'candles_to_frame',

    # Features
    'FeatureEngine',
    'IndicatorSnapshot',

    # Regime
    'MarketRegime',
    'MarketRegimeDetector',
    'RegimeState',
    'RegimeAnalysis',

    # Signals
    'SignalGenerator',
    'SignalResult',
    'SignalType',
    'PriceTargets',
    'calculate_price_targets',

    # Trades
    'Trade',
    'TradeDirection',
    'TradeStatus',

    # Risk
    'PositionSizer',
    'PositionSizing',

    # Backtest
    'BacktestEngine',
    'BacktestResult',
    'Metrics',
    'compute_metrics',
    'run_backtest',

    # Monitoring
    'PerformanceTracker'
]

"""
Signal Pipeline Orchestrator
============================
Wires the components for live use, one candle at a time:
    CANDLE → REGIME DETECTOR → SIGNAL GENERATOR → POSITION SIZER → HANDLERS

Everything is an explicit call on a pipeline instance; there are no
singletons or module-level registries. Candles must arrive in
non-decreasing time order.
"""

from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, List, Optional, Sequence
import logging

from .backtest import BacktestEngine, BacktestResult
from .clock import Clock, SystemClock
from .config import EngineConfig
from .data.candles import Candle, validate_candle
from .exceptions import CandleOrderError
from .monitoring import PerformanceTracker
from .regime import MarketRegimeDetector, RegimeAnalysis
from .risk import PositionSizer, PositionSizing
from .signals import SignalGenerator, SignalResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineUpdate:
    """What one closed candle produced."""
    candle: Candle
    regime: RegimeAnalysis
    signal: SignalResult
    sizing: Optional[PositionSizing] = None

    def to_dict(self) -> dict:
        return {
            'candle': self.candle.to_dict(),
            'regime': self.regime.to_dict(),
            'signal': self.signal.to_dict(),
            'sizing': self.sizing.to_dict() if self.sizing else None,
        }


class SignalPipeline:
    """
    Live signal pipeline.

    Usage:
        pipeline = SignalPipeline(EngineConfig())
        pipeline.add_handler(lambda update: print(update.signal.signal))
        for candle in feed:
            pipeline.on_candle(candle)
    """

    def __init__(self, config: EngineConfig = None, clock: Optional[Clock] = None,
                 tracker: Optional[PerformanceTracker] = None):
        self.config = EngineConfig.resolve(config)
        self.clock = clock or SystemClock()

        self.detector = MarketRegimeDetector(self.config.regime, clock=self.clock)
        self.generator = SignalGenerator(self.config.signals, clock=self.clock,
                                         regime_detector=self.detector)
        self.sizer = PositionSizer(self.config.risk)
        self.tracker = tracker or PerformanceTracker(self.config.backtest.initial_balance,
                                                     clock=self.clock)

        self._window: Deque[Candle] = deque(maxlen=self.config.window_size)
        self._handlers: List[Callable[[PipelineUpdate], None]] = []
        self.last_update: Optional[PipelineUpdate] = None
        self.candles_processed = 0

        logger.info(f"SignalPipeline initialized (window {self.config.window_size} candles)")

    def add_handler(self, handler: Callable[[PipelineUpdate], None]):
        """Register a callback for every processed candle."""
        self._handlers.append(handler)

    def remove_handler(self, handler: Callable[[PipelineUpdate], None]):
        if handler in self._handlers:
            self._handlers.remove(handler)

    @property
    def candles(self) -> List[Candle]:
        return list(self._window)

    def _check_order(self, candle: Candle) -> bool:
        """True when ``candle`` replaces the latest (still forming) candle."""
        if not self._window:
            return False
        last_time = self._window[-1].time
        if candle.time < last_time:
            raise CandleOrderError(f"Candle at {candle.time} arrived after {last_time}")
        return candle.time == last_time

    def load_history(self, candles: Sequence[Candle]):
        """Warm the window and the regime detector without generating signals."""
        for candle in candles:
            validate_candle(candle)
            if self._check_order(candle):
                self._window[-1] = candle
                continue
            self._window.append(candle)
            self.detector.update(candle)
        logger.info(f"Loaded {len(candles)} historical candles")

    def on_candle(self, candle: Candle) -> Optional[PipelineUpdate]:
        """
        Process one candle.

        A candle with the same time as the latest one replaces it in the
        window and returns None; the regime and signal are only computed once
        per candle time.

        Raises:
            CandleOrderError: ``candle`` is older than the latest candle
        """
        validate_candle(candle)
        if self._check_order(candle):
            self._window[-1] = candle
            return None

        self._window.append(candle)
        self.candles_processed += 1

        analysis = self.detector.update(candle)
        signal = self.generator.generate(list(self._window), regime=analysis.regime)

        sizing = None
        if signal.is_actionable:
            balance = self.tracker.equity_curve()[-1]
            sizing = self.sizer.calculate(
                list(self._window), balance, signal.entry_price, signal.signal,
                regime=analysis.regime, confidence=signal.confidence
            )

        update = PipelineUpdate(candle=candle, regime=analysis, signal=signal, sizing=sizing)
        self.last_update = update
        self._dispatch(update)
        return update

    def _dispatch(self, update: PipelineUpdate):
        for handler in self._handlers:
            try:
                handler(update)
            except Exception as e:
                logger.warning(f"Pipeline handler error: {e}", exc_info=True)

    def status(self) -> Dict:
        """Current regime, last signal and tracker state."""
        state = self.detector.get_state()
        last_signal = self.last_update.signal.to_dict() if self.last_update else None
        return {
            'candles': len(self._window),
            'candles_processed': self.candles_processed,
            'regime': state.current.value,
            'regime_confidence': state.confidence,
            'regime_duration_ms': self.detector.get_regime_duration_ms(),
            'in_cooldown': self.generator.is_in_cooldown(),
            'last_signal': last_signal,
            'open_trades': len(self.tracker.get_open_trades()),
            'closed_trades': len(self.tracker.get_closed_trades()),
        }

    def run_backtest(self, candles: Optional[Sequence[Candle]] = None,
                     config=None) -> BacktestResult:
        """
        Backtest with this pipeline's signal and regime settings.

        Uses the pipeline's own window when ``candles`` is omitted. Runs on
        fresh component state, so the live state is left untouched.
        """
        engine = BacktestEngine(
            self.config.backtest if config is None else config,
            signal_config=self.config.signals,
            regime_config=self.config.regime,
        )
        return engine.run(self.candles if candles is None else candles)

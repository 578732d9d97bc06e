"""
TESTS - SIGNAL PIPELINE
=======================

Candle-by-candle orchestration: ordering, handler dispatch, sizing and the
backtest shortcut.
"""

import logging

import pytest

from quant_signals import SignalPipeline
from quant_signals.clock import ManualClock
from quant_signals.config import EngineConfig
from quant_signals.data.candles import Candle
from quant_signals.exceptions import CandleOrderError, InvalidCandleError
from quant_signals.signals import SignalType


@pytest.fixture
def pipeline(manual_clock):
    return SignalPipeline(EngineConfig(), clock=manual_clock)


@pytest.fixture
def oversold_feed(make_candles):
    return make_candles([100.0] * 20 + [90.0], [300.0] * 20 + [500.0])


class TestOrdering:

    def test_older_candle_rejected(self, pipeline, make_candles):
        first, second = make_candles([100.0, 101.0])
        pipeline.on_candle(second)

        with pytest.raises(CandleOrderError):
            pipeline.on_candle(first)

    def test_same_time_replaces_latest(self, pipeline, make_candles):
        first = make_candles([100.0])[0]
        revised = Candle(time=first.time, open=100.0, high=102.0, low=100.0, close=102.0,
                         volume=1500.0)

        assert pipeline.on_candle(first) is not None
        assert pipeline.on_candle(revised) is None
        assert pipeline.candles == [revised]
        assert pipeline.candles_processed == 1

    def test_invalid_candle_rejected(self, pipeline):
        with pytest.raises(InvalidCandleError):
            pipeline.on_candle(Candle(time=0, open=10, high=9, low=8, close=9))

    def test_window_bounded(self, manual_clock, make_candles):
        pipeline = SignalPipeline(EngineConfig(window_size=10), clock=manual_clock)
        for c in make_candles([100.0] * 15):
            pipeline.on_candle(c)
        assert len(pipeline.candles) == 10


class TestUpdates:

    def test_signal_is_sized(self, pipeline, oversold_feed):
        updates = [pipeline.on_candle(c) for c in oversold_feed]

        last = updates[-1]
        assert last.signal.signal == SignalType.BUY
        assert last.sizing is not None
        assert last.sizing.entry_price == 90.0
        assert last.sizing.stop_loss < 90.0
        assert all(u.sizing is None for u in updates[:-1])

    def test_regime_attached(self, pipeline, oversold_feed):
        for c in oversold_feed:
            update = pipeline.on_candle(c)
        assert update.signal.regime == update.regime.regime
        assert update.to_dict()['sizing'] is not None

    def test_handlers_receive_updates(self, pipeline, make_candles):
        received = []
        pipeline.add_handler(received.append)

        for c in make_candles([100.0] * 3):
            pipeline.on_candle(c)
        assert len(received) == 3

        pipeline.remove_handler(received.append)
        pipeline.on_candle(make_candles([100.0], start=1_800_000_000)[0])
        assert len(received) == 3

    def test_failing_handler_is_isolated(self, pipeline, make_candles):
        received = []

        def broken(update):
            raise RuntimeError("boom")

        pipeline.add_handler(broken)
        pipeline.add_handler(received.append)

        update = pipeline.on_candle(make_candles([100.0])[0])
        assert received == [update]

    def test_handler_failure_logged_with_traceback(self, pipeline, make_candles, caplog):
        def broken(update):
            raise RuntimeError("boom")

        pipeline.add_handler(broken)
        with caplog.at_level(logging.WARNING, logger='quant_signals.orchestrator'):
            pipeline.on_candle(make_candles([100.0])[0])

        records = [r for r in caplog.records if "handler error" in r.getMessage()]
        assert len(records) == 1
        assert records[0].exc_info is not None
        assert records[0].exc_info[0] is RuntimeError

    def test_load_history_warms_without_signals(self, pipeline, oversold_feed):
        received = []
        pipeline.add_handler(received.append)
        pipeline.load_history(oversold_feed)

        assert received == []
        assert pipeline.detector.candle_count == len(oversold_feed)
        assert pipeline.generator.last_signal_time is None


class TestStatusAndBacktest:

    def test_status(self, pipeline, oversold_feed):
        for c in oversold_feed:
            pipeline.on_candle(c)

        status = pipeline.status()
        assert status['candles'] == len(oversold_feed)
        assert status['candles_processed'] == len(oversold_feed)
        assert status['in_cooldown'] is True
        assert status['last_signal']['signal'] == 'BUY'
        assert status['open_trades'] == 0
        assert set(status) >= {'regime', 'regime_confidence', 'regime_duration_ms'}

    def test_status_before_any_candle(self):
        status = SignalPipeline(clock=ManualClock(0)).status()
        assert status['last_signal'] is None
        assert status['candles'] == 0

    def test_run_backtest_uses_window(self, pipeline, flat_candles):
        for c in flat_candles(60):
            pipeline.on_candle(c)

        result = pipeline.run_backtest()
        assert len(result.equity) == 1 + 10
        assert result.trades == []

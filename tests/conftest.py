"""
PYTEST CONFIGURATION & FIXTURES
===============================

Shared candle builders and clocks. Every builder is deterministic.
"""

import pytest

from quant_signals.clock import ManualClock
from quant_signals.data.candles import Candle

START_TIME = 1_700_000_000  # seconds
STEP = 60


def pytest_configure(config):
    """Markers per area."""
    config.addinivalue_line("markers", "indicators: indicator library tests")
    config.addinivalue_line("markers", "regime: market regime detector tests")
    config.addinivalue_line("markers", "signals: signal generator and price target tests")
    config.addinivalue_line("markers", "backtest: backtest engine and metrics tests")
    config.addinivalue_line("markers", "tracking: live performance tracker tests")


def _series(closes, volumes=None, spread=0.0, start=START_TIME, step=STEP):
    volumes = volumes if volumes is not None else [1000.0] * len(closes)
    return [
        Candle(
            time=start + i * step,
            open=c,
            high=c + spread,
            low=c - spread,
            close=c,
            volume=v,
        )
        for i, (c, v) in enumerate(zip(closes, volumes))
    ]


@pytest.fixture
def make_candles():
    """
    Factory: candles from a list of closes.

    open = close, high/low = close +/- spread, one candle per minute.
    """
    return _series


@pytest.fixture
def trend_candles():
    """Factory: linear trend, close moving ``step_price`` per candle, high/low = close +/- 1."""
    def _build(n, start_price=100.0, step_price=5.0, volume=1000.0, start=START_TIME):
        closes = [start_price + step_price * i for i in range(n)]
        return _series(closes, [volume] * n, spread=1.0, start=start)
    return _build


@pytest.fixture
def flat_candles():
    """Factory: constant candles (close 100, high 101, low 99)."""
    def _build(n, price=100.0, volume=1000.0, start=START_TIME):
        return _series([price] * n, [volume] * n, spread=1.0, start=start)
    return _build


@pytest.fixture
def gen_candles():
    """Factory: open/close 100 + i, high 101 + i, low 99 + i (true range 2 everywhere)."""
    def _build(n):
        return [
            Candle(
                time=START_TIME + i * STEP,
                open=100.0 + i,
                high=101.0 + i,
                low=99.0 + i,
                close=100.0 + i,
                volume=1000.0,
            )
            for i in range(n)
        ]
    return _build


@pytest.fixture
def manual_clock():
    return ManualClock(START_TIME * 1000)

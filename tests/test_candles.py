"""
TESTS - CANDLE PARSING & VALIDATION
===================================
"""

import pandas as pd
import pytest

from quant_signals.data.candles import (
    Candle,
    candles_from_frame,
    candles_to_frame,
    normalize_timestamp,
    parse_candle,
    parse_candles,
    validate_candle,
    validate_series,
)
from quant_signals.exceptions import InvalidCandleError


class TestParsing:

    def test_dict_with_millisecond_time(self):
        candle = parse_candle({'time': 1_700_000_000_000, 'open': '1', 'high': 2,
                               'low': 0.5, 'close': 1.5, 'volume': 10})
        assert candle.time == 1_700_000_000
        assert candle.high == 2.0
        assert candle.volume == 10.0

    def test_dict_timestamp_alias(self):
        candle = parse_candle({'timestamp': 1_700_000_000, 'open': 1, 'high': 1,
                               'low': 1, 'close': 1})
        assert candle.time == 1_700_000_000
        assert candle.volume == 0.0

    def test_missing_time(self):
        with pytest.raises(InvalidCandleError):
            parse_candle({'open': 1, 'high': 1, 'low': 1, 'close': 1})

    def test_exchange_row(self):
        row = [1_700_000_000_000, "100", "101", "99", "100.5", "12.5",
               1_700_000_059_999, "1250", 42, "6", "600", "0"]
        candle = parse_candle(row)

        assert candle.time == 1_700_000_000
        assert candle.close == 100.5
        assert candle.close_time == pytest.approx(1_700_000_059.999)
        assert candle.trade_count == 42
        assert candle.taker_buy_quote_volume == 600.0

    def test_short_row(self):
        candle = parse_candle([1_700_000_000, 1, 2, 0.5, 1.5])
        assert candle.volume == 0.0
        assert candle.close_time is None

        with pytest.raises(InvalidCandleError):
            parse_candle([1, 2, 3])

    def test_parse_many(self):
        candles = parse_candles([[60 * i, 1, 1, 1, 1, 1] for i in range(3)])
        assert [c.time for c in candles] == [0, 60, 120]

    def test_normalize_timestamp(self):
        assert normalize_timestamp(1_700_000_000) == 1_700_000_000
        assert normalize_timestamp(1_700_000_000_000) == 1_700_000_000

    def test_to_dict_drops_empty_metadata(self):
        data = Candle(time=0, open=1, high=2, low=0.5, close=1.5, volume=3).to_dict()
        assert set(data) == {'time', 'open', 'high', 'low', 'close', 'volume'}
        assert Candle(time=0, open=1, high=2, low=0, close=1).typical_price == 1.0


class TestValidation:

    @pytest.mark.parametrize("kwargs", [
        dict(open=10, high=9, low=8, close=9),
        dict(open=10, high=11, low=10.5, close=10.8),
        dict(open=10, high=11, low=9, close=10, volume=-1),
    ])
    def test_invalid_candle(self, kwargs):
        with pytest.raises(InvalidCandleError):
            validate_candle(Candle(time=0, **kwargs))

    def test_series_must_ascend(self, make_candles):
        candles = make_candles([100.0, 101.0, 102.0])
        assert validate_series(candles) is candles

        with pytest.raises(InvalidCandleError):
            validate_series([candles[0], candles[0]])


class TestFrames:

    def test_frame_round_trip(self, make_candles):
        candles = make_candles([100.0, 101.0, 99.0], [5.0, 6.0, 7.0], spread=1.0)
        frame = candles_to_frame(candles)

        assert list(frame.columns) == ['time', 'open', 'high', 'low', 'close', 'volume']
        assert candles_from_frame(frame) == candles

    def test_empty_frame(self):
        assert candles_to_frame([]).empty

    def test_datetime_index_and_case(self):
        index = pd.date_range("2023-11-14 22:13:20", periods=2, freq="min")
        frame = pd.DataFrame({'Open': [1.0, 2.0], 'High': [1.5, 2.5], 'Low': [0.5, 1.5],
                              'Close': [1.2, 2.2]}, index=index)

        candles = candles_from_frame(frame)
        assert [c.time for c in candles] == [1_700_000_000, 1_700_000_060]
        assert candles[0].volume == 0.0

    def test_missing_columns(self):
        with pytest.raises(InvalidCandleError):
            candles_from_frame(pd.DataFrame({'open': [1.0], 'close': [1.0]}))

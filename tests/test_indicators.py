"""
TESTS - TECHNICAL INDICATORS
============================

EMA, RSI, VWAP, ATR, ADX/DI, Bollinger Bands and the volume helpers,
including the short-window sentinels.
"""

import math

import numpy as np
import pytest

from quant_signals.features import indicators as ind
from quant_signals.features import FeatureEngine


@pytest.mark.indicators
class TestMovingAverages:

    def test_ema_linear_closes(self, make_candles):
        candles = make_candles([float(i) for i in range(1, 31)])

        assert ind.ema(12)(candles) == pytest.approx(25.376, abs=0.01)
        assert ind.ema(26)(candles) == pytest.approx(19.325, abs=0.01)

    def test_ema_constant_series(self, make_candles):
        candles = make_candles([50.0] * 30)
        assert ind.ema_value(candles, 12) == pytest.approx(50.0)

    def test_ema_uses_only_trailing_window(self, make_candles):
        base = make_candles([float(i) for i in range(1, 31)])
        noisy = make_candles([999.0] * 10 + [float(i) for i in range(11, 31)])
        assert ind.ema(12)(base) == ind.ema(12)(noisy)

    def test_ema_short_window_is_nan(self, make_candles):
        assert math.isnan(ind.ema(12)(make_candles([1.0] * 11)))
        assert math.isnan(ind.ema(12)([]))

    def test_volume_sma(self, make_candles):
        candles = make_candles([100.0] * 30, volumes=[(i + 1) * 10.0 for i in range(30)])
        assert ind.volume_sma(candles, 10) == pytest.approx(255.0)

    def test_volume_sma_short_window_is_zero(self, make_candles):
        assert ind.volume_sma(make_candles([100.0] * 5), 10) == 0.0

    def test_vwap_equal_volumes_is_mean_typical(self, make_candles):
        candles = make_candles([float(i) for i in range(1, 31)])
        assert ind.vwap(candles) == pytest.approx(15.5)

    def test_vwap_weights_by_volume(self, make_candles):
        candles = make_candles([10.0, 20.0], volumes=[1.0, 3.0])
        assert ind.vwap(candles) == pytest.approx(17.5)

    def test_vwap_empty_or_no_volume(self, make_candles):
        assert ind.vwap([]) == 0.0
        assert ind.vwap(make_candles([10.0, 11.0], volumes=[0.0, 0.0])) == 0.0


@pytest.mark.indicators
class TestRSI:

    def test_rising_saturates_to_100(self, make_candles):
        for n in (15, 20, 60):
            candles = make_candles([100.0 + i for i in range(n)])
            assert ind.rsi14(candles) == pytest.approx(100.0)

    def test_falling_saturates_to_zero(self, make_candles):
        for n in (15, 20, 60):
            candles = make_candles([200.0 - i for i in range(n)])
            assert ind.rsi14(candles) == pytest.approx(0.0, abs=1e-6)

    def test_flat_window_is_neutral(self, make_candles):
        assert ind.rsi14(make_candles([100.0] * 20)) == 50.0

    def test_mixed_moves(self, make_candles):
        # 7 gains of 2 and 7 losses of 1 -> RS = 2
        closes = [100.0]
        for i in range(14):
            closes.append(closes[-1] + (2.0 if i % 2 == 0 else -1.0))
        assert ind.rsi14(make_candles(closes)) == pytest.approx(100 - 100 / 3)

    def test_short_window_is_nan(self, make_candles):
        assert math.isnan(ind.rsi14(make_candles([100.0 + i for i in range(14)])))

    def test_within_bounds(self, make_candles):
        rng = np.random.default_rng(7)
        closes = list(100 + np.cumsum(rng.normal(0, 1, 80)))
        value = ind.rsi14(make_candles(closes))
        assert 0.0 <= value <= 100.0


@pytest.mark.indicators
class TestATR:

    def test_constant_true_range(self, gen_candles):
        atr = ind.calculate_atr(gen_candles(20), 14)

        assert len(atr) == 20
        assert np.all(atr[:13] == 0)
        assert atr[13] == pytest.approx(2.0)
        assert atr[-1] == pytest.approx(2.0)

    def test_wilder_smoothing(self, make_candles):
        # True range 0 for 14 candles, then a 10 point gap
        candles = make_candles([100.0] * 20 + [90.0])
        atr = ind.calculate_atr(candles, 14)
        assert atr[-1] == pytest.approx(10 / 14)

    def test_short_window_is_zeros(self, gen_candles):
        atr = ind.calculate_atr(gen_candles(10), 14)
        assert len(atr) == 10
        assert np.all(atr == 0)
        assert ind.current_atr(gen_candles(10), 14) == 0.0

    def test_current_atr(self, gen_candles):
        assert ind.current_atr(gen_candles(30), 14) == pytest.approx(2.0)


@pytest.mark.indicators
class TestDirectionalMovement:

    def test_linear_uptrend(self, trend_candles):
        di = ind.directional_movement(trend_candles(40), 14)

        assert di.plus_di[-1] == pytest.approx(500 / 6)
        assert di.minus_di[-1] == pytest.approx(0.0)
        assert di.adx[-1] == pytest.approx(100.0)

    def test_linear_downtrend(self, trend_candles):
        adx, plus_di, minus_di = ind.latest_directional_index(
            trend_candles(40, start_price=500.0, step_price=-5.0), 14
        )
        assert minus_di == pytest.approx(500 / 6)
        assert plus_di == pytest.approx(0.0)
        assert adx == pytest.approx(100.0)

    def test_flat_market_has_no_trend(self, flat_candles):
        adx, plus_di, minus_di = ind.latest_directional_index(flat_candles(40), 14)
        assert adx == 0.0
        assert plus_di == 0.0
        assert minus_di == 0.0

    def test_adx_first_defined_at_two_periods(self, trend_candles):
        adx = ind.calculate_adx(trend_candles(30), 14)
        assert np.all(np.isnan(adx[:27]))
        assert not np.isnan(adx[27])

    def test_di_defined_from_period(self, trend_candles):
        plus_di = ind.calculate_plus_di(trend_candles(20), 14)
        minus_di = ind.calculate_minus_di(trend_candles(20), 14)
        assert np.isnan(plus_di[13]) and not np.isnan(plus_di[14])
        assert np.isnan(minus_di[13]) and not np.isnan(minus_di[14])

    def test_short_window_is_nan(self, trend_candles):
        di = ind.directional_movement(trend_candles(10), 14)
        assert np.all(np.isnan(di.adx))
        assert np.all(np.isnan(di.plus_di))
        adx, plus_di, minus_di = ind.latest_directional_index([], 14)
        assert math.isnan(adx) and math.isnan(plus_di) and math.isnan(minus_di)


@pytest.mark.indicators
class TestBollingerBands:

    def test_population_std(self, make_candles):
        closes = [float(i) for i in range(1, 21)]
        bands = ind.bollinger_bands(make_candles(closes), 20, 2.0)

        assert bands.middle == pytest.approx(10.5)
        assert bands.upper - bands.middle == pytest.approx(2 * np.std(closes))
        assert bands.middle - bands.lower == pytest.approx(2 * np.std(closes))

    def test_k_scales_width(self, make_candles):
        candles = make_candles([float(i) for i in range(1, 21)])
        narrow = ind.bollinger_bands(candles, 20, 1.0)
        wide = ind.bollinger_bands(candles, 20, 3.0)
        assert (wide.upper - wide.lower) == pytest.approx(3 * (narrow.upper - narrow.lower))

    def test_short_window_is_nan(self, make_candles):
        bands = ind.bollinger_bands(make_candles([1.0] * 19), 20)
        assert math.isnan(bands.upper) and math.isnan(bands.middle) and math.isnan(bands.lower)


@pytest.mark.indicators
class TestVolume:

    def test_volume_spike(self, make_candles):
        closes = [100.0] * 21
        assert ind.is_volume_spike(make_candles(closes, [100.0] * 20 + [300.0]), 20, 2.5)
        assert not ind.is_volume_spike(make_candles(closes, [100.0] * 20 + [200.0]), 20, 2.5)

    def test_volume_spike_short_window(self, make_candles):
        assert ind.is_volume_spike(make_candles([100.0] * 20, [100.0] * 19 + [10000.0])) is False

    def test_volume_confirming(self, make_candles):
        volumes = [100.0, 100.0, 100.0, 100.0, 200.0]
        assert ind.is_volume_confirming(make_candles([100.0] * 4 + [110.0], volumes), 3) == 1
        assert ind.is_volume_confirming(make_candles([100.0] * 4 + [90.0], volumes), 3) == -1

    def test_volume_confirming_needs_heavy_volume(self, make_candles):
        candles = make_candles([100.0] * 4 + [110.0], [100.0] * 4 + [120.0])
        assert ind.is_volume_confirming(candles, 3) == 0

    def test_volume_confirming_short_window(self, make_candles):
        assert ind.is_volume_confirming(make_candles([100.0, 110.0], [1.0, 100.0]), 3) == 0

    def test_volume_ratio(self, make_candles):
        candles = make_candles([100.0] * 20, [100.0] * 19 + [200.0])
        assert ind.volume_ratio(candles, 20) == pytest.approx(2.0)
        assert ind.volume_ratio(candles[:5], 20) == 1.0

    def test_obv(self, make_candles):
        candles = make_candles([1.0, 2.0, 1.0], [10.0, 20.0, 30.0])
        assert ind.obv(candles) == pytest.approx(-10.0)
        assert ind.obv(candles[:1]) == 0.0


@pytest.mark.indicators
class TestFeatureEngine:

    def test_snapshot_short_window_reports_none(self, make_candles):
        snapshot = FeatureEngine().snapshot(make_candles([100.0] * 5)).to_dict()

        assert snapshot['rsi'] is None
        assert snapshot['ema_slow'] is None
        assert snapshot['adx'] is None
        assert snapshot['bb_upper'] is None
        assert snapshot['vwap'] == pytest.approx(100.0)

    def test_snapshot_matches_indicators(self, trend_candles):
        candles = trend_candles(40)
        snapshot = FeatureEngine().snapshot(candles)

        assert snapshot.rsi == ind.rsi14(candles)
        assert snapshot.ema_fast == ind.ema_value(candles, 12)
        assert snapshot.adx == pytest.approx(100.0)
        assert snapshot.atr == pytest.approx(ind.current_atr(candles, 14))

    def test_to_frame_has_no_lookahead(self, trend_candles):
        candles = trend_candles(40)
        frame = FeatureEngine().to_frame(candles)

        assert len(frame) == 40
        row = frame.iloc[29]
        assert row['rsi'] == ind.rsi14(candles[:30])
        assert row['ema_slow'] == ind.ema_value(candles[:30], 26)
        assert math.isnan(frame.iloc[10]['adx'])

    def test_to_frame_empty(self):
        frame = FeatureEngine().to_frame([])
        assert frame.empty
        assert 'rsi' in frame.columns

    def test_window_size_covers_windowed_indicators(self):
        assert FeatureEngine().window_size == 27
        assert FeatureEngine({'ema_slow': 50, 'ema_fast': 10}).window_size == 51

    def test_snapshots_match_prefix_snapshots(self, make_candles):
        closes = [100 + 10 * math.sin(i / 5) + 0.1 * i for i in range(120)]
        volumes = [1000 + 300 * math.cos(i / 3) for i in range(120)]
        candles = make_candles(closes, volumes, spread=1.0)
        engine = FeatureEngine()

        series = engine.snapshots(candles)

        assert len(series) == len(candles)
        for i in (0, 14, 26, 27, 60, 119):
            expected = engine.snapshot(candles[:i + 1]).to_dict()
            actual = series[i].to_dict()
            for name, value in expected.items():
                if value is None:
                    assert actual[name] is None, (i, name)
                else:
                    assert actual[name] == pytest.approx(value, rel=1e-9), (i, name)

    def test_snapshots_empty(self):
        assert FeatureEngine().snapshots([]) == []

    def test_missing_sentinel(self):
        assert ind.is_missing(ind.NAN)
        assert ind.is_missing(None)
        assert not ind.is_missing(0.0)
        assert not ind.is_missing(50.0)

"""
TESTS - ATR PRICE TARGETS
=========================
"""

import pytest

from quant_signals.exceptions import InsufficientDataError
from quant_signals.signals import calculate_position_size, calculate_price_targets


@pytest.mark.signals
class TestPriceTargets:

    def test_long_targets(self, gen_candles):
        targets = calculate_price_targets(gen_candles(20), 120.0, True)

        assert targets.atr == pytest.approx(2.0)
        assert targets.stop_loss == pytest.approx(115.0)
        assert targets.take_profit == pytest.approx(130.0)
        assert targets.stop_distance == pytest.approx(5.0)
        assert targets.target_distance == pytest.approx(10.0)
        assert targets.is_long

    def test_short_targets(self, gen_candles):
        targets = calculate_price_targets(gen_candles(20), 120.0, False)

        assert targets.stop_loss == pytest.approx(125.0)
        assert targets.take_profit == pytest.approx(110.0)

    def test_custom_multiplier_and_ratio(self, gen_candles):
        targets = calculate_price_targets(gen_candles(20), 120.0, True,
                                          atr_multiplier=1.0, risk_reward_ratio=3.0)
        assert targets.stop_loss == pytest.approx(118.0)
        assert targets.take_profit == pytest.approx(126.0)

    def test_long_stop_floored(self, gen_candles):
        targets = calculate_price_targets(gen_candles(20), 1.0, True)
        assert targets.stop_loss == 0.01

    def test_insufficient_data_raises(self, gen_candles):
        with pytest.raises(InsufficientDataError) as exc_info:
            calculate_price_targets(gen_candles(14), 100.0, True)

        assert exc_info.value.required == 15
        assert exc_info.value.received == 14

    def test_insufficient_data_is_value_error(self, gen_candles):
        with pytest.raises(ValueError):
            calculate_price_targets(gen_candles(5), 100.0, True, atr_period=5)


@pytest.mark.signals
class TestPositionSize:

    def test_risk_based_size(self):
        assert calculate_position_size(10_000, 1, 100.0, 95.0) == pytest.approx(20.0)

    def test_short_side_distance(self):
        assert calculate_position_size(10_000, 2, 100.0, 110.0) == pytest.approx(20.0)

    def test_zero_distance_raises(self):
        with pytest.raises(ValueError):
            calculate_position_size(10_000, 1, 100.0, 100.0)

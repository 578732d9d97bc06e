"""
Feature Engine
==============
Bundles the indicator library into one snapshot per candle window, the form
the signal generator reports as raw indicators and charts consume.
"""

import pandas as pd
import numpy as np
from typing import Dict, List, Optional, Sequence
from dataclasses import dataclass, asdict
import math
import logging

from ..data.candles import Candle
from . import indicators as ind

logger = logging.getLogger(__name__)

RSI_PERIOD = 14


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Indicator values for the latest candle of a window (NaN when undefined)."""
    rsi: float
    ema_fast: float
    ema_slow: float
    adx: float
    plus_di: float
    minus_di: float
    atr: float
    vwap: float
    bb_upper: float
    bb_middle: float
    bb_lower: float
    volume_ratio: float

    def to_dict(self) -> Dict[str, Optional[float]]:
        """Plain dict with NaN mapped to None."""
        return {
            k: (None if isinstance(v, float) and math.isnan(v) else v)
            for k, v in asdict(self).items()
        }


class FeatureEngine:
    """
    Computes indicator snapshots for a candle window.

    Periods come from the signal configuration so the snapshot always
    matches what the signal generator decided on.
    """

    def __init__(self, config=None):
        from ..config import SignalConfig
        self.config = SignalConfig.resolve(config)

        # Trailing candles the windowed indicators (everything except the
        # Wilder ADX/ATR and the cumulative VWAP) ever read
        cfg = self.config
        self.window_size = max(
            cfg.ema_fast + 1,
            cfg.ema_slow + 1,
            RSI_PERIOD + 1,
            cfg.bollinger_period,
            cfg.volume_period,
            cfg.volume_confirm_lookback + 1,
            cfg.volume_spike_lookback + 1,
            cfg.atr_period + 1,
        )

    def snapshot(self, candles: Sequence[Candle]) -> IndicatorSnapshot:
        """Indicators of the latest candle in ``candles``."""
        cfg = self.config
        adx, plus_di, minus_di = ind.latest_directional_index(candles, cfg.atr_period)
        bands = ind.bollinger_bands(candles, cfg.bollinger_period, cfg.bollinger_k)

        # ATR sentinel is 0, report it as undefined here
        atr = ind.current_atr(candles, cfg.atr_period) if len(candles) >= cfg.atr_period else ind.NAN

        return IndicatorSnapshot(
            rsi=ind.rsi14(candles),
            ema_fast=ind.ema_value(candles, cfg.ema_fast),
            ema_slow=ind.ema_value(candles, cfg.ema_slow),
            adx=adx,
            plus_di=plus_di,
            minus_di=minus_di,
            atr=atr,
            vwap=ind.vwap(candles) if candles else ind.NAN,
            bb_upper=bands.upper,
            bb_middle=bands.middle,
            bb_lower=bands.lower,
            volume_ratio=ind.volume_ratio(candles, cfg.volume_period) if candles else ind.NAN,
        )

    def to_frame(self, candles: Sequence[Candle]) -> pd.DataFrame:
        """
        Per-candle indicator columns, each row computed only from the
        candles up to and including that row.

        Returns:
            DataFrame indexed like the candles with the OHLCV columns plus
            one column per snapshot field
        """
        cfg = self.config
        candles = list(candles)
        n = len(candles)
        frame = pd.DataFrame(
            [[c.time, c.open, c.high, c.low, c.close, c.volume] for c in candles],
            columns=['time', 'open', 'high', 'low', 'close', 'volume']
        )
        if n == 0:
            for name in IndicatorSnapshot.__dataclass_fields__:
                frame[name] = pd.Series(dtype=float)
            return frame

        di = ind.directional_movement(candles, cfg.atr_period)
        atr = ind.calculate_atr(candles, cfg.atr_period)
        atr[:cfg.atr_period - 1] = np.nan

        typical = frame[['high', 'low', 'close']].mean(axis=1).to_numpy()
        volume = frame['volume'].to_numpy(dtype=float)
        cum_volume = np.cumsum(volume)
        cum_pv = np.cumsum(typical * volume)
        with np.errstate(divide='ignore', invalid='ignore'):
            vwap = np.where(cum_volume > 0, cum_pv / cum_volume, 0.0)

        rows: List[Dict[str, float]] = []
        for i in range(n):
            window = candles[max(0, i + 1 - self.window_size):i + 1]
            bands = ind.bollinger_bands(window, cfg.bollinger_period, cfg.bollinger_k)
            rows.append({
                'rsi': ind.rsi14(window),
                'ema_fast': ind.ema_value(window, cfg.ema_fast),
                'ema_slow': ind.ema_value(window, cfg.ema_slow),
                'bb_upper': bands.upper,
                'bb_middle': bands.middle,
                'bb_lower': bands.lower,
                'volume_ratio': ind.volume_ratio(window, cfg.volume_period),
            })

        rolling = pd.DataFrame(rows)
        frame['rsi'] = rolling['rsi']
        frame['ema_fast'] = rolling['ema_fast']
        frame['ema_slow'] = rolling['ema_slow']
        frame['adx'] = di.adx
        frame['plus_di'] = di.plus_di
        frame['minus_di'] = di.minus_di
        frame['atr'] = atr
        frame['vwap'] = vwap
        frame['bb_upper'] = rolling['bb_upper']
        frame['bb_middle'] = rolling['bb_middle']
        frame['bb_lower'] = rolling['bb_lower']
        frame['volume_ratio'] = rolling['volume_ratio']

        logger.debug(f"Computed indicator frame for {n} candles")
        return frame

    def snapshots(self, candles: Sequence[Candle]) -> List[IndicatorSnapshot]:
        """
        One snapshot per candle in a single pass.

        ``snapshots(candles)[i]`` carries the same indicator values as
        ``snapshot(candles[:i + 1])``; replays use it instead of
        recomputing the Wilder series over a growing prefix.
        """
        frame = self.to_frame(candles)
        names = list(IndicatorSnapshot.__dataclass_fields__)
        return [
            IndicatorSnapshot(**{name: float(value) for name, value in zip(names, row)})
            for row in frame[names].itertuples(index=False, name=None)
        ]

"""
Feature Engineering Module
==========================
"""
from .indicators import (
    BollingerBands,
    DirectionalIndex,
    ema,
    ema_value,
    rsi,
    rsi14,
    vwap,
    volume_sma,
    true_range,
    calculate_atr,
    current_atr,
    directional_movement,
    calculate_adx,
    calculate_plus_di,
    calculate_minus_di,
    latest_directional_index,
    bollinger_bands,
    is_volume_spike,
    is_volume_confirming,
    volume_ratio,
    obv,
    is_missing
)
from .feature_engine import FeatureEngine, IndicatorSnapshot

__all__ = [
    'BollingerBands',
    'DirectionalIndex',
    'ema',
    'ema_value',
    'rsi',
    'rsi14',
    'vwap',
    'volume_sma',
    'true_range',
    'calculate_atr',
    'current_atr',
    'directional_movement',
    'calculate_adx',
    'calculate_plus_di',
    'calculate_minus_di',
    'latest_directional_index',
    'bollinger_bands',
    'is_volume_spike',
    'is_volume_confirming',
    'volume_ratio',
    'obv',
    'is_missing',
    'FeatureEngine',
    'IndicatorSnapshot'
]

"""
Signal Generation Module
========================
"""
from .signal_generator import SignalGenerator, SignalResult, SignalType
from .price_targets import (
    PriceTargets,
    calculate_price_targets,
    price_targets_from_atr,
    calculate_position_size
)

__all__ = [
    'SignalGenerator',
    'SignalResult',
    'SignalType',
    'PriceTargets',
    'calculate_price_targets',
    'price_targets_from_atr',
    'calculate_position_size'
]

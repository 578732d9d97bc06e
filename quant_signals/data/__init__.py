"""
Data Module
===========
"""
from .candles import (
    Candle,
    parse_candle,
    parse_candles,
    normalize_timestamp,
    validate_candle,
    validate_series,
    candles_to_frame,
    candles_from_frame
)

__all__ = [
    'Candle',
    'parse_candle',
    'parse_candles',
    'normalize_timestamp',
    'validate_candle',
    'validate_series',
    'candles_to_frame',
    'candles_from_frame'
]

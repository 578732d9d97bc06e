"""
Market Regime Module
====================
"""
from .regime_detector import (
    MarketRegime,
    MarketRegimeDetector,
    RegimeState,
    RegimeAnalysis,
    RegimeChange,
    describe_regime
)

__all__ = [
    'MarketRegime',
    'MarketRegimeDetector',
    'RegimeState',
    'RegimeAnalysis',
    'RegimeChange',
    'describe_regime'
]

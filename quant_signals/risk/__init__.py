"""
Risk Module
===========
"""
from .position_sizer import PositionSizer, PositionSizing

__all__ = [
    'PositionSizer',
    'PositionSizing'
]

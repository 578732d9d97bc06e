"""
Monitoring Module
=================
"""
from .performance_tracker import PerformanceTracker

__all__ = [
    'PerformanceTracker'
]

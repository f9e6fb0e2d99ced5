"""
Mapper Comparison Analysis Modules

This package provides the analysis components of the mapper comparison
report: a data manager that loads inputs and an analyzer that derives
summaries and figures from them.
"""

from .base import DataManager, BaseAnalyzer
from .read_stats import ReadStatsAnalyzer, ReadStatsDataManager

__all__ = [
    'DataManager',
    'BaseAnalyzer',
    'ReadStatsAnalyzer',
    'ReadStatsDataManager',
]

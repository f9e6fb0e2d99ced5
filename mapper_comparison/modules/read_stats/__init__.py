"""
Per-read statistics analysis module.

This module compares read mappers on the per-read alignment statistics of
each sample:
- data: loading and merging the per (mapper, sample) statistics files
- summary_stats: alignment rate, length-binned error rates and overviews
- visualizations: the declarative chart list and its plotly figures
"""

from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

from ..base import BaseAnalyzer
from .data import ReadStatsDataManager, merge_read_stats, read_stats_file
from .summary_stats import ReadStatsSummaryStats
from .visualizations import REPORT_CHARTS, ChartSpec, ReadStatsVisualizations, write_figures

logger = logging.getLogger(__name__)

__all__ = [
    'ChartSpec',
    'REPORT_CHARTS',
    'ReadStatsAnalyzer',
    'ReadStatsDataManager',
    'ReadStatsSummaryStats',
    'ReadStatsVisualizations',
    'merge_read_stats',
    'read_stats_file',
]


class ReadStatsAnalyzer(BaseAnalyzer):
    """
    Unified analyzer over the merged per-read statistics.

    Combines the summary calculator and the chart builder behind the
    BaseAnalyzer interface.
    """

    def __init__(self, data_manager: ReadStatsDataManager):
        super().__init__(data_manager)
        config = data_manager.config
        self.stats = ReadStatsSummaryStats(
            self.data["reads"],
            length_bin_width=config.length_bin_width,
            whisker_coef=config.whisker_coef,
        )

    def generate_summary_stats(self, sample_ids: Optional[List[str]] = None) -> Dict[str, Any]:
        return self.stats.calculate_all(sample_ids)

    def create_visualizations(self, sample_ids: Optional[List[str]] = None,
                              summaries: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Create all report figures.

        Args:
            sample_ids: Optional list of sample IDs to visualize
            summaries: Precomputed summary tables, computed when omitted

        Returns:
            Dictionary of plotly figures in report order
        """
        if summaries is None:
            summaries = self.generate_summary_stats(sample_ids)
        return ReadStatsVisualizations(summaries).create_all_visualizations()

    def export_results(self, output_path: Path, sample_ids: Optional[List[str]] = None) -> List[Path]:
        """Export the summary tables and overview of the selected samples."""
        return self.stats.export_results(Path(output_path), sample_ids)

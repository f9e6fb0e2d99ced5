"""
Report pipeline for the mapper comparison.

Runs loader, merger, aggregator and renderer in sequence and writes the
resulting chart and table artifacts. Contains no UI code.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional
import json
import logging
import time

import pandas as pd
import plotly.graph_objects as go

from .config import ReportConfig
from .modules.read_stats import ReadStatsAnalyzer, ReadStatsDataManager, write_figures

logger = logging.getLogger(__name__)


@dataclass
class ReportResult:
    """Tables and figures produced by one report run."""
    reads: pd.DataFrame
    summaries: Dict[str, pd.DataFrame]
    figures: Dict[str, go.Figure] = field(default_factory=dict)
    written: List[Path] = field(default_factory=list)


class MapperComparisonReport:
    """
    Report component that collects the read statistics analysis.
    Framework-agnostic - returns data structures and figures.
    """

    def __init__(self, config: ReportConfig, progress: bool = False):
        """
        Args:
            config: Validated report configuration
            progress: Show a progress bar while loading files
        """
        self.config = config
        self.data_manager = ReadStatsDataManager(config, progress=progress)
        self._analyzer: Optional[ReadStatsAnalyzer] = None

    @property
    def analyzer(self) -> ReadStatsAnalyzer:
        """Analyzer over the merged table, loading the files on first use."""
        if self._analyzer is None:
            start = time.time()
            self._analyzer = ReadStatsAnalyzer(self.data_manager)
            logger.info("Loaded read statistics in %.1fs", time.time() - start)
        return self._analyzer

    def get_summary_stats(self, sample_ids: Optional[List[str]] = None) -> Dict[str, pd.DataFrame]:
        return self.analyzer.generate_summary_stats(sample_ids)

    def run(self, sample_ids: Optional[List[str]] = None, with_figures: bool = True) -> ReportResult:
        """
        Compute summaries and, optionally, figures.

        Args:
            sample_ids: Optional list of sample IDs to restrict the report to
            with_figures: Build the chart figures as well

        Returns:
            ReportResult with the merged table, summaries and figures
        """
        summaries = self.get_summary_stats(sample_ids)
        figures = {}
        if with_figures:
            figures = self.analyzer.create_visualizations(sample_ids, summaries=summaries)
        return ReportResult(reads=self.analyzer.data["reads"], summaries=summaries, figures=figures)

    def write(self, output_dir: Optional[Path] = None, sample_ids: Optional[List[str]] = None,
              with_figures: bool = True) -> ReportResult:
        """
        Run the report and write its artifacts.

        Charts go to <output_dir>/charts, tables to <output_dir>/tables and
        the effective configuration to <output_dir>/config.json.
        Nothing is written when loading fails.

        Returns:
            ReportResult with the list of written files
        """
        output_dir = Path(output_dir) if output_dir is not None else self.config.output_dir
        result = self.run(sample_ids, with_figures=with_figures)

        result.written.extend(self.analyzer.export_results(output_dir / "tables", sample_ids))
        if with_figures:
            result.written.extend(write_figures(result.figures, output_dir / "charts"))

        config_path = output_dir / "config.json"
        with open(config_path, "w") as f:
            json.dump(self.config.to_dict(), f, indent=2)
        result.written.append(config_path)

        logger.info("Report written to %s (%d files)", output_dir, len(result.written))
        return result


def export_merged(reads: pd.DataFrame, path: Path) -> Path:
    """
    Write the merged per-read table to parquet or, for a .csv/.tsv suffix, text.

    Categorical columns keep their order in parquet output.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        reads.to_csv(path, index=False, na_rep="NA")
    elif suffix in (".tsv", ".txt"):
        reads.to_csv(path, sep="\t", index=False, na_rep="NA")
    else:
        reads.to_parquet(path, engine="pyarrow", index=False)
    logger.info("Merged table with %d reads written to %s", len(reads), path)
    return path

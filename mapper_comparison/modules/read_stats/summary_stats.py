"""
Read statistics summaries.

This module computes the descriptive summaries of the merged per-read table:
- Alignment rate per sample, mapper and aligned status
- Read length distributions and N50
- Box statistics of error rates, overall and per read-length bin
- Aligned fraction and nucleotide composition per sample and mapper

All functions are pure: they return new DataFrames and leave their input
untouched. Absent (NaN) values are skipped, and a cell without any
contributing value is omitted with an EmptyGroupWarning instead of being
reported as zero.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
import json
import logging
import warnings

import numpy as np
import pandas as pd

from .data import (
    ALIGNED_LEVELS,
    COMPOSITION_FIELDS,
    ERROR_RATE_FIELDS,
    aligned_reads,
    select_samples,
)
from ...config import DEFAULT_LENGTH_BIN_WIDTH, DEFAULT_WHISKER_COEF
from ...errors import EmptyGroupWarning

logger = logging.getLogger(__name__)

BOX_COLUMNS = ["n", "min", "lower_whisker", "q1", "median", "q3", "upper_whisker", "max", "n_outliers"]
DISTRIBUTION_FIELDS = ["aliPerc"] + ERROR_RATE_FIELDS


def _restore_order(frame: pd.DataFrame, reference: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    """Re-apply the ordered categories of reference to columns of frame."""
    for column in columns:
        if column in frame.columns and isinstance(reference[column].dtype, pd.CategoricalDtype):
            frame[column] = pd.Categorical(frame[column], categories=reference[column].cat.categories, ordered=True)
    return frame


def _warn_omitted(omitted: pd.DataFrame, what: str) -> None:
    if omitted.empty:
        return
    cells = ["/".join(str(v) for v in row) for row in omitted.itertuples(index=False)]
    logger.info("Omitting %d %s cells without values: %s", len(cells), what, ", ".join(cells))
    warnings.warn(
        f"{len(cells)} {what} cell(s) had no non-absent values and were omitted",
        EmptyGroupWarning,
        stacklevel=3,
    )


def n50(lengths: Sequence[float]) -> int:
    """
    Length N such that reads of length >= N hold at least half of all bases.

    Returns 0 for an empty input.
    """
    ordered = np.sort(np.asarray(lengths, dtype="float64"))[::-1]
    if ordered.size == 0:
        return 0
    cumulative = np.cumsum(ordered)
    return int(ordered[np.searchsorted(cumulative, cumulative[-1] / 2.0)])


def box_statistics(values: Sequence[float], whisker_coef: float = DEFAULT_WHISKER_COEF) -> Dict[str, float]:
    """
    Box plot statistics of a set of values.

    Quartiles use linear interpolation. Whiskers extend to the most extreme
    values within whisker_coef * IQR of the box; values beyond are counted as
    outliers but still take part in the quartiles.

    Args:
        values: Non-empty collection of finite values
        whisker_coef: Whisker reach in multiples of the IQR

    Returns:
        Dictionary keyed by BOX_COLUMNS
    """
    values = np.sort(np.asarray(values, dtype="float64"))
    if values.size == 0:
        raise ValueError("box_statistics requires at least one value")

    q1, median, q3 = np.percentile(values, [25, 50, 75])
    reach = whisker_coef * (q3 - q1)
    inside = values[(values >= q1 - reach) & (values <= q3 + reach)]
    if inside.size == 0:
        lower, upper = q1, q3
    else:
        lower, upper = inside[0], inside[-1]

    return {
        "n": int(values.size),
        "min": float(values[0]),
        "lower_whisker": float(lower),
        "q1": float(q1),
        "median": float(median),
        "q3": float(q3),
        "upper_whisker": float(upper),
        "max": float(values[-1]),
        "n_outliers": int(values.size - inside.size),
    }


def length_bins(read_length: pd.Series, width: int = DEFAULT_LENGTH_BIN_WIDTH) -> pd.Series:
    """
    Lower edge, in kb, of the read-length window of each read.

    With the default width of 4000 bp this is floor(readLength / 4000) * 4.
    """
    edges = (read_length // width) * width
    if width % 1000 == 0:
        return (edges // 1000).astype("int64").rename("lengthBin")
    return (edges / 1000.0).rename("lengthBin")


def _key_tuples(frame: pd.DataFrame, keys: Sequence[str]) -> List[tuple]:
    return list(zip(*(frame[k].astype(str) for k in keys)))


def _long_format(reads: pd.DataFrame, keys: List[str], fields: Sequence[str]) -> pd.DataFrame:
    long = reads.melt(id_vars=keys, value_vars=list(fields), var_name="field", value_name="value")
    long = _restore_order(long, reads, keys)
    long["field"] = pd.Categorical(long["field"], categories=list(fields), ordered=True)
    return long


def _box_summary(reads: pd.DataFrame, keys: List[str], fields: Sequence[str],
                 whisker_coef: float, what: str) -> pd.DataFrame:
    """Box statistics per (keys..., field) cell, omitting cells without values."""
    group_keys = keys + ["field"]
    columns = group_keys + BOX_COLUMNS
    if reads.empty:
        return pd.DataFrame(columns=columns)

    long = _long_format(reads, keys, fields)
    cells = long[group_keys].drop_duplicates()
    present = long.dropna(subset=["value"])

    rows = []
    for key, group in present.groupby(group_keys, observed=True, sort=True)["value"]:
        rows.append({**dict(zip(group_keys, key)), **box_statistics(group.to_numpy(), whisker_coef)})

    summary = pd.DataFrame(rows, columns=columns)
    summary = _restore_order(summary, long, group_keys)

    covered = set(_key_tuples(summary, group_keys))
    missing = np.array([key not in covered for key in _key_tuples(cells, group_keys)], dtype=bool)
    _warn_omitted(cells[missing], what)

    return summary.sort_values(group_keys, kind="stable").reset_index(drop=True)


def alignment_rate_summary(reads: pd.DataFrame) -> pd.DataFrame:
    """
    Number and fraction of aligned and unaligned reads per sample and mapper.

    Both aligned statuses are reported for every (sample, mapper), with a zero
    count and fraction when no read falls in one of them.

    Returns:
        DataFrame with columns sample, mapper, isAligned, count, fraction
    """
    counts = (reads.groupby(["sample", "mapper", "isAligned"], observed=False)
              .size()
              .rename("count")
              .reset_index())
    totals = counts.groupby(["sample", "mapper"], observed=False)["count"].transform("sum")
    counts["fraction"] = (counts["count"] / totals.where(totals > 0)).fillna(0.0)
    counts["count"] = counts["count"].astype("int64")
    return _restore_order(counts, reads, ["sample", "mapper", "isAligned"])


def binned_error_summary(reads: pd.DataFrame,
                         fields: Sequence[str] = ERROR_RATE_FIELDS,
                         width: int = DEFAULT_LENGTH_BIN_WIDTH,
                         whisker_coef: float = DEFAULT_WHISKER_COEF) -> pd.DataFrame:
    """
    Box statistics of each error-rate field per sample, mapper and length bin.

    Only aligned reads (aliLength > 0) contribute. Each field is summarised
    independently, so a read with an absent mismatch rate still counts towards
    its insertion and deletion rates.

    Returns:
        DataFrame with columns sample, mapper, lengthBin, field and BOX_COLUMNS
    """
    aligned = aligned_reads(reads)
    binned = aligned.assign(lengthBin=length_bins(aligned["readLength"], width))
    return _box_summary(binned, ["sample", "mapper", "lengthBin"], fields, whisker_coef,
                        "binned error-rate")


def distribution_summary(reads: pd.DataFrame,
                         fields: Sequence[str] = DISTRIBUTION_FIELDS,
                         whisker_coef: float = DEFAULT_WHISKER_COEF) -> pd.DataFrame:
    """Box statistics of aligned-read fields per sample and mapper."""
    return _box_summary(aligned_reads(reads), ["sample", "mapper"], fields, whisker_coef,
                        "distribution")


def read_length_summary(reads: pd.DataFrame) -> pd.DataFrame:
    """Read count, mean/median/max length, total bases and N50 per sample, mapper and status."""
    summary = (reads.groupby(["sample", "mapper", "isAligned"], observed=True)["readLength"]
               .agg(count="count", mean="mean", median="median", max="max", total_bases="sum", n50=n50)
               .reset_index())
    return _restore_order(summary, reads, ["sample", "mapper", "isAligned"])


def read_length_histogram(reads: pd.DataFrame, bin_width: int = 1000) -> pd.DataFrame:
    """
    Read counts per read-length bin, sample, mapper and aligned status.

    Returns:
        DataFrame with columns sample, mapper, isAligned, bin_start, count
    """
    keys = ["sample", "mapper", "isAligned"]
    histogram = (reads.assign(bin_start=(reads["readLength"] // bin_width) * bin_width)
                 .groupby(keys + ["bin_start"], observed=True)
                 .size()
                 .rename("count")
                 .reset_index())
    return _restore_order(histogram, reads, keys)


def error_rate_summary(reads: pd.DataFrame, fields: Sequence[str] = ERROR_RATE_FIELDS) -> pd.DataFrame:
    """
    Mean, median and spread of each error-rate field over aligned reads.

    n_absent counts aligned reads without a value for the field. Fields that
    are absent for a whole (sample, mapper) are omitted.
    """
    keys = ["sample", "mapper", "field"]
    aligned = aligned_reads(reads)
    if aligned.empty:
        return pd.DataFrame(columns=keys + ["n", "n_absent", "mean", "median", "std"])

    long = _long_format(aligned, ["sample", "mapper"], fields)
    summary = (long.groupby(keys, observed=True)["value"]
               .agg(n="count", n_absent=lambda s: int(s.isna().sum()), mean="mean", median="median", std="std")
               .reset_index())

    empty = summary["n"] == 0
    _warn_omitted(summary.loc[empty, keys], "error-rate")
    return summary[~empty].reset_index(drop=True)


def aligned_fraction_summary(reads: pd.DataFrame) -> pd.DataFrame:
    """Mean and median aligned percentage of aligned reads per sample and mapper."""
    summary = (aligned_reads(reads).groupby(["sample", "mapper"], observed=True)["aliPerc"]
               .agg(n="count", mean="mean", median="median")
               .reset_index())
    return _restore_order(summary, reads, ["sample", "mapper"])


def composition_summary(reads: pd.DataFrame) -> pd.DataFrame:
    """Mean nucleotide composition of all reads per sample and mapper."""
    summary = (reads.groupby(["sample", "mapper"], observed=True)[COMPOSITION_FIELDS]
               .mean()
               .reset_index())
    return _restore_order(summary, reads, ["sample", "mapper"])


class ReadStatsSummaryStats:
    """
    Calculator for per-read statistics summaries.

    Handles:
    - Alignment rate (GroupSummary) per sample and mapper
    - Length-binned error-rate box statistics (BinnedSummary)
    - Read length, error rate, aligned fraction and composition overviews
    """

    def __init__(self, reads: pd.DataFrame,
                 length_bin_width: int = DEFAULT_LENGTH_BIN_WIDTH,
                 whisker_coef: float = DEFAULT_WHISKER_COEF):
        """
        Args:
            reads: Merged per-read table
            length_bin_width: Width of the read-length windows in bp
            whisker_coef: Whisker reach in multiples of the IQR
        """
        self.reads = reads
        self.length_bin_width = length_bin_width
        self.whisker_coef = whisker_coef

    def calculate_all(self, sample_ids: Optional[List[str]] = None) -> Dict[str, pd.DataFrame]:
        """
        Compute every summary table.

        Args:
            sample_ids: Optional list of sample IDs to analyze

        Returns:
            Dictionary of summary DataFrames keyed by table name
        """
        reads = select_samples(self.reads, sample_ids)
        return {
            "alignment_rate": alignment_rate_summary(reads),
            "read_length": read_length_summary(reads),
            "read_length_histogram": read_length_histogram(reads),
            "aligned_fraction": aligned_fraction_summary(reads),
            "error_rate": error_rate_summary(reads),
            "distribution": distribution_summary(reads, whisker_coef=self.whisker_coef),
            "binned_error_rate": binned_error_summary(reads, width=self.length_bin_width,
                                                      whisker_coef=self.whisker_coef),
            "composition": composition_summary(reads),
        }

    def calculate_overview(self, sample_ids: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Headline numbers per mapper across the selected samples.

        Returns:
            Dictionary with total reads and aligned fraction per mapper
        """
        reads = select_samples(self.reads, sample_ids)
        overview: Dict[str, Any] = {
            "total_reads": int(len(reads)),
            "samples": [str(s) for s in reads["sample"].cat.categories],
            "mappers": {},
        }
        for mapper, group in reads.groupby("mapper", observed=True):
            aligned = int((group["isAligned"] == ALIGNED_LEVELS[1]).sum())
            overview["mappers"][str(mapper)] = {
                "reads": int(len(group)),
                "aligned_reads": aligned,
                "aligned_fraction": aligned / len(group) if len(group) else 0.0,
                "median_read_length": float(group["readLength"].median()),
            }
        return overview

    def export_results(self, output_path: Path, sample_ids: Optional[List[str]] = None) -> List[Path]:
        """
        Export summary tables to CSV and the overview to JSON.

        Args:
            output_path: Directory to save results
            sample_ids: Optional list of sample IDs to export

        Returns:
            Paths of the written files
        """
        output_path = Path(output_path)
        output_path.mkdir(parents=True, exist_ok=True)

        written = []
        for name, table in self.calculate_all(sample_ids).items():
            path = output_path / f"{name}.csv"
            table.to_csv(path, index=False, na_rep="NA")
            written.append(path)

        overview_path = output_path / "summary.json"
        with open(overview_path, "w", encoding="utf-8") as f:
            json.dump(self.calculate_overview(sample_ids), f, indent=2, default=str)
        written.append(overview_path)

        logger.info("Read statistics summaries exported to %s", output_path)
        return written

"""
Per-read statistics loading and merging.

This module reads the per-read alignment statistics files written for every
(mapper, sample) pair, validates them against the fixed read record schema and
concatenates them into one table tagged with mapper, sample and aligned status.
Absent values (unaligned reads, mappers without mismatch annotation) are kept
as NaN and never turned into zeros.
"""

from concurrent.futures import ThreadPoolExecutor
from itertools import islice
from pathlib import Path
from typing import Dict, List, Optional, Union
import csv
import logging
import re

import numpy as np
import pandas as pd
from tqdm import tqdm

from ..base import DataManager
from ...config import ReportConfig, discover_samples
from ...errors import ConfigError, LoadError, ParseError

logger = logging.getLogger(__name__)

LENGTH_COLUMNS = ["readLength", "aliLength"]
ERROR_RATE_FIELDS = ["mmRate", "insRateS", "insRateL", "delRate"]
COMPOSITION_FIELDS = ["aRate", "cRate", "gRate", "tRate", "nRate"]
READ_STATS_COLUMNS = LENGTH_COLUMNS + ["aliPerc"] + ERROR_RATE_FIELDS + COMPOSITION_FIELDS

# Columns that only have a meaning for aligned reads
ALIGNMENT_ONLY_COLUMNS = ["aliPerc"] + ERROR_RATE_FIELDS

ALIGNED_LEVELS = ["unaligned", "aligned"]
ABSENT_TOKENS = frozenset({"", "NA", "NaN", "nan", "N/A", "."})

FILE_ENCODING = "utf-8-sig"


def _first_line(mask: pd.Series) -> int:
    """Source line of the first flagged row; frames are indexed by line number."""
    return int(mask[mask].index[0])


def _parse_column(tokens: pd.Series, column: str, path: Path) -> pd.Series:
    """Convert one column of raw tokens to floats, keeping absent tokens as NaN."""
    tokens = tokens.str.strip()
    absent = tokens.isin(ABSENT_TOKENS)
    values = pd.to_numeric(tokens.where(~absent), errors="coerce")

    bad = values.isna() & ~absent
    if bad.any():
        value = tokens[bad].iloc[0]
        raise ParseError(f"Non-numeric value {value!r} in column {column}", path=path,
                         line=_first_line(bad))

    infinite = pd.Series(np.isinf(values.to_numpy()), index=values.index)
    if infinite.any():
        raise ParseError(f"Non-finite value in column {column}", path=path,
                         line=_first_line(infinite))

    return values.astype("float64")


def _field_counts(path: Path, n_rows: int) -> pd.Series:
    """Fields on each of the first n_rows data lines, 0 for blank lines, indexed by line."""
    with path.open(encoding=FILE_ENCODING) as handle:
        lines = [line.rstrip("\r\n") for line in islice(handle, 1, n_rows + 1)]
    counts = [line.count("\t") + 1 if line else 0 for line in lines]
    return pd.Series(counts, index=range(2, len(counts) + 2))


def _read_rows(path: Path, max_rows: int) -> pd.DataFrame:
    """
    Read the header and at most max_rows data rows as an all-string frame.

    The frame is indexed by the 1-based source line of each row. Blank lines
    are dropped; any other row must have as many fields as the header.
    """
    try:
        raw = pd.read_csv(
            path, sep="\t", dtype=str, keep_default_na=False, na_filter=False,
            index_col=False, nrows=max_rows, skip_blank_lines=False, quoting=csv.QUOTE_NONE,
            encoding=FILE_ENCODING,
        )
    except pd.errors.EmptyDataError as e:
        raise LoadError("File is empty", path=path) from e
    except pd.errors.ParserError as e:
        match = re.search(r"line (\d+)", str(e))
        raise ParseError(f"Malformed row: {str(e).strip()}", path=path,
                         line=int(match.group(1)) if match else None) from e

    raw.columns = [str(c).strip() for c in raw.columns]
    raw.index = raw.index + 2

    # pandas fills missing trailing fields, so short rows are caught from the line itself
    fields = _field_counts(path, len(raw))
    blank = fields == 0
    wrong = ~blank & (fields != len(raw.columns))
    if wrong.any():
        line = _first_line(wrong)
        raise ParseError(f"Expected {len(raw.columns)} columns, found {fields[line]}",
                         path=path, line=line)

    return raw[~blank.to_numpy()]


def read_stats_file(path: Union[str, Path], max_rows: int) -> pd.DataFrame:
    """
    Parse one per-read statistics file.

    Only the first max_rows data rows are read; later rows are ignored without
    being validated. Columns outside the read record schema are dropped.

    Args:
        path: Tab-separated file with a header row
        max_rows: Sampling cap on the number of data rows

    Returns:
        DataFrame with one row per read and the READ_STATS_COLUMNS columns

    Raises:
        LoadError: if the file is missing, unreadable, empty or lacks columns
        ParseError: if a row has the wrong width or an invalid value
    """
    path = Path(path)
    if not path.is_file():
        raise LoadError("Read statistics file not found", path=path)

    try:
        raw = _read_rows(path, max_rows)
    except (OSError, UnicodeDecodeError) as e:
        raise LoadError(f"Could not read file: {e}", path=path) from e

    missing = [c for c in READ_STATS_COLUMNS if c not in raw.columns]
    if missing:
        raise LoadError(f"Missing required columns: {', '.join(missing)}", path=path)
    if raw.empty:
        raise LoadError("File has no data rows", path=path)

    table = pd.DataFrame({
        column: _parse_column(raw[column], column, path)
        for column in READ_STATS_COLUMNS
    })

    for column in LENGTH_COLUMNS:
        values = table[column]
        if values.isna().any():
            raise ParseError(f"Missing value in required column {column}", path=path,
                             line=_first_line(values.isna()))
        invalid = (values < 0) | (values % 1 != 0)
        if invalid.any():
            raise ParseError(f"{column} must be a non-negative integer", path=path,
                             line=_first_line(invalid))
        table[column] = values.astype("int64")

    unaligned = table["aliLength"] == 0
    for column in ALIGNMENT_ONLY_COLUMNS:
        table[column] = table[column].mask(unaligned)

    out_of_range = table["aliPerc"].notna() & ((table["aliPerc"] < 0) | (table["aliPerc"] > 100))
    if out_of_range.any():
        raise ParseError("aliPerc must lie within [0, 100]", path=path,
                         line=_first_line(out_of_range))

    logger.debug("Parsed %d reads from %s", len(table), path)
    return table.reset_index(drop=True)


def aligned_status(ali_length: pd.Series) -> pd.Categorical:
    """Classify reads as 'aligned' (aliLength > 0) or 'unaligned'."""
    labels = np.where(ali_length.to_numpy() > 0, "aligned", "unaligned")
    return pd.Categorical(labels, categories=ALIGNED_LEVELS, ordered=True)


def aligned_reads(reads: pd.DataFrame) -> pd.DataFrame:
    """Rows of the merged table with aliLength > 0."""
    return reads[reads["aliLength"] > 0]


def load_read_stats(config: ReportConfig, mapper: str, sample: str) -> pd.DataFrame:
    """
    Load the statistics file of one (mapper, sample) pair.

    Errors are re-raised with the mapper and sample attached.
    """
    path = config.path_for(mapper, sample)
    try:
        return read_stats_file(path, config.max_rows_per_file)
    except LoadError as e:
        e.with_context(mapper=mapper, sample=sample)
        raise


def merge_read_stats(config: ReportConfig, progress: bool = False) -> pd.DataFrame:
    """
    Load and concatenate every (mapper, sample) file of the configuration.

    Files are concatenated mapper-major in the configured order, also when they
    are loaded in parallel. A single failing file aborts the whole merge.

    Args:
        config: Report configuration with mappers and samples
        progress: Show a progress bar while loading

    Returns:
        Merged table with ordered categorical mapper, sample and isAligned columns

    Raises:
        ConfigError: if there is nothing to load
        LoadError: propagated from the first failing file
    """
    pairs = config.pairs()
    if not pairs:
        raise ConfigError("No (mapper, sample) pairs configured")

    def load(pair):
        return load_read_stats(config, *pair)

    bar = dict(total=len(pairs), desc="Loading read statistics", unit="file", disable=not progress)
    if config.workers > 1:
        with ThreadPoolExecutor(max_workers=config.workers) as executor:
            # map() yields in submission order regardless of completion order
            tables = list(tqdm(executor.map(load, pairs), **bar))
    else:
        tables = [load(pair) for pair in tqdm(pairs, **bar)]

    frames = [
        table.assign(mapper=mapper, sample=sample)
        for (mapper, sample), table in zip(pairs, tables)
    ]
    merged = pd.concat(frames, ignore_index=True)
    merged["mapper"] = pd.Categorical(merged["mapper"], categories=config.mappers, ordered=True)
    merged["sample"] = pd.Categorical(merged["sample"], categories=config.samples, ordered=True)
    merged["isAligned"] = aligned_status(merged["aliLength"])

    logger.info("Merged %d reads from %d files (%d mappers x %d samples)",
                len(merged), len(pairs), len(config.mappers), len(config.samples))
    return merged


def select_samples(reads: pd.DataFrame, sample_ids: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Restrict a table to the given samples, keeping the configured order.

    Unused sample categories are dropped so grouped outputs only cover the
    selection.

    Raises:
        ConfigError: if a sample ID is not present in the table
    """
    if not sample_ids:
        return reads
    sample_ids = [str(s) for s in sample_ids]
    if isinstance(reads["sample"].dtype, pd.CategoricalDtype):
        known = [str(s) for s in reads["sample"].cat.categories]
    else:
        known = [str(s) for s in reads["sample"].unique()]
    unknown = [s for s in sample_ids if s not in known]
    if unknown:
        raise ConfigError(f"Unknown samples: {', '.join(unknown)} (available: {', '.join(known)})")

    selected = reads[reads["sample"].isin(sample_ids)].copy()
    if isinstance(selected["sample"].dtype, pd.CategoricalDtype):
        selected["sample"] = selected["sample"].cat.remove_unused_categories()
    return selected


class ReadStatsDataManager(DataManager):
    """Data manager for the per-read statistics files of one report run."""

    def __init__(self, config: ReportConfig, progress: bool = False):
        super().__init__(config.data_dir)
        self.config = config
        self.progress = progress

    def load_data(self) -> Dict[str, pd.DataFrame]:
        """
        Load and merge all configured files.

        Returns:
            Dictionary with the merged table under 'reads' and the
            aligned subset under 'aligned'
        """
        data = self.get_from_cache("data")
        if data is None:
            reads = merge_read_stats(self.config, progress=self.progress)
            data = {"reads": reads, "aligned": aligned_reads(reads)}
            self.set_cache("data", data)
        return data

    def get_available_samples(self) -> List[str]:
        """Configured samples, or those discovered for the first mapper."""
        if self.config.samples:
            return list(self.config.samples)
        return discover_samples(self.data_path, self.config.naming_pattern, self.config.mappers[0])

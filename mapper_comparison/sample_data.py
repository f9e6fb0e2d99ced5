"""
Example data generator for the mapper comparison report.

Creates per-read statistics files in the expected format for every
(mapper, sample) pair so the report can be tried without real alignments.
"""

from pathlib import Path
from typing import List, Optional, Sequence
import logging

import numpy as np
import pandas as pd

from .config import ReportConfig
from .modules.read_stats.data import COMPOSITION_FIELDS, ERROR_RATE_FIELDS, READ_STATS_COLUMNS

logger = logging.getLogger(__name__)

# Probability that a read aligns, per mapper; others use DEFAULT_ALIGN_PROBABILITY
ALIGN_PROBABILITY = {"ngmlr": 0.93, "bwamem": 0.88, "minialign": 0.9, "blasr": 0.85}
DEFAULT_ALIGN_PROBABILITY = 0.9

# Mappers whose output lacks mismatch annotation
NO_MISMATCH_MAPPERS = ("minialign",)


def simulate_reads(n_reads: int, rng: np.random.Generator, align_probability: float = DEFAULT_ALIGN_PROBABILITY,
                   with_mismatches: bool = True) -> pd.DataFrame:
    """
    Simulate per-read alignment statistics.

    Read lengths are log-normal around 8 kb. Unaligned reads get an aligned
    length of 0 and no alignment columns.

    Args:
        n_reads: Number of reads
        rng: Random generator
        align_probability: Chance that a read aligns
        with_mismatches: Whether mmRate values are emitted

    Returns:
        DataFrame with READ_STATS_COLUMNS, absent values as NaN
    """
    read_length = np.maximum(rng.lognormal(mean=np.log(8000), sigma=0.6, size=n_reads).astype("int64"), 50)
    aligned = rng.random(n_reads) < align_probability
    ali_perc = np.where(aligned, np.clip(rng.beta(8, 1.5, size=n_reads) * 100, 1, 100), np.nan)
    ali_length = np.where(aligned, np.maximum((read_length * ali_perc / 100).round(), 1), 0).astype("int64")

    rates = {
        "mmRate": rng.gamma(2.0, 0.01, size=n_reads),
        "insRateS": rng.gamma(2.0, 0.03, size=n_reads),
        "insRateL": rng.gamma(0.5, 0.002, size=n_reads),
        "delRate": rng.gamma(2.0, 0.015, size=n_reads),
    }
    if not with_mismatches:
        rates["mmRate"] = np.full(n_reads, np.nan)

    composition = rng.dirichlet([30, 20, 20, 30, 0.05], size=n_reads)

    frame = pd.DataFrame({"readLength": read_length, "aliLength": ali_length, "aliPerc": ali_perc})
    for field_name in ERROR_RATE_FIELDS:
        frame[field_name] = np.where(aligned, rates[field_name], np.nan)
    for i, field_name in enumerate(COMPOSITION_FIELDS):
        frame[field_name] = composition[:, i]
    return frame[READ_STATS_COLUMNS]


def create_sample_data(config: ReportConfig, reads_per_file: int = 2000, seed: Optional[int] = 0,
                       no_mismatch_mappers: Sequence[str] = NO_MISMATCH_MAPPERS) -> List[Path]:
    """
    Write one simulated statistics file per (mapper, sample) of the configuration.

    Args:
        config: Configuration providing data_dir, mappers, samples and naming pattern
        reads_per_file: Number of reads per file
        seed: Random seed, for reproducible output
        no_mismatch_mappers: Mappers written without mmRate values

    Returns:
        Paths of the created files
    """
    config.data_dir.mkdir(parents=True, exist_ok=True)
    rng = np.random.default_rng(seed)

    created = []
    for mapper, sample in config.pairs():
        reads = simulate_reads(
            reads_per_file,
            rng,
            align_probability=ALIGN_PROBABILITY.get(mapper, DEFAULT_ALIGN_PROBABILITY),
            with_mismatches=mapper not in no_mismatch_mappers,
        )
        path = config.path_for(mapper, sample)
        write_read_stats(reads, path)
        created.append(path)
        logger.debug("Wrote %d simulated reads to %s", len(reads), path)

    logger.info("Generated %d read statistics files in %s", len(created), config.data_dir)
    return created


def write_read_stats(reads: pd.DataFrame, path: Path) -> Path:
    """Write a per-read table in the tab-separated input format, absent values as NA."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    reads.to_csv(path, sep="\t", index=False, na_rep="NA")
    return path

"""
Shared fixtures for the mapper comparison tests.
"""

from pathlib import Path
from typing import Dict, List, Sequence

import pandas as pd
import pytest

from mapper_comparison.config import ReportConfig
from mapper_comparison.modules.read_stats.data import READ_STATS_COLUMNS
from mapper_comparison.sample_data import create_sample_data, write_read_stats


def make_config(data_dir: Path, mappers: Sequence[str], samples: Sequence[str], **kwargs) -> ReportConfig:
    return ReportConfig(data_dir=data_dir, mappers=list(mappers), samples=list(samples), **kwargs).validate()


def records_to_frame(records: Sequence[Dict[str, object]]) -> pd.DataFrame:
    """Build a per-read table from row dictionaries; missing fields become NaN."""
    return pd.DataFrame(list(records)).reindex(columns=READ_STATS_COLUMNS)


def write_records(config: ReportConfig, mapper: str, sample: str, records: List[Dict[str, object]]) -> Path:
    return write_read_stats(records_to_frame(records), config.path_for(mapper, sample))


def read(length: int, ali_length: int, ali_perc=None, mm=0.01, ins_s=0.02, ins_l=0.001, dele=0.015) -> Dict[str, object]:
    """One per-read row; alignment columns are left absent for unaligned reads."""
    row = {"readLength": length, "aliLength": ali_length,
           "aRate": 0.3, "cRate": 0.2, "gRate": 0.2, "tRate": 0.3, "nRate": 0.0}
    if ali_length > 0:
        row.update({"aliPerc": ali_perc if ali_perc is not None else 100.0 * ali_length / length,
                    "mmRate": mm, "insRateS": ins_s, "insRateL": ins_l, "delRate": dele})
    return row


@pytest.fixture
def example_config(tmp_path):
    """ngmlr / 13_1450 with aliLength [0, 150, 300] and readLength [200, 500, 7500]."""
    config = make_config(tmp_path, ["ngmlr"], ["13_1450"])
    write_records(config, "ngmlr", "13_1450", [
        read(200, 0),
        read(500, 150),
        read(7500, 300),
    ])
    return config


@pytest.fixture
def simulated_config(tmp_path):
    """Two mappers x two samples of simulated reads; minialign lacks mismatch rates."""
    config = make_config(tmp_path / "data", ["ngmlr", "minialign"], ["13_1450", "13_1451"],
                         output_dir=tmp_path / "report")
    create_sample_data(config, reads_per_file=300, seed=7)
    return config

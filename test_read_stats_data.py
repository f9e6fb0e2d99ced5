"""
Tests for loading and merging the per-read statistics files.
"""

import numpy as np
import pandas as pd
import pytest

from conftest import make_config, read, write_records
from mapper_comparison.errors import ConfigError, LoadError, ParseError
from mapper_comparison.modules.read_stats.data import (
    READ_STATS_COLUMNS,
    ReadStatsDataManager,
    aligned_reads,
    load_read_stats,
    merge_read_stats,
    read_stats_file,
    select_samples,
)

HEADER = "\t".join(READ_STATS_COLUMNS)


def write_text(path, lines):
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def test_example_file_alignment_status(example_config):
    merged = merge_read_stats(example_config)

    assert list(merged["isAligned"].astype(str)) == ["unaligned", "aligned", "aligned"]
    assert list(merged["readLength"]) == [200, 500, 7500]
    assert list(merged["aliLength"]) == [0, 150, 300]
    assert set(merged["mapper"].astype(str)) == {"ngmlr"}
    assert set(merged["sample"].astype(str)) == {"13_1450"}


def test_aligned_status_matches_aligned_length(simulated_config):
    merged = merge_read_stats(simulated_config)

    aligned = merged["isAligned"].astype(str) == "aligned"
    assert (aligned == (merged["aliLength"] > 0)).all()
    assert len(aligned_reads(merged)) == int(aligned.sum())


def test_unaligned_reads_have_absent_alignment_columns(tmp_path):
    path = write_text(tmp_path / "reads.txt", [
        HEADER,
        "\t".join(["1200", "0", "0", "0", "0", "0", "0", "0.3", "0.2", "0.2", "0.3", "0"]),
        "\t".join(["1500", "1400", "93.3", "0.01", "0.02", "0.0", "0.01", "0.3", "0.2", "0.2", "0.3", "0"]),
    ])

    table = read_stats_file(path, max_rows=10)

    for column in ["aliPerc", "mmRate", "insRateS", "insRateL", "delRate"]:
        assert np.isnan(table.loc[0, column])
    assert table.loc[1, "mmRate"] == pytest.approx(0.01)
    assert table.loc[1, "insRateL"] == 0.0


def test_absent_mismatch_rate_is_not_zero(tmp_path):
    path = write_text(tmp_path / "reads.txt", [
        HEADER,
        "\t".join(["1500", "1400", "93.3", "NA", "0.02", "0.0", "0.01", "0.3", "0.2", "0.2", "0.3", "0"]),
        "\t".join(["1800", "1700", "94.4", "", "0.02", "0.0", "0.01", "0.3", "0.2", "0.2", "0.3", "0"]),
    ])

    table = read_stats_file(path, max_rows=10)

    assert table["mmRate"].isna().all()
    assert table["delRate"].notna().all()


def test_max_rows_truncates_in_order(tmp_path):
    config = make_config(tmp_path, ["ngmlr"], ["13_1450"], max_rows_per_file=4)
    write_records(config, "ngmlr", "13_1450", [read(1000 + i, 900 + i) for i in range(10)])

    table = load_read_stats(config, "ngmlr", "13_1450")

    assert len(table) == 4
    assert list(table["readLength"]) == [1000, 1001, 1002, 1003]


def test_rows_beyond_cap_are_not_validated(tmp_path):
    good = "\t".join(["1500", "1400", "93.3", "0.01", "0.02", "0.0", "0.01", "0.3", "0.2", "0.2", "0.3", "0"])
    path = write_text(tmp_path / "reads.txt", [HEADER, good, good, "not\ta\tvalid\trow"])

    table = read_stats_file(path, max_rows=2)

    assert len(table) == 2


def test_loading_twice_is_identical(example_config):
    first = load_read_stats(example_config, "ngmlr", "13_1450")
    second = load_read_stats(example_config, "ngmlr", "13_1450")

    pd.testing.assert_frame_equal(first, second)


def test_missing_file_raises_load_error(tmp_path):
    config = make_config(tmp_path, ["ngmlr"], ["13_1450"])

    with pytest.raises(LoadError) as excinfo:
        load_read_stats(config, "ngmlr", "13_1450")

    assert excinfo.value.mapper == "ngmlr"
    assert excinfo.value.sample == "13_1450"
    assert excinfo.value.path == config.path_for("ngmlr", "13_1450")
    assert "ngmlr" in str(excinfo.value)


def test_merge_is_all_or_nothing(tmp_path):
    config = make_config(tmp_path, ["ngmlr", "minialign"], ["13_1450"])
    write_records(config, "ngmlr", "13_1450", [read(500, 150)])

    with pytest.raises(LoadError) as excinfo:
        merge_read_stats(config)

    assert excinfo.value.mapper == "minialign"


def test_non_numeric_value_reports_line(tmp_path):
    good = "\t".join(["1500", "1400", "93.3", "0.01", "0.02", "0.0", "0.01", "0.3", "0.2", "0.2", "0.3", "0"])
    bad = "\t".join(["1500", "1400", "93.3", "high", "0.02", "0.0", "0.01", "0.3", "0.2", "0.2", "0.3", "0"])
    path = write_text(tmp_path / "reads.txt", [HEADER, good, bad])

    with pytest.raises(ParseError) as excinfo:
        read_stats_file(path, max_rows=10)

    assert excinfo.value.line == 3
    assert "mmRate" in str(excinfo.value)


def test_wrong_column_count_is_parse_error(tmp_path):
    short = "\t".join(["1500", "1400", "93.3"])
    path = write_text(tmp_path / "reads.txt", [HEADER, short])

    with pytest.raises(ParseError) as excinfo:
        read_stats_file(path, max_rows=10)

    assert excinfo.value.line == 2


def test_missing_column_is_load_error(tmp_path):
    columns = [c for c in READ_STATS_COLUMNS if c != "delRate"]
    path = write_text(tmp_path / "reads.txt", ["\t".join(columns), "\t".join(["1"] * len(columns))])

    with pytest.raises(LoadError) as excinfo:
        read_stats_file(path, max_rows=10)

    assert not isinstance(excinfo.value, ParseError)
    assert "delRate" in str(excinfo.value)


@pytest.mark.parametrize("lines", [[], [HEADER]])
def test_empty_file_is_load_error(tmp_path, lines):
    path = tmp_path / "reads.txt"
    path.write_text("\n".join(lines), encoding="utf-8")

    with pytest.raises(LoadError):
        read_stats_file(path, max_rows=10)


def test_invalid_lengths_and_percentages(tmp_path):
    negative = "\t".join(["-5", "0", "NA", "NA", "NA", "NA", "NA", "0.3", "0.2", "0.2", "0.3", "0"])
    with pytest.raises(ParseError):
        read_stats_file(write_text(tmp_path / "a.txt", [HEADER, negative]), max_rows=10)

    over = "\t".join(["1500", "1400", "120", "0.01", "0.02", "0.0", "0.01", "0.3", "0.2", "0.2", "0.3", "0"])
    with pytest.raises(ParseError):
        read_stats_file(write_text(tmp_path / "b.txt", [HEADER, over]), max_rows=10)


def test_extra_columns_are_ignored(tmp_path):
    path = write_text(tmp_path / "reads.txt", [
        HEADER + "\treadName",
        "\t".join(["1500", "1400", "93.3", "0.01", "0.02", "0.0", "0.01", "0.3", "0.2", "0.2", "0.3", "0", "m54/1"]),
    ])

    table = read_stats_file(path, max_rows=10)

    assert list(table.columns) == READ_STATS_COLUMNS


def test_merge_order_follows_configuration(tmp_path):
    config = make_config(tmp_path, ["ngmlr", "bwamem", "blasr"], ["13_1450", "13_1451"])
    for i, (mapper, sample) in enumerate(config.pairs()):
        write_records(config, mapper, sample, [read(1000 + i, 500), read(2000 + i, 0)])

    merged = merge_read_stats(config)

    assert list(merged["mapper"].cat.categories) == ["ngmlr", "bwamem", "blasr"]
    assert list(merged["sample"].cat.categories) == ["13_1450", "13_1451"]
    assert list(merged["readLength"][::2]) == [1000, 1001, 1002, 1003, 1004, 1005]


def test_parallel_merge_matches_sequential(simulated_config):
    sequential = merge_read_stats(simulated_config)
    parallel = merge_read_stats(simulated_config.with_overrides(workers=3))

    pd.testing.assert_frame_equal(sequential, parallel)


def test_select_samples_drops_unused_categories(simulated_config):
    merged = merge_read_stats(simulated_config)

    selected = select_samples(merged, ["13_1451"])

    assert list(selected["sample"].cat.categories) == ["13_1451"]
    assert len(selected) == 600


def test_data_manager_caches_merged_table(simulated_config):
    manager = ReadStatsDataManager(simulated_config)

    first = manager.load_data()
    second = manager.load_data()

    assert first["reads"] is second["reads"]
    assert manager.get_available_samples() == ["13_1450", "13_1451"]


def test_data_manager_requires_existing_directory(tmp_path):
    config = make_config(tmp_path / "missing", ["ngmlr"], ["13_1450"])

    with pytest.raises(LoadError):
        ReadStatsDataManager(config)


@pytest.mark.parametrize("extra_at", [0, 1])
def test_row_with_too_many_fields_reports_line(tmp_path, extra_at):
    good = "\t".join(["1500", "1400", "93.3", "0.01", "0.02", "0.0", "0.01", "0.3", "0.2", "0.2", "0.3", "0"])
    rows = [good, good]
    rows[extra_at] = good + "\textra"
    path = write_text(tmp_path / "reads.txt", [HEADER] + rows)

    with pytest.raises(ParseError) as excinfo:
        read_stats_file(path, max_rows=10)

    assert excinfo.value.line == extra_at + 2


def test_blank_lines_are_skipped_and_lines_still_counted(tmp_path):
    good = "\t".join(["1500", "1400", "93.3", "0.01", "0.02", "0.0", "0.01", "0.3", "0.2", "0.2", "0.3", "0"])
    bad = "\t".join(["1500", "1400", "93.3", "x", "0.02", "0.0", "0.01", "0.3", "0.2", "0.2", "0.3", "0"])

    table = read_stats_file(write_text(tmp_path / "a.txt", [HEADER, good, "", good]), max_rows=10)
    assert len(table) == 2
    assert list(table.index) == [0, 1]

    with pytest.raises(ParseError) as excinfo:
        read_stats_file(write_text(tmp_path / "b.txt", [HEADER, good, "", bad]), max_rows=10)
    assert excinfo.value.line == 4


def test_byte_order_mark_is_ignored(tmp_path):
    good = "\t".join(["1500", "1400", "93.3", "0.01", "0.02", "0.0", "0.01", "0.3", "0.2", "0.2", "0.3", "0"])
    path = tmp_path / "reads.txt"
    path.write_text("\ufeff" + HEADER + "\n" + good + "\n", encoding="utf-8")

    table = read_stats_file(path, max_rows=10)

    assert list(table["readLength"]) == [1500]


def test_select_unknown_sample_is_rejected(simulated_config):
    merged = merge_read_stats(simulated_config)

    with pytest.raises(ConfigError) as excinfo:
        select_samples(merged, ["13_1451", "13_9999"])

    assert "13_9999" in str(excinfo.value)

"""
Tests for the read statistics summaries.
"""

import json
import warnings

import numpy as np
import pandas as pd
import pytest

from conftest import make_config, read, write_records
from mapper_comparison.errors import EmptyGroupWarning
from mapper_comparison.modules.read_stats.data import merge_read_stats
from mapper_comparison.modules.read_stats.summary_stats import (
    ReadStatsSummaryStats,
    alignment_rate_summary,
    binned_error_summary,
    box_statistics,
    composition_summary,
    distribution_summary,
    error_rate_summary,
    length_bins,
    n50,
    read_length_summary,
)


def test_example_alignment_rate(example_config):
    summary = alignment_rate_summary(merge_read_stats(example_config))

    aligned = summary[summary["isAligned"].astype(str) == "aligned"].iloc[0]
    unaligned = summary[summary["isAligned"].astype(str) == "unaligned"].iloc[0]
    assert aligned["count"] == 2
    assert aligned["fraction"] == pytest.approx(2 / 3)
    assert unaligned["fraction"] == pytest.approx(1 / 3)


def test_alignment_fractions_sum_to_one(simulated_config):
    summary = alignment_rate_summary(merge_read_stats(simulated_config))

    totals = summary.groupby(["sample", "mapper"], observed=True)["fraction"].sum()
    assert len(totals) == 4
    assert np.allclose(totals.to_numpy(), 1.0, atol=1e-9)


def test_alignment_rate_keeps_empty_status(tmp_path):
    config = make_config(tmp_path, ["ngmlr"], ["13_1450"])
    write_records(config, "ngmlr", "13_1450", [read(500, 400), read(900, 800)])

    summary = alignment_rate_summary(merge_read_stats(config))

    assert list(summary["isAligned"].astype(str)) == ["unaligned", "aligned"]
    assert list(summary["count"]) == [0, 2]
    assert list(summary["fraction"]) == [0.0, 1.0]


def test_example_length_bins(example_config):
    merged = merge_read_stats(example_config)
    aligned = merged[merged["aliLength"] > 0]

    assert list(length_bins(aligned["readLength"])) == [0, 4]


def test_length_bins_use_four_kb_windows():
    lengths = pd.Series([0, 3999, 4000, 7999, 8000, 25000])

    assert list(length_bins(lengths)) == [0, 0, 4, 4, 8, 24]
    assert list(length_bins(lengths, width=2000)) == [0, 2, 4, 6, 8, 24]


def test_box_statistics_suppresses_outliers():
    stats = box_statistics([1, 2, 3, 4, 100])

    assert stats["q1"] == 2
    assert stats["median"] == 3
    assert stats["q3"] == 4
    assert stats["lower_whisker"] == 1
    assert stats["upper_whisker"] == 4
    assert stats["max"] == 100
    assert stats["n_outliers"] == 1
    assert stats["n"] == 5


def test_box_statistics_single_value():
    stats = box_statistics([0.02])

    assert stats["lower_whisker"] == stats["median"] == stats["upper_whisker"] == 0.02
    assert stats["n_outliers"] == 0


def test_n50():
    assert n50([2, 3, 4, 5, 6]) == 5
    assert n50([10000]) == 10000
    assert n50([]) == 0


def test_binned_summary_groups_by_sample_mapper_and_bin(example_config):
    summary = binned_error_summary(merge_read_stats(example_config))

    assert set(summary["field"].astype(str)) == {"mmRate", "insRateS", "insRateL", "delRate"}
    assert sorted(set(summary["lengthBin"])) == [0, 4]
    assert (summary["n"] == 1).all()
    mm = summary[summary["field"].astype(str) == "mmRate"]
    assert list(mm["median"]) == [pytest.approx(0.01), pytest.approx(0.01)]


def test_binned_summary_omits_all_absent_cells(tmp_path):
    config = make_config(tmp_path, ["ngmlr", "minialign"], ["13_1450"])
    write_records(config, "ngmlr", "13_1450", [read(500, 450, mm=0.02), read(5000, 4500, mm=0.03)])
    write_records(config, "minialign", "13_1450", [read(600, 550, mm=None), read(5200, 5000, mm=None)])
    merged = merge_read_stats(config)

    with pytest.warns(EmptyGroupWarning):
        summary = binned_error_summary(merged)

    mm = summary[summary["field"].astype(str) == "mmRate"]
    assert set(mm["mapper"].astype(str)) == {"ngmlr"}
    assert not (mm["median"] == 0).any()
    minialign = summary[summary["mapper"].astype(str) == "minialign"]
    assert set(minialign["field"].astype(str)) == {"insRateS", "insRateL", "delRate"}


def test_binned_summary_is_per_sample(tmp_path):
    config = make_config(tmp_path, ["ngmlr"], ["13_1450", "13_1451"])
    write_records(config, "ngmlr", "13_1450", [read(1000, 900, mm=0.01)])
    write_records(config, "ngmlr", "13_1451", [read(1000, 900, mm=0.05)])

    summary = binned_error_summary(merge_read_stats(config), fields=["mmRate"])

    medians = dict(zip(summary["sample"].astype(str), summary["median"]))
    assert medians == {"13_1450": pytest.approx(0.01), "13_1451": pytest.approx(0.05)}


def test_binned_summary_ignores_unaligned_reads(example_config):
    summary = binned_error_summary(merge_read_stats(example_config))

    assert summary["n"].sum() == 2 * 4


def test_error_rate_summary_counts_absent_values(tmp_path):
    config = make_config(tmp_path, ["ngmlr", "minialign"], ["13_1450"])
    write_records(config, "ngmlr", "13_1450", [read(500, 450, mm=0.02), read(800, 700, mm=None)])
    write_records(config, "minialign", "13_1450", [read(600, 550, mm=None)])

    with pytest.warns(EmptyGroupWarning):
        summary = error_rate_summary(merge_read_stats(config))

    mm = summary[summary["field"].astype(str) == "mmRate"]
    assert len(mm) == 1
    row = mm.iloc[0]
    assert str(row["mapper"]) == "ngmlr"
    assert row["n"] == 1
    assert row["n_absent"] == 1
    assert row["mean"] == pytest.approx(0.02)


def test_distribution_summary_without_absent_fields_does_not_warn(example_config):
    merged = merge_read_stats(example_config)

    with warnings.catch_warnings():
        warnings.simplefilter("error", EmptyGroupWarning)
        summary = distribution_summary(merged)

    ali = summary[summary["field"].astype(str) == "aliPerc"].iloc[0]
    assert ali["n"] == 2
    assert ali["median"] == pytest.approx(17.0)


def test_read_length_and_composition_summaries(example_config):
    merged = merge_read_stats(example_config)

    lengths = read_length_summary(merged)
    aligned = lengths[lengths["isAligned"].astype(str) == "aligned"].iloc[0]
    assert aligned["count"] == 2
    assert aligned["total_bases"] == 8000
    assert aligned["n50"] == 7500

    composition = composition_summary(merged)
    assert composition.loc[0, "aRate"] == pytest.approx(0.3)


def test_summaries_leave_merged_table_untouched(simulated_config):
    merged = merge_read_stats(simulated_config)
    before = merged.copy()

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", EmptyGroupWarning)
        ReadStatsSummaryStats(merged).calculate_all()

    pd.testing.assert_frame_equal(merged, before)


def test_export_results(simulated_config, tmp_path):
    stats = ReadStatsSummaryStats(merge_read_stats(simulated_config))

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", EmptyGroupWarning)
        written = stats.export_results(tmp_path / "tables", sample_ids=["13_1450"])

    names = {p.name for p in written}
    assert {"alignment_rate.csv", "binned_error_rate.csv", "summary.json"} <= names
    overview = json.loads((tmp_path / "tables" / "summary.json").read_text())
    assert overview["samples"] == ["13_1450"]
    assert overview["total_reads"] == 600
    assert set(overview["mappers"]) == {"ngmlr", "minialign"}

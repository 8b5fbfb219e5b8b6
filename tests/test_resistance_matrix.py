"""
Aggregation-layer tests for the organism × antibiotic heatmap.

Rows are built in memory the way the proxy returns them: one dict per
specimen, zone readings as numbers, numeric strings or blanks.
"""

import pandas as pd
import pytest

from amr_dashboard.features.resistance_matrix import (
    STATUS_EXCLUDED,
    STATUS_INSUFFICIENT,
    STATUS_OK,
    calculate_heatmap_data,
    calculate_heatmap_frame,
    resistance_alert_color,
    round_half_up,
)


def _rows(organism, antibiotic, zones, **extra):
    return [{"ORGANISM": organism, antibiotic: z, **extra} for z in zones]


def test_ctx_end_to_end_percentage():
    """
    35 E. coli isolates on CTX ND30, 10 at or below 22 mm, report 10/35 -> 29%.
    """
    rows = _rows("eco", "CTX ND30", [22] * 5 + [10] * 5 + [23] * 25)
    cell = calculate_heatmap_data(rows).cell("eco", "CTX ND30")
    assert (cell.resistant, cell.total, cell.percentage) == (10, 35, 29)


def test_below_minimum_sample_is_insufficient():
    """
    20 valid readings must not yield a number, not even 0%.
    """
    rows = _rows("sau", "GEN ND10", [30] * 20)
    cell = calculate_heatmap_data(rows).cell("sau", "GEN ND10")
    assert cell.total == 20
    assert cell.percentage is None
    assert cell.status == STATUS_INSUFFICIENT


def test_exactly_thirty_is_reported():
    rows = _rows("sau", "GEN ND10", [10] * 3 + [30] * 27)
    cell = calculate_heatmap_data(rows).cell("sau", "GEN ND10")
    assert cell.percentage == 10
    assert cell.status == STATUS_OK


def test_unknown_and_empty_organisms_never_count():
    rows = (
        _rows("xxx", "CIP ND5", [5] * 40)
        + _rows("XXX", "CIP ND5", [5] * 40)
        + _rows("", "CIP ND5", [5] * 40)
        + _rows(None, "CIP ND5", [5] * 40)
    )
    matrix = calculate_heatmap_data(rows)
    assert matrix.cells == {}
    assert matrix.total_records == 160


def test_unreadable_readings_count_as_tested():
    """
    A non-empty value that does not parse was still tested: it adds to the
    total but never to the resistant count. Blank and missing cells do not.
    """
    rows = _rows("sau", "GEN ND10", [10] * 30 + ["n/a", "", None, "abc", "<6", float("nan")])
    cell = calculate_heatmap_data(rows).cell("sau", "GEN ND10")
    assert cell.total == 33
    assert cell.resistant == 30
    assert cell.percentage == 91


def test_unreadable_readings_lift_cell_over_minimum():
    rows = _rows("sau", "GEN ND10", [10] * 25 + ["n/a"] * 5)
    cell = calculate_heatmap_data(rows).cell("sau", "GEN ND10")
    assert (cell.resistant, cell.total, cell.percentage) == (25, 30, 83)
    assert cell.status == STATUS_OK


def test_numeric_strings_are_parsed():
    rows = _rows("sau", "GEN ND10", ["15"] * 15 + [" 16 "] * 15)
    cell = calculate_heatmap_data(rows).cell("sau", "GEN ND10")
    assert (cell.resistant, cell.total, cell.percentage) == (15, 30, 50)


def test_organism_codes_are_case_folded():
    rows = _rows("SAU", "GEN ND10", [10] * 15) + _rows(" sau ", "GEN ND10", [30] * 15)
    matrix = calculate_heatmap_data(rows)
    assert matrix.organisms == ["sau"]
    assert matrix.cell("sau", "GEN ND10").total == 30


def test_esbl_pair_is_excluded_from_display():
    """
    Counts are still computed, but no percentage is shown.
    """
    rows = _rows("kpn", "CTX ND30", [10] * 40)
    cell = calculate_heatmap_data(rows).cell("kpn", "CTX ND30")
    assert cell.total == 40
    assert cell.percentage == 100
    assert cell.status == STATUS_EXCLUDED
    assert cell.display_percentage is None
    matrix = calculate_heatmap_data(rows)
    assert matrix.percentages() == {"kpn": {"CTX ND30": None}}
    assert matrix.percentages(include_excluded=True) == {"kpn": {"CTX ND30": 100}}


def test_non_esbl_organism_keeps_beta_lactams():
    rows = _rows("sau", "CTX ND30", [10] * 40)
    cell = calculate_heatmap_data(rows).cell("sau", "CTX ND30")
    assert cell.display_percentage == 100


def test_percentages_stay_in_range_and_order_does_not_matter():
    rows = (
        _rows("eco", "CIP ND5", list(range(0, 40)))
        + _rows("pae", "MEM ND10", list(range(5, 45)))
        + _rows("sau", "VAN ND30", list(range(10, 50)))
    )
    forward = calculate_heatmap_data(rows)
    backward = calculate_heatmap_data(list(reversed(rows)))
    assert forward.percentages() == backward.percentages()
    assert forward.counts() == backward.counts()
    for by_abx in forward.percentages().values():
        for pct in by_abx.values():
            assert pct is None or 0 <= pct <= 100


def test_custom_antibiotic_list():
    rows = [{"ORGANISM": "eco", "CIP ND5": 10, "GEN ND10": 10}] * 30
    matrix = calculate_heatmap_data(rows, antibiotics=["GEN ND10"])
    assert matrix.antibiotics == ["GEN ND10"]
    assert matrix.cell("eco", "CIP ND5") is None


def test_to_frame_long_format():
    rows = _rows("eco", "CIP ND5", [10] * 30) + _rows("sau", "GEN ND10", [30] * 5)
    df = calculate_heatmap_data(rows).to_frame()
    assert list(df["organism"]) == ["eco", "sau"]
    assert df.loc[0, "pct_resistant"] == 100
    assert pd.isna(df.loc[1, "pct_resistant"])
    assert list(df["status"]) == [STATUS_OK, STATUS_INSUFFICIENT]


def test_frame_input_matches_rows():
    df = pd.DataFrame({
        "ORGANISM": ["eco"] * 30 + ["xxx"] * 5,
        "CIP ND5": [10.0] * 20 + [None] * 5 + [30.0] * 10,
    })
    cell = calculate_heatmap_frame(df).cell("eco", "CIP ND5")
    assert (cell.resistant, cell.total) == (20, 25)
    assert cell.percentage is None


def test_write_parquet(tmp_path):
    rows = _rows("eco", "CIP ND5", [10] * 30)
    out = calculate_heatmap_data(rows).write_parquet(tmp_path / "matrix.parquet")
    back = pd.read_parquet(out)
    assert back.loc[0, "n_resistant"] == 30


@pytest.mark.parametrize("value,expected", [(28.5, 29), (28.49, 28), (0.5, 1), (100, 100)])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


def test_alert_colors():
    assert resistance_alert_color(19) == "#16a34a"
    assert resistance_alert_color(20) == "#eab308"
    assert resistance_alert_color(40) == "#dc2626"
    assert resistance_alert_color(None) == "#f3f4f6"

import pandas as pd
import pytest

from amr_dashboard.data.isolate_ingest import load_isolates, to_records, write_parquet

FRAME = pd.DataFrame({
    "ORGANISM": ["eco", "kpn"],
    "CTX ND30": [22, None],
    "SEX": ["Male", "Female"],
})


def test_ingest_csv(tmp_path):
    path = tmp_path / "amr_hh.csv"
    FRAME.to_csv(path, index=False)
    df = load_isolates(path)
    assert df.shape == (2, 3)


def test_ingest_excel_first_sheet(tmp_path):
    path = tmp_path / "amr_hh.xlsx"
    FRAME.to_excel(path, index=False, engine="openpyxl")
    df = load_isolates(path)
    assert list(df.columns) == ["ORGANISM", "CTX ND30", "SEX"]


def test_ingest_parquet_roundtrip(tmp_path):
    out = write_parquet(FRAME, tmp_path / "nested" / "amr_hh.parquet")
    assert load_isolates(out).shape == (2, 3)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_isolates(tmp_path / "nope.csv")


def test_unsupported_format(tmp_path):
    path = tmp_path / "amr_hh.json"
    path.write_text("{}")
    with pytest.raises(ValueError):
        load_isolates(path)


def test_records_replace_missing_with_none():
    records = to_records(FRAME)
    assert records[1]["CTX ND30"] is None
    assert records[0]["CTX ND30"] == 22

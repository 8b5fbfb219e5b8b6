# src/amr_dashboard/data/isolate_ingest.py

from pathlib import Path
import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

READERS = {
    ".xlsx": lambda p: pd.read_excel(p, sheet_name=0, engine="openpyxl", dtype=object),
    ".csv": lambda p: pd.read_csv(p, dtype=object, keep_default_na=False, na_values=[""]),
    ".parquet": pd.read_parquet,
}


def load_isolates(path) -> pd.DataFrame:
    """Read an AMR_HH export (first sheet for Excel) into a DataFrame."""
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(path)
    reader = READERS.get(path.suffix.lower())
    if reader is None:
        raise ValueError(f"Unsupported export format: {path.suffix}")
    return reader(path)


def to_records(df: pd.DataFrame) -> list:
    """DataFrame -> list of row dicts with NaN/NA replaced by None."""
    return df.astype(object).where(df.notna(), None).to_dict("records")


def write_parquet(df: pd.DataFrame, path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    pq.write_table(pa.Table.from_pandas(df, preserve_index=False), path)
    return path


if __name__ == "__main__":
    import sys

    if len(sys.argv) != 2:
        sys.exit("usage: isolate_ingest.py <export.xlsx|csv|parquet>")
    df = load_isolates(sys.argv[1])
    print(f"[+] Rows: {df.shape[0]:,}    Columns: {df.shape[1]}")
    print(df.head(3))

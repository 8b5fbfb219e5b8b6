"""
src/amr_dashboard/cleaning/isolate_clean.py
===========================================

Cleaner for AMR_HH isolate exports (one row per specimen, one column per
antibiotic disk). Normalises organism codes, parses zone diameters and
extracts the distinct values offered by the dashboard's filter controls.
"""

from __future__ import annotations
import re
from typing import Iterable, Mapping
import pandas as pd

from amr_dashboard.config import UNKNOWN_ORGANISM

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
ORGANISM_COL = "ORGANISM"
ZONE_COL_RX = re.compile(r"^[A-Za-z]{3}[\s_]ND\d", re.IGNORECASE)

AGE_CATEGORY_ORDER = [
    "Neonates (<28 days)",
    "Under 5 years",
    "5–14 years",
    "15–24 years",
    "25–34 years",
    "35–44 years",
    "45–54 years",
    "55–64 years",
    "65–74 years",
    "75–84 years",
    "85–94 years",
    "95+ years",
]
_AGE_RANK = {cat: i for i, cat in enumerate(AGE_CATEGORY_ORDER)}

# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------
def is_zone_column(col) -> bool:
    """Disk-diffusion columns look like 'CTX ND30', 'SXT ND1 2' or 'AMP_ND10'."""
    return bool(ZONE_COL_RX.match(str(col).strip()))


def zone_columns(df: pd.DataFrame) -> list[str]:
    return [c for c in df.columns if is_zone_column(c)]


def parse_zones(series: pd.Series) -> pd.Series:
    """Parse zone readings (decimal commas allowed) to float64; junk -> NaN."""
    return pd.to_numeric(
        series.astype(str).str.strip().str.replace(",", ".", regex=False),
        errors="coerce",
    ).astype("float64")


def is_known_organism(organism) -> bool:
    if organism is None or pd.isna(organism):
        return False
    code = str(organism).strip().lower()
    return bool(code) and code != UNKNOWN_ORGANISM


def age_category_key(category: str):
    """Sort key: standard age bands first in their order, the rest alphabetically."""
    rank = _AGE_RANK.get(category)
    return (0, rank, "") if rank is not None else (1, 0, category)


def sort_age_categories(categories: Iterable[str]) -> list[str]:
    return sorted(categories, key=age_category_key)


def distinct_values(rows: Iterable[Mapping], column: str) -> list[str]:
    """Distinct non-empty, trimmed values of *column* for a filter dropdown."""
    values = set()
    for row in rows:
        value = row.get(column)
        if value is None or pd.isna(value):
            continue
        text = str(value).strip()
        if text:
            values.add(text)
    if column.upper() == "AGE_CAT":
        return sort_age_categories(values)
    return sorted(values)


# ---------------------------------------------------------------------------
# Core cleaner
# ---------------------------------------------------------------------------
def clean_isolates(df: pd.DataFrame) -> pd.DataFrame:
    """Return a cleaned copy: known organisms only, lower-case codes, float zones."""
    if ORGANISM_COL not in df.columns:
        raise ValueError(f"Export lacks the {ORGANISM_COL} column")

    out = df.copy()
    out.columns = [str(c).strip() for c in out.columns]

    # 1. Organism codes
    codes = out[ORGANISM_COL].astype("string").str.strip().str.lower()
    known = codes.notna() & (codes != "") & (codes != UNKNOWN_ORGANISM)
    out[ORGANISM_COL] = codes
    out = out[known.fillna(False).astype(bool)]

    # 2. Zone diameters
    zcols = zone_columns(out)
    if not zcols:
        raise ValueError("No zone-diameter columns detected in export")
    for col in zcols:
        out[col] = parse_zones(out[col])

    # 3. Year as nullable integer
    if "YEAR_SPEC" in out.columns:
        out["YEAR_SPEC"] = pd.to_numeric(out["YEAR_SPEC"], errors="coerce").astype("Int64")

    return out.reset_index(drop=True)


if __name__ == "__main__":
    import sys
    from amr_dashboard.config import PROC_DIR
    from amr_dashboard.data.isolate_ingest import load_isolates, write_parquet

    if len(sys.argv) != 2:
        sys.exit("usage: isolate_clean.py <export.xlsx|csv|parquet>")
    raw = load_isolates(sys.argv[1])
    cleaned = clean_isolates(raw)
    out_path = write_parquet(cleaned, PROC_DIR / "amr_hh_clean.parquet")
    print(f"[+] Kept {len(cleaned):,} / {len(raw):,} rows")
    print(f"[✓] Saved → {out_path}")

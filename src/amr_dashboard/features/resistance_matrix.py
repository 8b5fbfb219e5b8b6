"""
Organism × antibiotic resistance matrix for the overview heatmap.

Input  : isolate rows (one mapping per specimen, one key per antibiotic disk)
Output : ResistanceMatrix of (organism, antibiotic) cells with resistant /
         tested counts and a percentage that is None below MIN_ISOLATES
"""

from __future__ import annotations
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from amr_dashboard.config import MIN_ISOLATES
from amr_dashboard.cleaning.isolate_clean import ORGANISM_COL, is_known_organism
from amr_dashboard.data.isolate_ingest import to_records, write_parquet
from amr_dashboard.python.apply_breakpoints import breakpoint_for, has_reading, parse_zone
from amr_dashboard.python.esbl_rules import should_hide_esbl_pair

HEATMAP_ANTIBIOTICS = (
    "AMP ND10", "AMC ND20", "TZP ND100",
    "CTX ND30", "CAZ ND30", "CRO ND30", "FEP ND30", "FOX ND30",
    "IPM ND10", "MEM ND10", "ETP ND10",
    "CIP ND5", "GEN ND10", "AMK ND30",
    "SXT ND1 2", "TCY ND30",
    "OXA ND1", "VAN ND30", "PEN ND10",
)

STATUS_OK = "ok"
STATUS_INSUFFICIENT = "insufficient"
STATUS_EXCLUDED = "excluded"


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def resistance_alert_color(percentage: Optional[float]) -> str:
    if percentage is None:
        return "#f3f4f6"
    if percentage < 20:
        return "#16a34a"   # low
    if percentage < 40:
        return "#eab308"   # moderate
    return "#dc2626"       # high


@dataclass
class ResistanceCell:
    organism: str
    antibiotic: str
    resistant: int = 0
    total: int = 0
    percentage: Optional[int] = None
    excluded: bool = False

    @property
    def status(self) -> str:
        if self.excluded:
            return STATUS_EXCLUDED
        return STATUS_OK if self.percentage is not None else STATUS_INSUFFICIENT

    @property
    def display_percentage(self) -> Optional[int]:
        """Percentage to render; None for excluded and low-sample cells."""
        return None if self.excluded else self.percentage


@dataclass
class ResistanceMatrix:
    organisms: List[str]
    antibiotics: List[str]
    cells: Dict[Tuple[str, str], ResistanceCell]
    total_records: int
    applied_filters: List[Tuple[str, str]] = field(default_factory=list)
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def cell(self, organism: str, antibiotic: str) -> Optional[ResistanceCell]:
        return self.cells.get((organism, antibiotic))

    def percentages(self, include_excluded: bool = False) -> Dict[str, Dict[str, Optional[int]]]:
        """
        organism -> antibiotic -> percentage. ESBL-excluded cells map to
        None unless *include_excluded* asks for the raw value.
        """
        out: Dict[str, Dict[str, Optional[int]]] = {}
        for (org, abx), c in self.cells.items():
            out.setdefault(org, {})[abx] = c.percentage if include_excluded else c.display_percentage
        return out

    def counts(self) -> Dict[str, Dict[str, Dict[str, int]]]:
        out: Dict[str, Dict[str, Dict[str, int]]] = {}
        for (org, abx), c in self.cells.items():
            out.setdefault(org, {})[abx] = {"resistant": c.resistant, "total": c.total}
        return out

    def to_frame(self) -> pd.DataFrame:
        """Long format, one row per cell, sorted by organism then antibiotic."""
        records = [
            {
                "organism": c.organism,
                "antibiotic": c.antibiotic,
                "n_resistant": c.resistant,
                "total_tests": c.total,
                "pct_resistant": c.percentage,
                "status": c.status,
            }
            for c in self.cells.values()
        ]
        df = pd.DataFrame.from_records(
            records,
            columns=["organism", "antibiotic", "n_resistant", "total_tests",
                     "pct_resistant", "status"],
        )
        df["pct_resistant"] = df["pct_resistant"].astype("Int64")
        return df.sort_values(["organism", "antibiotic"]).reset_index(drop=True)

    def write_parquet(self, path):
        return write_parquet(self.to_frame(), path)


# ────────────────────────────────────────────────────────────
# Aggregation
# ────────────────────────────────────────────────────────────
def calculate_heatmap_data(rows: Iterable[Mapping],
                           antibiotics: Iterable[str] = HEATMAP_ANTIBIOTICS,
                           min_isolates: int = MIN_ISOLATES,
                           applied_filters: Optional[List[Tuple[str, str]]] = None,
                           ) -> ResistanceMatrix:
    antibiotics = list(antibiotics)
    breakpoints = {abx: breakpoint_for(abx) for abx in antibiotics}
    tallies: Dict[Tuple[str, str], List[int]] = {}
    n_rows = 0

    # 1. Single pass over the rows
    for row in rows:
        n_rows += 1
        organism = row.get(ORGANISM_COL)
        if not is_known_organism(organism):
            continue
        organism = str(organism).strip().lower()

        for abx in antibiotics:
            value = row.get(abx)
            if not has_reading(value):
                continue
            tally = tallies.setdefault((organism, abx), [0, 0])
            tally[1] += 1
            zone = parse_zone(value)
            if zone is not None and zone <= breakpoints[abx]:
                tally[0] += 1

    # 2. Percentages with minimum-sample suppression, ESBL display exclusion
    cells: Dict[Tuple[str, str], ResistanceCell] = {}
    for (org, abx), (resistant, total) in tallies.items():
        pct = round_half_up(100 * resistant / total) if total >= min_isolates else None
        cells[(org, abx)] = ResistanceCell(
            organism=org,
            antibiotic=abx,
            resistant=resistant,
            total=total,
            percentage=pct,
            excluded=should_hide_esbl_pair(org, abx),
        )

    organisms = sorted({org for org, _ in cells})
    present = {abx for _, abx in cells}
    return ResistanceMatrix(
        organisms=organisms,
        antibiotics=[a for a in antibiotics if a in present],
        cells=cells,
        total_records=n_rows,
        applied_filters=list(applied_filters or []),
    )


def calculate_heatmap_frame(df: pd.DataFrame, **kwargs) -> ResistanceMatrix:
    """DataFrame front-end for calculate_heatmap_data."""
    return calculate_heatmap_data(to_records(df), **kwargs)


# ────────────────────────────────────────────────────────────
# CLI smoke-test
# ────────────────────────────────────────────────────────────
if __name__ == "__main__":
    import sys
    from amr_dashboard.config import PROC_DIR
    from amr_dashboard.data.isolate_ingest import load_isolates

    if len(sys.argv) != 2:
        sys.exit("usage: resistance_matrix.py <export.xlsx|csv|parquet>")
    matrix = calculate_heatmap_frame(load_isolates(sys.argv[1]))
    out_path = matrix.write_parquet(PROC_DIR / "resistance_matrix.parquet")
    print(f"[+] {matrix.total_records:,} rows -> {len(matrix.cells):,} cells")
    print(f"[✓] Saved → {out_path}")

"""
Year-by-year resistance for the priority pathogen–antibiotic combinations.

Input  : isolate rows (ORGANISM, YEAR_SPEC and zone-diameter columns)
Output : one PriorityTrend per combination with yearly points and a
         stable / increasing / decreasing direction
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping

import pandas as pd

from amr_dashboard.config import MIN_ISOLATES, TREND_STABLE_BAND
from amr_dashboard.cleaning.isolate_clean import ORGANISM_COL
from amr_dashboard.python.apply_breakpoints import has_reading, is_resistant

CARBAPENEMS = ("IPM ND10", "MEM ND10")
CEPHALOSPORINS_3G = ("CTX ND30", "CAZ ND30", "CRO ND30")

PRIORITY_COMBOS = {
    "A_BAUMANNII_CARBAPENEMS":        ({"aba", "acinetobacter baumannii"}, CARBAPENEMS),
    "E_COLI_3G_CEPHALOSPORINS":       ({"eco", "escherichia coli"}, CEPHALOSPORINS_3G),
    "E_COLI_CARBAPENEMS":             ({"eco", "escherichia coli"}, CARBAPENEMS),
    "ENTEROCOCCI_VANCOMYCIN":         ({"efa", "efm", "enterococcus faecalis",
                                        "enterococcus faecium"}, ("VAN ND30",)),
    "K_PNEUMONIAE_3G_CEPHALOSPORINS": ({"kpn", "klebsiella pneumoniae"}, CEPHALOSPORINS_3G),
    "K_PNEUMONIAE_AMINOGLYCOSIDES":   ({"kpn", "klebsiella pneumoniae"},
                                       ("GEN ND10", "AMK ND30", "TOB ND10")),
    "K_PNEUMONIAE_CARBAPENEMS":       ({"kpn", "klebsiella pneumoniae"}, CARBAPENEMS),
    "K_PNEUMONIAE_FLUOROQUINOLONES":  ({"kpn", "klebsiella pneumoniae"},
                                       ("CIP ND5", "OFX ND5", "NOR ND10")),
    "P_AERUGINOSA_CARBAPENEMS":       ({"pae", "pseudomonas aeruginosa"}, CARBAPENEMS),
    "S_AUREUS_METHICILLIN":           ({"sau", "staphylococcus aureus"}, ("OXA ND1",)),
    "S_PNEUMONIAE_3G_CEPHALOSPORINS": ({"spn", "streptococcus pneumoniae"},
                                       ("CTX ND30", "CRO ND30")),
    "S_PNEUMONIAE_PENICILLIN":        ({"spn", "streptococcus pneumoniae"}, ("PEN ND10",)),
}


@dataclass
class TrendPoint:
    year: int
    resistant: int
    total: int
    resistance: float

    @property
    def low_sample(self) -> bool:
        return self.total < MIN_ISOLATES


@dataclass
class PriorityTrend:
    formula: str
    points: List[TrendPoint] = field(default_factory=list)
    direction: str = "stable"

    @property
    def current_resistance(self) -> float:
        return self.points[-1].resistance if self.points else 0.0


def trend_direction(values: List[float], band: float = TREND_STABLE_BAND) -> str:
    """Compare first and last value: |change| < band is stable."""
    if len(values) < 2:
        return "stable"
    change = values[-1] - values[0]
    if abs(change) < band:
        return "stable"
    return "increasing" if change > 0 else "decreasing"


def _isolate_calls(rows: Iterable[Mapping], organisms: set, tests) -> pd.DataFrame:
    """
    One record per matching isolate with any reading on the tested agents:
    year, resistant (bool). Unreadable values count as tested, not resistant.
    """
    calls = []
    for row in rows:
        organism = row.get(ORGANISM_COL)
        if organism is None or str(organism).strip().lower() not in organisms:
            continue
        year = pd.to_numeric(row.get("YEAR_SPEC"), errors="coerce")
        if pd.isna(year):
            continue
        tested = [col for col in tests if has_reading(row.get(col))]
        if not tested:
            continue
        resistant = any(is_resistant(row.get(col), col) for col in tested)
        calls.append({"year": int(year), "resistant": resistant})
    return pd.DataFrame(calls, columns=["year", "resistant"])


def combo_trend(rows: Iterable[Mapping], formula: str) -> PriorityTrend:
    organisms, tests = PRIORITY_COMBOS[formula]
    calls = _isolate_calls(rows, organisms, tests)
    if calls.empty:
        return PriorityTrend(formula=formula)

    agg = (calls.groupby("year")["resistant"]
                .agg(total="count", n_resistant="sum")
                .reset_index()
                .sort_values("year"))
    points = [
        TrendPoint(
            year=int(r.year),
            resistant=int(r.n_resistant),
            total=int(r.total),
            resistance=round(100.0 * r.n_resistant / r.total, 1),
        )
        for r in agg.itertuples(index=False)
    ]
    return PriorityTrend(
        formula=formula,
        points=points,
        direction=trend_direction([p.resistance for p in points]),
    )


def priority_trends(rows: Iterable[Mapping]) -> List[PriorityTrend]:
    rows = list(rows)
    return [combo_trend(rows, formula) for formula in PRIORITY_COMBOS]

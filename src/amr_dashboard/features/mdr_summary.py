"""
Multi-drug resistance flags and the overview summary cards.

An isolate is MDR when it is resistant to at least one agent in
MDR_CLASS_THRESHOLD or more antimicrobial classes.
"""

from typing import Iterable, Mapping

import numpy as np
import pandas as pd

from amr_dashboard.config import MDR_CLASS_THRESHOLD
from amr_dashboard.cleaning.isolate_clean import ORGANISM_COL, is_known_organism
from amr_dashboard.python.apply_breakpoints import is_resistant, parse_zone

CLASS_PANELS = {
    "beta_lactam":     ("AMP ND10", "AMC ND20", "CTX ND30", "CAZ ND30", "CRO ND30"),
    "carbapenem":      ("IPM ND10", "MEM ND10"),
    "fluoroquinolone": ("CIP ND5",),
    "aminoglycoside":  ("GEN ND10", "AMK ND30"),
    "tetracycline":    ("TCY ND30",),
    "sulfonamide":     ("SXT ND1 2",),
}

AST_COLUMNS = ("AMP ND10", "AMC ND20", "CTX ND30", "CAZ ND30", "CRO ND30",
               "IPM ND10", "MEM ND10", "CIP ND5", "GEN ND10", "AMK ND30")

INDICATOR_ORGANISMS = frozenset({"eco", "kpn", "pae", "aba", "sau"})


def resistant_classes(row: Mapping) -> set:
    return {
        cls for cls, columns in CLASS_PANELS.items()
        if any(is_resistant(row.get(col), col) for col in columns)
    }


def is_mdr(row: Mapping, threshold: int = MDR_CLASS_THRESHOLD) -> bool:
    return len(resistant_classes(row)) >= threshold


def has_ast(row: Mapping) -> bool:
    return any(parse_zone(row.get(col)) is not None for col in AST_COLUMNS)


def _pct(numerator: int, denominator: int) -> float:
    return round(100.0 * numerator / denominator, 1) if denominator else 0.0


def summary_cards(rows: Iterable[Mapping]) -> dict:
    """
    Headline figures for the overview page.

    cultured_specimens       rows with any organism recorded
    unique_institutions      distinct INSTITUTION values (case-insensitive)
    overall_resistance_pct   % of isolates with AST resistant to >= 1 class
    mdr_bacteria_pct         % of indicator-organism isolates that are MDR
    """
    rows = list(rows)
    organisms = pd.Series([r.get(ORGANISM_COL) for r in rows], dtype=object)
    cultured = organisms.map(lambda o: o is not None and bool(str(o).strip()))
    known = organisms.map(is_known_organism)
    indicator = organisms.map(
        lambda o: o is not None and str(o).strip().lower() in INDICATOR_ORGANISMS
    )

    with_ast = np.array([bool(k) and has_ast(r) for k, r in zip(known, rows)], dtype=bool)
    n_classes = np.array([len(resistant_classes(r)) for r in rows], dtype=int)

    institutions = {
        str(r.get("INSTITUTION")).strip().lower()
        for r in rows
        if r.get("INSTITUTION") is not None and str(r.get("INSTITUTION")).strip()
    }

    ind_mask = indicator.to_numpy(dtype=bool)
    return {
        "cultured_specimens": int(cultured.sum()),
        "unique_institutions": len(institutions),
        "overall_resistance_pct": _pct(int((with_ast & (n_classes > 0)).sum()),
                                       int(with_ast.sum())),
        "mdr_bacteria_pct": _pct(int((ind_mask & (n_classes >= MDR_CLASS_THRESHOLD)).sum()),
                                 int(ind_mask.sum())),
    }

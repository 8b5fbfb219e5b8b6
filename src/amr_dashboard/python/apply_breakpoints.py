#!/usr/bin/env python3
"""
apply_breakpoints.py

Helper functions to apply disk-diffusion zone-diameter breakpoints to
isolate rows and generate resistant / not-resistant calls.

Breakpoints are defined per antibiotic class; extend `CLASS_BY_CODE`
with additional antibiotic codes as needed.
"""

import math
import re
import pandas as pd

# --------------------------------------------------------------------
# Zone-diameter breakpoints (mm)
# Values: largest zone diameter still classified resistant (R ≤ value)
# --------------------------------------------------------------------
ZONE_BREAKPOINTS = {
    "carbapenem":    19,
    "cephalosporin": 22,   # 3rd / 4th generation
    "vancomycin":    17,
    "methicillin":   17,   # oxacillin / methicillin
    "penicillin":    15,
    "default":       15,
}

# Antibiotic code (as it appears before " ND" in the column name) -> class
CLASS_BY_CODE = {
    # Carbapenems
    "IPM": "carbapenem", "MEM": "carbapenem",
    "ETP": "carbapenem", "DOR": "carbapenem",

    # 3rd / 4th generation cephalosporins
    "CTX": "cephalosporin", "CRO": "cephalosporin", "CAZ": "cephalosporin",
    "CFM": "cephalosporin", "CPD": "cephalosporin", "CZX": "cephalosporin",
    "FEP": "cephalosporin",

    # Glycopeptides
    "VAN": "vancomycin",

    # Anti-staphylococcal penicillins
    "OXA": "methicillin", "MET": "methicillin",

    "PEN": "penicillin",
}

# --------------------------------------------------------------------
# Helper functions
# --------------------------------------------------------------------
def base_code(antibiotic: str) -> str:
    """
    Upper-case antibiotic code with the disk suffix removed,
    e.g. 'CTX ND30' -> 'CTX', 'amp_nd10' -> 'AMP'.
    """
    return re.split(r"[\s_]+", str(antibiotic).strip().upper())[0]


def antibiotic_class(antibiotic: str) -> str:
    return CLASS_BY_CODE.get(base_code(antibiotic), "default")


def breakpoint_for(antibiotic: str) -> int:
    return ZONE_BREAKPOINTS[antibiotic_class(antibiotic)]


def has_reading(value) -> bool:
    """
    True when the cell holds anything at all, numeric or not. A tested
    isolate counts toward the denominator even if its value is unreadable.
    """
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return not pd.isna(value)


def parse_zone(value):
    """
    Return the zone diameter as a float, or None for empty / malformed
    readings ('', None, NaN, 'n/a', '<6', ...).
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        zone = float(value)
    else:
        text = str(value).strip().replace(",", ".")
        if not text:
            return None
        try:
            zone = float(text)
        except ValueError:
            return None
    if math.isnan(zone) or math.isinf(zone):
        return None
    return zone


def is_resistant(zone, antibiotic):
    """
    Return True / False, or None when the reading cannot be interpreted.

    Parameters
    ----------
    zone : float or str
        Zone diameter in mm (numeric or numeric string).
    antibiotic : str
        Antibiotic column name or code (any case ok).

    Notes
    -----
    • A reading exactly on the breakpoint is resistant (R ≤ breakpoint).
    """
    zone_val = parse_zone(zone)
    if zone_val is None:
        return None
    return zone_val <= breakpoint_for(antibiotic)


def add_resistance_column(df, zone_col="zone", drug_col="drug",
                          new_col="resistant"):
    """
    Return a copy of long-format *df* with a nullable boolean column of
    resistance calls.
    """
    out = df.copy()
    out[new_col] = pd.array(
        [is_resistant(z, d) for z, d in zip(out[zone_col], out[drug_col])],
        dtype="boolean",
    )
    return out

# --------------------------------------------------------------------
# Demo when run directly
# --------------------------------------------------------------------
if __name__ == "__main__":
    demo = pd.DataFrame({
        "zone": [19, 20, "22", "", "n/a"],
        "drug": ["MEM ND10", "MEM ND10", "CTX ND30", "CTX ND30", "GEN ND10"],
    })
    print(add_resistance_column(demo))

"""
esbl_rules.py

Hide beta-lactam results for organisms where the ESBL phenotype makes
them clinically inappropriate to report. Exclusion affects display only;
the underlying counts are still computed.
"""

from amr_dashboard.python.apply_breakpoints import base_code

ESBL_ORGANISMS = frozenset({"eco", "kpn", "pae", "aba"})

# Penicillins & beta-lactam / beta-lactamase inhibitor combinations
ESBL_EXCLUDED_PENICILLINS = (
    "AMP", "AMX", "PIP", "TIC", "PEN", "PNV",
    "AMC", "SAM", "TIM", "TZP",
)

# Cephalosporins (all generations) and cephamycins
ESBL_EXCLUDED_CEPHALOSPORINS = (
    "CEF", "LEX", "CLO", "FLC",
    "CXM", "FOX", "CTT",
    "CTX", "CRO", "CAZ", "CFM", "CPD", "CDR", "CZX", "CTB", "CDD",
    "FEP",
)

ESBL_EXCLUDED_MONOBACTAMS = ("ATM",)

ESBL_EXCLUDED_ANTIBIOTICS = frozenset(
    ESBL_EXCLUDED_PENICILLINS
    + ESBL_EXCLUDED_CEPHALOSPORINS
    + ESBL_EXCLUDED_MONOBACTAMS
)


def is_esbl_organism(organism) -> bool:
    if not organism:
        return False
    return str(organism).strip().lower() in ESBL_ORGANISMS


def is_esbl_excluded_antibiotic(antibiotic) -> bool:
    """Match either the full code ('CTX') or a column name ('CTX ND30', 'AMP_ND10')."""
    if not antibiotic:
        return False
    full = str(antibiotic).strip().upper()
    return full in ESBL_EXCLUDED_ANTIBIOTICS or base_code(full) in ESBL_EXCLUDED_ANTIBIOTICS


def should_hide_esbl_pair(organism, antibiotic) -> bool:
    return is_esbl_organism(organism) and is_esbl_excluded_antibiotic(antibiotic)


def filter_antibiotics_for_organism(antibiotics, organism) -> list:
    """Drop ESBL-excluded antibiotics for *organism*; other organisms keep the full list."""
    if not is_esbl_organism(organism):
        return list(antibiotics)
    return [a for a in antibiotics if not is_esbl_excluded_antibiotic(a)]

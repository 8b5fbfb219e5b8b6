"""
organism_groups.py

Organism code sets used by the heatmap's organism-type selector.
"""

ORGANISM_GROUPS = {
    "whonet-priority": {
        "label": "WHONET Priority Pathogens",
        "codes": {"sau", "eco", "spn", "kpn", "ent", "efa", "efm"},
    },
    "gram-positive": {
        "label": "Gram-positive",
        "codes": {"sau", "spn", "efm", "efa", "ste", "sho", "sha", "sco",
                  "str", "spg", "sag", "svi", "enc"},
    },
    "gram-negative": {
        "label": "Gram-negative",
        "codes": {"eco", "kpn", "pae", "ab-", "abu", "sal", "stv", "shi",
                  "ent", "cfr", "ser", "pro", "mor", "cit", "har", "yer"},
    },
    "indicator": {
        "label": "Indicator Bacteria",
        "codes": {"sau", "eco", "spn", "kpn", "ent", "efa", "efm"},
    },
}

DEFAULT_GROUP = "whonet-priority"


def filter_organisms_by_group(organisms, group=DEFAULT_GROUP) -> list:
    """
    Keep the organism codes that belong to *group*, preserving input order.
    Unknown group names fall back to the indicator set.
    """
    if not organisms:
        return []
    codes = ORGANISM_GROUPS.get(group, ORGANISM_GROUPS["indicator"])["codes"]
    return [o for o in organisms if str(o).strip().lower() in codes]

"""
active_filters.py
-----------------
One reusable filter state for every dashboard panel.

`ActiveFilters` is an immutable, conjunctive set of exact, case-insensitive
equality predicates. Each operation returns a new instance, so a panel can
hold the current value and compare it against the one its last request
was issued for.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Tuple

import pandas as pd

# ---------------------------------------------------------------------------
# Filter configurations and server allow-lists
# ---------------------------------------------------------------------------
# filter key -> (table column, label)
AMR_FILTERS = {
    "sex":         ("SEX", "Sex"),
    "age_cat":     ("AGE_CAT", "Age Category"),
    "pat_type":    ("PAT_TYPE", "Patient Type"),
    "institution": ("INSTITUTION", "Institution"),
    "department":  ("DEPARTMENT", "Department"),
    "ward_type":   ("WARD_TYPE", "Ward Type"),
    "year_spec":   ("YEAR_SPEC", "Year Specimen"),
    "x_region":    ("X_REGION", "Region"),
}

AMU_FILTERS = {
    "diagnosis":          ("diagnosis", "Diagnosis"),
    "indication":         ("indication", "Indication"),
    "treatment":          ("treatment", "Treatment Approach"),
    "district":           ("district", "District"),
    "year_of_survey":     ("year_of_survey", "Year of Survey"),
    "antimicrobial_name": ("antimicrobial_name", "Antimicrobial Name"),
    "atc5":               ("atc5", "ATC5 Code"),
    "atc4":               ("atc4", "ATC4 Code"),
    "atc3":               ("atc3", "ATC3 Code"),
    "atc2":               ("atc2", "ATC2 Code"),
    "aware":              ("aware", "AWaRe Category"),
    "diagnosis_site":     ("diagnosis_site", "Diagnosis Site"),
}

AMR_HH_COLUMNS = frozenset(col for col, _ in AMR_FILTERS.values()) | {"ORGANISM"}

AMU_HH_COLUMNS = frozenset({
    "activity", "age_cat", "antimicrobial_name", "atc2", "atc3", "atc4", "atc5",
    "aware", "county", "dept_type", "diagnosis", "diagnosis_site", "district",
    "indication", "main_dept", "name", "route", "sex", "sub_dept", "treatment",
    "year_of_survey",
})


class FilterColumnError(ValueError):
    """Raised for a filter column outside the table's allow-list."""


def _norm(value) -> str:
    return str(value).strip().casefold()


@dataclass(frozen=True)
class Filter:
    column: str
    value: str
    label: str

    @property
    def key(self) -> Tuple[str, str]:
        return (_norm(self.column), _norm(self.value))


@dataclass(frozen=True)
class ActiveFilters:
    filters: Tuple[Filter, ...] = ()

    # ---- value-type operations ------------------------------------------
    def add(self, column: str, value, label: Optional[str] = None) -> "ActiveFilters":
        """Append a filter; adding an existing (column, value) pair is a no-op."""
        value = str(value).strip()
        if not column or not value:
            return self
        new = Filter(column, value, label or f"{column}: {value}")
        if any(f.key == new.key for f in self.filters):
            return self
        return ActiveFilters(self.filters + (new,))

    def remove(self, index: int) -> "ActiveFilters":
        if not 0 <= index < len(self.filters):
            raise IndexError(f"no active filter at position {index}")
        return ActiveFilters(self.filters[:index] + self.filters[index + 1:])

    def remove_pair(self, column: str, value) -> "ActiveFilters":
        key = (_norm(column), _norm(value))
        return ActiveFilters(tuple(f for f in self.filters if f.key != key))

    def clear(self) -> "ActiveFilters":
        return ActiveFilters()

    def __len__(self) -> int:
        return len(self.filters)

    def __iter__(self):
        return iter(self.filters)

    def __bool__(self) -> bool:
        return bool(self.filters)

    def cache_key(self) -> frozenset:
        """Order-insensitive identity of the predicate set."""
        return frozenset(f.key for f in self.filters)

    # ---- server-side delegation -----------------------------------------
    def to_query_params(self, column_map: Optional[Mapping[str, tuple]] = None,
                        allowed: Optional[Iterable[str]] = None) -> list:
        """
        Return [(column, value), ...] for a query string.

        *column_map* translates filter keys ('sex') into table columns
        ('SEX'); keys missing from the map are passed through. Columns
        outside *allowed* raise FilterColumnError.
        """
        allowed = set(allowed) if allowed is not None else None
        params = []
        for f in self.filters:
            column = column_map[f.column][0] if column_map and f.column in column_map else f.column
            if allowed is not None and column not in allowed:
                raise FilterColumnError(
                    f"Column '{column}' is not allowed. Allowed columns: {', '.join(sorted(allowed))}"
                )
            params.append((column, f.value))
        return params

    # ---- client-side filtering ------------------------------------------
    def matches(self, row: Mapping, column_map: Optional[Mapping[str, tuple]] = None) -> bool:
        for f in self.filters:
            column = column_map[f.column][0] if column_map and f.column in column_map else f.column
            cell = row.get(column)
            if cell is None or _norm(cell) != _norm(f.value):
                return False
        return True

    def apply(self, rows: Iterable[Mapping],
              column_map: Optional[Mapping[str, tuple]] = None) -> list:
        return [r for r in rows if self.matches(r, column_map)]

    def apply_frame(self, df: pd.DataFrame,
                    column_map: Optional[Mapping[str, tuple]] = None) -> pd.DataFrame:
        mask = pd.Series(True, index=df.index)
        for f in self.filters:
            column = column_map[f.column][0] if column_map and f.column in column_map else f.column
            if column not in df.columns:
                return df.iloc[0:0]
            col = df[column]
            mask &= col.notna() & (col.astype("string").str.strip().str.casefold() == _norm(f.value))
        return df[mask.fillna(False).astype(bool)]

"""
Result schemas for query-proxy responses.

Every payload is parsed once at the boundary into a tagged variant,
`SuccessResult` or `ErrorResult`; the typed payload helpers below then
pull endpoint-specific shapes out of a success.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


class SchemaError(ValueError):
    """Response body does not match any known envelope."""


@dataclass(frozen=True)
class SuccessResult:
    payload: Dict[str, Any]
    ok: bool = field(default=True, init=False)

    @property
    def data(self):
        return self.payload.get("data")


@dataclass(frozen=True)
class ErrorResult:
    error: str
    message: str = ""
    ok: bool = field(default=False, init=False)


QueryResult = Union[SuccessResult, ErrorResult]


def parse_envelope(body) -> QueryResult:
    """
    Classify a decoded JSON body.

    {"success": true, ...}                -> SuccessResult
    {"success": false, "error": ...}      -> ErrorResult
    {"error": "..."}                      -> ErrorResult
    {...} without either marker           -> SuccessResult (legacy endpoints)
    """
    if not isinstance(body, dict):
        raise SchemaError(f"expected a JSON object, got {type(body).__name__}")
    success = body.get("success")
    if success is False or (success is None and "error" in body):
        return ErrorResult(
            error=str(body.get("error") or "Request failed"),
            message=str(body.get("message") or ""),
        )
    if success not in (True, None):
        raise SchemaError(f"'success' must be a boolean, got {success!r}")
    return SuccessResult(payload=body)


# ---------------------------------------------------------------------------
# Endpoint payloads
# ---------------------------------------------------------------------------
@dataclass
class RowsPayload:
    rows: List[Dict[str, Any]]
    total_rows: int
    columns: List[str]


def rows_payload(result: SuccessResult) -> RowsPayload:
    data = result.data
    if not isinstance(data, dict) or not isinstance(data.get("rows"), list):
        raise SchemaError("response has no data.rows list")
    rows = data["rows"]
    if not all(isinstance(r, dict) for r in rows):
        raise SchemaError("data.rows must contain objects")
    total_rows = data.get("totalRows")
    if total_rows is None:
        total_rows = len(rows)
    elif isinstance(total_rows, bool) or not isinstance(total_rows, (int, float, str)):
        raise SchemaError(f"data.totalRows must be a number, got {total_rows!r}")
    try:
        total_rows = int(total_rows)
    except (ValueError, OverflowError) as e:
        raise SchemaError(f"data.totalRows must be a number, got {total_rows!r}") from e
    return RowsPayload(
        rows=rows,
        total_rows=total_rows,
        columns=list(data.get("columns") or (rows[0].keys() if rows else [])),
    )


def filter_values_payload(result: SuccessResult) -> List[str]:
    """Accept the three filter-value shapes: values, options or data."""
    body = result.payload
    for key in ("values", "options", "data"):
        items = body.get(key)
        if items is None:
            continue
        if not isinstance(items, list):
            raise SchemaError(f"'{key}' must be a list")
        return [
            str(item["value"]) if isinstance(item, dict) else str(item)
            for item in items
            if (item.get("value") if isinstance(item, dict) else item) not in (None, "")
        ]
    raise SchemaError("response has no filter values")


def mappings_payload(result: SuccessResult, key_field: str, value_field: str,
                     alt_key_field: Optional[str] = None,
                     lower_keys: bool = False) -> Dict[str, str]:
    items = result.payload.get("mappings")
    if not isinstance(items, list):
        raise SchemaError("response has no mappings list")
    out = {}
    for item in items:
        if not isinstance(item, dict):
            continue
        key = item.get(key_field) or (item.get(alt_key_field) if alt_key_field else None)
        value = item.get(value_field)
        if not key or not value:
            continue
        if not isinstance(key, str) or not isinstance(value, str):
            raise SchemaError(f"mapping entries must be strings, got {key!r} -> {value!r}")
        out[key.lower() if lower_keys else key] = value
    return out

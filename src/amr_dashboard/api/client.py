"""Query-proxy client for the surveillance dashboard."""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import requests

from amr_dashboard.config import Settings, DEFAULT_TIMEOUT, HEALTH_TIMEOUT
from amr_dashboard.api.schemas import (
    ErrorResult,
    RowsPayload,
    SchemaError,
    SuccessResult,
    QueryResult,
    filter_values_payload,
    mappings_payload,
    parse_envelope,
    rows_payload,
)
from amr_dashboard.filters.active_filters import (
    AMR_FILTERS,
    AMR_HH_COLUMNS,
    ActiveFilters,
    FilterColumnError,
)

logger = logging.getLogger(__name__)

ROWS_ENDPOINT = "amr-health-v2"
FILTER_VALUES_ENDPOINT = "amr-filter-values"
ANTIBIOTIC_MAPPINGS_ENDPOINT = "antibiotic-mappings"
ORGANISM_MAPPINGS_ENDPOINT = "organism-mapping"
HEALTH_ENDPOINT = "health"

GENERIC_FAILURE = "Failed to load data"
TIMEOUT_FAILURE = "Request timed out. The server may be experiencing high load."


class FetchError(Exception):
    """Base class for failures a panel reports to the user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TransportError(FetchError):
    """Connection refused, DNS failure, timeout."""


class HTTPStatusError(FetchError):
    def __init__(self, status: int, reason: str, body: str = ""):
        super().__init__(f"Server error: {status} {reason}".rstrip())
        self.status = status
        self.body = body


class ResponseSchemaError(FetchError):
    """Body is empty, not JSON, or not a known envelope."""


class ServerReportedError(FetchError):
    """2xx response whose envelope carries an error."""


class DashboardClient:
    """Thin GET client: bearer auth, query parameters, JSON envelopes."""

    def __init__(self, base_url: str, token: str = "",
                 timeout: float = DEFAULT_TIMEOUT,
                 health_timeout: float = HEALTH_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.health_timeout = health_timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        })

    @classmethod
    def from_settings(cls, settings: Settings) -> "DashboardClient":
        return cls(settings.base_url, settings.token,
                   timeout=settings.timeout, health_timeout=settings.health_timeout)

    def url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def get(self, endpoint: str,
            params: Optional[Sequence[Tuple[str, str]]] = None,
            timeout: Optional[float] = None) -> QueryResult:
        """
        GET *endpoint* and return the parsed envelope.

        Raises TransportError, HTTPStatusError or ResponseSchemaError;
        an error envelope on a 2xx response is returned as ErrorResult.
        """
        url = self.url(endpoint)
        logger.debug("GET %s params=%s", url, params)
        try:
            response = self.session.get(url, params=list(params or []),
                                        timeout=timeout or self.timeout)
        except requests.Timeout as e:
            raise TransportError(TIMEOUT_FAILURE) from e
        except requests.RequestException as e:
            raise TransportError(GENERIC_FAILURE) from e

        if not response.ok:
            logger.warning("%s -> %s %s", url, response.status_code, response.reason)
            raise HTTPStatusError(response.status_code, response.reason or "", response.text)

        if not response.text.strip():
            raise ResponseSchemaError("Server returned empty response")
        try:
            body = response.json()
        except ValueError as e:
            raise ResponseSchemaError(f"Invalid JSON response from server: {e}") from e
        try:
            return parse_envelope(body)
        except SchemaError as e:
            raise ResponseSchemaError(str(e)) from e

    def get_success(self, endpoint: str,
                    params: Optional[Sequence[Tuple[str, str]]] = None,
                    timeout: Optional[float] = None) -> SuccessResult:
        result = self.get(endpoint, params, timeout)
        if isinstance(result, ErrorResult):
            raise ServerReportedError(result.message or result.error)
        return result

    # ---- typed endpoints ------------------------------------------------
    def isolate_rows(self, filters: Optional[ActiveFilters] = None,
                     endpoint: str = ROWS_ENDPOINT) -> RowsPayload:
        params = (filters or ActiveFilters()).to_query_params(AMR_FILTERS, AMR_HH_COLUMNS)
        try:
            return rows_payload(self.get_success(endpoint, params))
        except SchemaError as e:
            raise ResponseSchemaError(str(e)) from e

    def filter_values(self, column: str) -> List[str]:
        if column not in AMR_HH_COLUMNS:
            raise FilterColumnError(f"Column '{column}' is not allowed")
        try:
            return filter_values_payload(
                self.get_success(FILTER_VALUES_ENDPOINT, [("column", column)])
            )
        except SchemaError as e:
            raise ResponseSchemaError(str(e)) from e

    def antibiotic_mappings(self) -> Dict[str, str]:
        """Antibiotic column name -> simple display name."""
        try:
            return mappings_payload(self.get_success(ANTIBIOTIC_MAPPINGS_ENDPOINT),
                                    "column_name", "simple_name")
        except SchemaError as e:
            raise ResponseSchemaError(str(e)) from e

    def organism_mappings(self) -> Dict[str, str]:
        """Lower-case organism code -> organism name."""
        try:
            return mappings_payload(self.get_success(ORGANISM_MAPPINGS_ENDPOINT),
                                    "code", "organism_name",
                                    alt_key_field="organism_code", lower_keys=True)
        except SchemaError as e:
            raise ResponseSchemaError(str(e)) from e

    def health_check(self) -> bool:
        try:
            self.get_success(HEALTH_ENDPOINT, timeout=self.health_timeout)
        except FetchError as e:
            logger.warning("health check failed: %s", e.message)
            return False
        return True

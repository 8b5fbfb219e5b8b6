"""
Query-proxy client: auth header, query parameters and the error taxonomy.

The HTTP session is a real requests.Session whose `get` is mocked, so no
network traffic happens.
"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from amr_dashboard.config import Settings
from amr_dashboard.api.client import (
    GENERIC_FAILURE,
    TIMEOUT_FAILURE,
    DashboardClient,
    HTTPStatusError,
    ResponseSchemaError,
    ServerReportedError,
    TransportError,
)
from amr_dashboard.api.schemas import (
    ErrorResult,
    SchemaError,
    SuccessResult,
    parse_envelope,
    rows_payload,
)
from amr_dashboard.filters.active_filters import ActiveFilters, FilterColumnError


def _response(status=200, body=None, reason="OK", raw=None):
    r = requests.Response()
    r.status_code = status
    r.reason = reason
    r.encoding = "utf-8"
    r.url = "https://proxy.test/fn"
    r._content = (raw if raw is not None else json.dumps(body)).encode("utf-8")
    return r


def _client(*responses, side_effect=None):
    session = requests.Session()
    session.get = MagicMock(side_effect=side_effect or list(responses))
    return DashboardClient("https://proxy.test/fn/", token="anon-key",
                           timeout=25, health_timeout=8, session=session)


def test_bearer_header_and_url():
    client = _client(_response(body={"success": True, "data": {"rows": []}}))
    assert client.session.headers["Authorization"] == "Bearer anon-key"
    client.isolate_rows()
    url = client.session.get.call_args.args[0]
    assert url == "https://proxy.test/fn/amr-health-v2"


def test_isolate_rows_sends_filters_and_parses_payload():
    body = {
        "success": True,
        "data": {"rows": [{"ORGANISM": "eco", "CTX ND30": 20}], "totalRows": 1,
                 "columns": ["ORGANISM", "CTX ND30"]},
    }
    client = _client(_response(body=body))
    filters = ActiveFilters().add("sex", "Male").add("year_spec", "2022")
    payload = client.isolate_rows(filters)

    kwargs = client.session.get.call_args.kwargs
    assert kwargs["params"] == [("SEX", "Male"), ("YEAR_SPEC", "2022")]
    assert kwargs["timeout"] == 25
    assert payload.total_rows == 1
    assert payload.rows[0]["ORGANISM"] == "eco"
    assert payload.columns == ["ORGANISM", "CTX ND30"]


def test_timeout_message():
    client = _client(side_effect=requests.Timeout("slow"))
    with pytest.raises(TransportError) as exc:
        client.isolate_rows()
    assert exc.value.message == TIMEOUT_FAILURE


def test_connection_failure_is_generic():
    client = _client(side_effect=requests.ConnectionError("refused"))
    with pytest.raises(TransportError) as exc:
        client.isolate_rows()
    assert exc.value.message == GENERIC_FAILURE


def test_non_2xx_is_status_error():
    client = _client(_response(500, raw="boom", reason="Internal Server Error"))
    with pytest.raises(HTTPStatusError) as exc:
        client.isolate_rows()
    assert exc.value.status == 500
    assert exc.value.message == "Server error: 500 Internal Server Error"


@pytest.mark.parametrize("raw", ["", "   ", "<html>oops</html>", "[1, 2]"])
def test_unparseable_body_is_schema_error(raw):
    client = _client(_response(raw=raw))
    with pytest.raises(ResponseSchemaError):
        client.isolate_rows()


def test_missing_rows_is_schema_error():
    client = _client(_response(body={"success": True, "data": {"count": 3}}))
    with pytest.raises(ResponseSchemaError):
        client.isolate_rows()


def test_error_envelope():
    body = {"success": False, "error": "Database error", "message": "relation missing"}
    client = _client(_response(body=body), _response(body=body))
    result = client.get("amr-health-v2")
    assert isinstance(result, ErrorResult)
    assert not result.ok
    with pytest.raises(ServerReportedError) as exc:
        client.isolate_rows()
    assert exc.value.message == "relation missing"


def test_envelope_classification():
    assert isinstance(parse_envelope({"success": True, "data": []}), SuccessResult)
    assert isinstance(parse_envelope({"mappings": []}), SuccessResult)
    assert isinstance(parse_envelope({"error": "Column not allowed"}), ErrorResult)
    with pytest.raises(SchemaError):
        parse_envelope({"success": "yes"})


@pytest.mark.parametrize("body", [
    {"success": True, "values": ["Female", "Male", ""]},
    {"success": True, "options": [{"value": "Female", "label": "Female"},
                                  {"value": "Male", "label": "Male"}]},
    {"success": True, "data": ["Female", None, "Male"]},
])
def test_filter_values_shapes(body):
    client = _client(_response(body=body))
    assert client.filter_values("SEX") == ["Female", "Male"]
    assert client.session.get.call_args.kwargs["params"] == [("column", "SEX")]


def test_filter_values_rejects_unknown_column():
    client = _client()
    with pytest.raises(FilterColumnError):
        client.filter_values("PATIENT_NAME")
    client.session.get.assert_not_called()


def test_mappings():
    abx = {"success": True, "mappings": [
        {"column_name": "CTX ND30", "simple_name": "Cefotaxime"},
        {"column_name": "CIP ND5", "simple_name": None},
    ]}
    orgs = {"success": True, "mappings": [
        {"code": "ECO", "organism_name": "Escherichia coli"},
        {"organism_code": "kpn", "organism_name": "Klebsiella pneumoniae"},
    ]}
    client = _client(_response(body=abx), _response(body=orgs))
    assert client.antibiotic_mappings() == {"CTX ND30": "Cefotaxime"}
    assert client.organism_mappings() == {
        "eco": "Escherichia coli",
        "kpn": "Klebsiella pneumoniae",
    }


def test_health_check():
    client = _client(_response(body={"status": "ok"}),
                     _response(503, raw="", reason="Service Unavailable"))
    assert client.health_check() is True
    assert client.session.get.call_args.kwargs["timeout"] == 8
    assert client.health_check() is False


def test_settings_from_env():
    settings = Settings.from_env({
        "AMR_API_BASE_URL": "https://proxy.test/fn/",
        "AMR_API_TOKEN": "t",
        "AMR_API_TIMEOUT": "10",
    })
    assert settings.base_url == "https://proxy.test/fn"
    assert settings.timeout == 10.0
    assert settings.health_timeout == 8.0
    assert DashboardClient.from_settings(settings).timeout == 10.0
    with pytest.raises(ValueError):
        Settings.from_env({})


def test_null_total_rows_falls_back_to_row_count():
    payload = rows_payload(SuccessResult({"success": True,
                                          "data": {"rows": [{"a": 1}], "totalRows": None}}))
    assert payload.total_rows == 1
    with pytest.raises(SchemaError):
        rows_payload(SuccessResult({"success": True,
                                    "data": {"rows": [], "totalRows": "many"}}))


def test_malformed_payloads_surface_as_fetch_errors():
    rows = {"success": True, "data": {"rows": [], "totalRows": {"n": 3}}}
    orgs = {"success": True, "mappings": [{"code": 42, "organism_name": "Escherichia coli"}]}
    client = _client(_response(body=rows), _response(body=orgs))
    with pytest.raises(ResponseSchemaError):
        client.isolate_rows()
    with pytest.raises(ResponseSchemaError):
        client.organism_mappings()

"""Tests for the single-exchange HTTP connector."""
from __future__ import annotations

from datetime import datetime, timezone

import httpx
import pytest

from ghstatus.connectors.http import (
    EPOCH,
    HttpConnector,
    TransportError,
    parse_http_date,
    parse_rate_limit_reset,
)


def test_execute_records_github_headers(gh_response, github_server, server_now):
    server = github_server(
        gh_response(
            201,
            {"id": 1},
            remaining=4999,
            reset_in=3600,
            extra_headers={"X-Accepted-OAuth-Scopes": "repo:status", "X-OAuth-Scopes": "repo"},
        )
    )
    outcome = HttpConnector(transport=server.transport).execute(
        "post", "https://api.example.com/x", headers={"Accept": "a"}, json_body={"k": "v"}
    )

    assert outcome.method == "POST"
    assert outcome.status_code == 201
    assert outcome.is_success
    assert outcome.rate_limit_remaining == 4999
    assert (outcome.rate_limit_reset - server_now).total_seconds() == 3600
    assert outcome.date == server_now
    assert outcome.oauth_info == "X-Accepted-Oauth-Scopes: repo:status, X-Oauth-Scopes: repo"
    assert server.json_body() == {"k": "v"}
    assert server.requests[0].headers["Accept"] == "a"


def test_execute_defaults_unparsable_rate_limit_headers(gh_response, github_server):
    server = github_server(
        gh_response(403, "nope", extra_headers={"X-RateLimit-Remaining": "lots", "X-RateLimit-Reset": "soon"})
    )
    outcome = HttpConnector(transport=server.transport).execute("POST", "https://api.example.com/x")

    assert outcome.rate_limit_remaining == 0
    assert outcome.rate_limit_reset == EPOCH
    assert outcome.body == "nope"


def test_success_without_date_header_is_accepted(gh_response, github_server):
    server = github_server(gh_response(201, date=None))
    outcome = HttpConnector(transport=server.transport).execute("POST", "https://api.example.com/x")
    assert outcome.status_code == 201
    assert outcome.date is None


def test_failure_without_date_header_is_transport_error(gh_response, github_server):
    server = github_server(gh_response(500, "boom", date=None))
    with pytest.raises(TransportError, match="failed to parse the date header"):
        HttpConnector(transport=server.transport).execute("POST", "https://api.example.com/x")


def test_network_failure_is_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    connector = HttpConnector(transport=httpx.MockTransport(handler))
    with pytest.raises(TransportError, match="http client send: connection refused"):
        connector.execute("POST", "https://api.example.com/x")


def test_body_is_trimmed(gh_response, github_server):
    server = github_server(gh_response(404, "\n  Not Found \n"))
    outcome = HttpConnector(transport=server.transport).execute("POST", "https://api.example.com/x")
    assert outcome.body == "Not Found"


def test_parse_http_date_rfc1123():
    assert parse_http_date("Mon, 02 Jan 2006 15:04:05 GMT") == datetime(2006, 1, 2, 15, 4, 5, tzinfo=timezone.utc)


def test_parse_http_date_rejects_garbage():
    with pytest.raises(TransportError):
        parse_http_date("yesterday")


def test_parse_rate_limit_reset():
    assert parse_rate_limit_reset("1700000000") == datetime.fromtimestamp(1700000000, tz=timezone.utc)
    assert parse_rate_limit_reset(None) == EPOCH
    assert parse_rate_limit_reset("") == EPOCH


@pytest.mark.parametrize("value", ["99999999999999999999999", "-99999999999999999999999"])
def test_out_of_range_rate_limit_reset_becomes_epoch(value):
    assert parse_rate_limit_reset(value) == EPOCH


def test_execute_survives_out_of_range_rate_limit_reset(gh_response, github_server):
    server = github_server(gh_response(500, "oops", extra_headers={"X-RateLimit-Reset": "99999999999999999999999"}))
    outcome = HttpConnector(transport=server.transport).execute("POST", "https://api.example.com/x")
    assert outcome.status_code == 500
    assert outcome.rate_limit_reset == EPOCH


def test_failure_without_date_can_be_accepted(gh_response, github_server):
    server = github_server(gh_response(401, {"message": "Bad credentials"}, date=None))
    outcome = HttpConnector(transport=server.transport).execute(
        "POST", "https://api.example.com/x", require_date=False
    )
    assert outcome.status_code == 401
    assert outcome.date is None

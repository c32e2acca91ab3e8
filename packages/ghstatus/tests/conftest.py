from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import Any, Callable

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

SERVER_NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def gh_response(
    status: int,
    body: Any = None,
    *,
    remaining: int | None = None,
    reset_in: float | None = None,
    date: datetime | None = SERVER_NOW,
    extra_headers: dict[str, str] | None = None,
) -> httpx.Response:
    """A response shaped like the GitHub API, rate-limit headers included."""
    headers: dict[str, str] = {}
    if date is not None:
        headers["Date"] = format_datetime(date, usegmt=True)
    if remaining is not None:
        headers["X-RateLimit-Remaining"] = str(remaining)
        headers["X-RateLimit-Limit"] = "5000"
    if reset_in is not None:
        base = date or SERVER_NOW
        headers["X-RateLimit-Reset"] = str(int((base + timedelta(seconds=reset_in)).timestamp()))
    headers.update(extra_headers or {})
    if body is None:
        return httpx.Response(status, headers=headers)
    if isinstance(body, str):
        return httpx.Response(status, headers=headers, text=body)
    return httpx.Response(status, headers=headers, json=body)


class FakeGitHub:
    """Replays canned responses and records every request it receives."""

    def __init__(self, *responses: httpx.Response | Callable[[httpx.Request], httpx.Response]):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"unexpected request {request.method} {request.url}")
        nxt = self.responses.pop(0)
        return nxt(request) if callable(nxt) else nxt

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def json_body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def pkcs8_pem(rsa_key) -> str:
    return rsa_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()


@pytest.fixture(scope="session")
def pkcs1_pem(rsa_key) -> str:
    return rsa_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture(name="gh_response")
def _gh_response() -> Callable[..., httpx.Response]:
    return gh_response


@pytest.fixture
def github_server() -> Callable[..., FakeGitHub]:
    return FakeGitHub


@pytest.fixture
def server_now() -> datetime:
    return SERVER_NOW

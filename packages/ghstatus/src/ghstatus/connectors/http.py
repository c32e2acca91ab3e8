from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
MAX_BODY_CHARS = 64 * 1024

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


class TransportError(RuntimeError):
    """Raised when an exchange did not produce a usable HTTP outcome."""


@dataclass(frozen=True)
class HttpOutcome:
    method: str
    url: str
    status_code: int
    reason: str
    body: str
    accepted_oauth_scopes: str
    oauth_scopes: str
    rate_limit_remaining: int
    rate_limit_reset: datetime
    date: datetime | None
    elapsed: float

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def oauth_info(self) -> str:
        return f"X-Accepted-Oauth-Scopes: {self.accepted_oauth_scopes}, X-Oauth-Scopes: {self.oauth_scopes}"


def _parse_int(value: str | None) -> int:
    try:
        return int((value or "").strip())
    except ValueError:
        return 0


def parse_rate_limit_reset(value: str | None) -> datetime:
    # An unparsable or out of range reset becomes the epoch. The delay computed
    # from it is not positive, so the backoff falls through to exponential.
    try:
        return datetime.fromtimestamp(_parse_int(value), tz=timezone.utc)
    except (OverflowError, ValueError, OSError):
        return EPOCH


def parse_http_date(value: str | None) -> datetime:
    """Parse an RFC 1123 ``Date`` header, e.g. ``Mon, 02 Jan 2006 15:04:05 GMT``."""
    if not value:
        raise TransportError("failed to parse the date header: missing")
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError) as exc:
        raise TransportError(f"failed to parse the date header: {value!r}") from exc
    if parsed is None:
        raise TransportError(f"failed to parse the date header: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class HttpConnector:
    """Performs exactly one HTTP exchange per call. No retries here."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS, *, transport: httpx.BaseTransport | None = None):
        self._timeout = timeout
        self._transport = transport

    def client(self) -> httpx.Client:
        return httpx.Client(timeout=self._timeout, transport=self._transport)

    def execute(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        json_body: Any | None = None,
        *,
        require_date: bool = True,
    ) -> HttpOutcome:
        """One exchange. With ``require_date`` false, a missing or bad ``Date`` is never an error."""
        method = method.upper()
        start = time.monotonic()
        try:
            with self.client() as client:
                res = client.request(method, url, headers=headers, json=json_body)
                text = res.text
        except httpx.HTTPError as exc:
            raise TransportError(f"http client send: {exc}") from exc
        elapsed = time.monotonic() - start

        res_headers = res.headers
        logger.debug(
            "http.request method=%s url=%s status=%d duration=%.3fs rate_limit=%s remaining=%s reset=%s",
            method,
            url,
            res.status_code,
            elapsed,
            res_headers.get("X-RateLimit-Limit", ""),
            res_headers.get("X-RateLimit-Remaining", ""),
            res_headers.get("X-RateLimit-Reset", ""),
        )

        date: datetime | None
        try:
            date = parse_http_date(res_headers.get("Date"))
        except TransportError:
            # A success never reaches the rate-limit math, so it does not need a date.
            if require_date and not 200 <= res.status_code < 300:
                raise
            date = None

        return HttpOutcome(
            method=method,
            url=url,
            status_code=res.status_code,
            reason=res.reason_phrase,
            body=text.strip()[:MAX_BODY_CHARS],
            accepted_oauth_scopes=res_headers.get("X-Accepted-OAuth-Scopes", ""),
            oauth_scopes=res_headers.get("X-OAuth-Scopes", ""),
            rate_limit_remaining=_parse_int(res_headers.get("X-RateLimit-Remaining")),
            rate_limit_reset=parse_rate_limit_reset(res_headers.get("X-RateLimit-Reset")),
            date=date,
            elapsed=elapsed,
        )

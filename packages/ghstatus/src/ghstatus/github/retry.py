"""Classifier and backoff adapting the generic retrier to the GitHub API."""
from __future__ import annotations

from ghstatus.engine.retries import Action, exponential_backoff
from ghstatus.github.errors import GitHubError

TRANSIENT_STATUS_CODES = frozenset({500, 502, 503, 504})


def transient_error(status_code: int) -> bool:
    return status_code in TRANSIENT_STATUS_CODES


def rate_limited(err: GitHubError) -> bool:
    # See https://docs.github.com/en/rest/overview/resources-in-the-rest-api#exceeding-the-rate-limit
    return err.status_code == 403 and err.rate_limit_remaining == 0


def classify(err: BaseException | None) -> Action:
    if err is None:
        return Action.SUCCESS
    if isinstance(err, GitHubError):
        if 200 <= err.status_code < 300:
            return Action.SUCCESS
        if transient_error(err.status_code):
            return Action.SOFT_FAIL
        if rate_limited(err):
            return Action.SOFT_FAIL
    return Action.HARD_FAIL


def backoff(first: bool, previous: float, limit: float, err: BaseException | None = None) -> float:
    """Wait until the rate limit resets, otherwise back off exponentially.

    The rate-limit delay is computed from the server clock only (reset minus
    the Date header), so client clock drift does not matter. GitHub has been
    observed to answer with a zero or negative delay; in that case the
    exponential policy applies.
    """
    if isinstance(err, GitHubError) and rate_limited(err) and err.outcome.date is not None:
        delay = (err.outcome.rate_limit_reset - err.outcome.date).total_seconds()
        if delay > 0:
            return delay
    return exponential_backoff(first, previous, limit)

from __future__ import annotations

from ghstatus.connectors.http import HttpOutcome


class GitHubError(RuntimeError):
    """A non-success response from the GitHub API.

    Carries the full outcome so the classifier and the backoff can see the
    rate-limit headers and the server date.
    """

    def __init__(self, outcome: HttpOutcome):
        super().__init__(outcome.body.strip())
        self.outcome = outcome

    @property
    def status_code(self) -> int:
        return self.outcome.status_code

    @property
    def rate_limit_remaining(self) -> int:
        return self.outcome.rate_limit_remaining

    @property
    def oauth_info(self) -> str:
        return self.outcome.oauth_info


class StatusError(RuntimeError):
    """Terminal failure of a commit status update, with diagnostics for humans."""

    def __init__(self, what: str, details: str, status_code: int | None = None):
        super().__init__(what)
        self.what = what
        self.details = details
        self.status_code = status_code

    def __str__(self) -> str:
        return f"{self.what}\n{self.details}"

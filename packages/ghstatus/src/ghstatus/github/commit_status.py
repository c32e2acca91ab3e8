"""Client for the GitHub commit status API.

See https://docs.github.com/en/rest/commits/statuses
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from http import HTTPStatus

import httpx

from ghstatus.connectors.http import DEFAULT_TIMEOUT_SECONDS, HttpConnector, HttpOutcome
from ghstatus.engine.retries import Retry
from ghstatus.github.app import AppIdentity, Credentials, generate_installation_token
from ghstatus.github.errors import GitHubError, StatusError
from ghstatus.github.retry import backoff, classify, rate_limited

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Target:
    server: str
    retry: Retry
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    transport: httpx.BaseTransport | None = None


@dataclass(frozen=True)
class AddRequest:
    state: str
    target_url: str
    description: str
    context: str


class CommitStatus:
    """Sets commit statuses on one ``owner/repo``.

    ``context`` names what created the status, for example ``JOBNAME`` or
    ``PIPELINENAME/JOBNAME``. An ephemeral pipeline name makes the status
    unusable in branch protection rules.
    """

    def __init__(
        self,
        target: Target,
        credentials: Credentials,
        owner: str,
        repo: str,
        context: str,
        log: logging.Logger | None = None,
    ):
        self.target = target
        self.credentials = credentials
        self.owner = owner
        self.repo = repo
        self.context = context
        self.log = log or logger

    def add(self, sha: str, state: str, target_url: str = "", description: str = "") -> None:
        """Set ``state`` on commit ``sha``, retrying transient errors and rate limits.

        Raises StatusError with troubleshooting details on terminal failure.
        """
        url = f"{self.target.server}/repos/{self.owner}/{self.repo}/statuses/{sha}"
        body = asdict(AddRequest(state=state, target_url=target_url, description=description, context=self.context))
        connector = HttpConnector(self.target.timeout, transport=self.target.transport)

        try:
            headers = {
                "Authorization": self._authorization(connector),
                "Accept": "application/vnd.github.v3+json",
                "Content-Type": "application/json",
            }

            def work() -> HttpOutcome:
                outcome = connector.execute("POST", url, headers=headers, json_body=body)
                if not outcome.is_success:
                    raise GitHubError(outcome)
                return outcome

            self.target.retry.do(backoff, classify, work)
        except Exception as exc:
            raise self._explain_error(exc, state, sha, url) from exc

        self.log.info("commit_status.added state=%s sha=%s context=%s", state, sha, self.context)

    def _authorization(self, connector: HttpConnector) -> str:
        if isinstance(self.credentials, AppIdentity):
            token = generate_installation_token(connector, self.target.server, self.credentials)
            return f"Bearer {token}"
        return self.credentials.authorization()

    def _explain_error(self, err: Exception, state: str, sha: str, url: str) -> StatusError:
        common_what = f'failed to add state "{state}" for commit {sha[:7]}'
        if not isinstance(err, GitHubError):
            return StatusError(what=f"{common_what}: {err}", details=f"Action: POST {url}")

        code = err.status_code
        hint = "none"
        if code == 404:
            hint = (
                "one of the following happened:\n"
                f"    1. The repo https://github.com/{self.owner}/{self.repo} doesn't exist\n"
                "    2. The user who issued the token doesn't have write access to the repo\n"
                "    3. The token doesn't have scope repo:status"
            )
        elif code == 500:
            hint = "Github API is down"
        elif code == 401:
            hint = "Either wrong credentials or PAT expired (check your email for expiration notice)"
        elif rate_limited(err):
            hint = (
                "Rate limited but the wait time to reset would be longer than "
                f"{format_duration(self.target.retry.up_to)} (Retry.up_to)"
            )

        return StatusError(
            what=f"{common_what}: {code} {_status_text(code, err.outcome.reason)}",
            status_code=code,
            details=f"Body: {err}\nHint: {hint}\nAction: POST {url}\nOAuth: {err.oauth_info}",
        )


def _status_text(code: int, fallback: str) -> str:
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return fallback


def format_duration(seconds: float) -> str:
    """Render seconds as e.g. ``15m0s`` or ``1h2m3.5s``."""
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    out = ""
    if hours:
        out += f"{int(hours)}h"
    if hours or minutes:
        out += f"{int(minutes)}m"
    return out + f"{secs:g}s"

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import SplitResult, urlsplit

DEFAULT_HOSTNAME = "github.com"

_LOCALHOST_RE = re.compile(r"^127\.0\.0\.1:[0-9]+$")


def api_root(hostname: str) -> str:
    """Root of the GitHub API for a git hostname.

    ``github.com`` maps to ``https://api.github.com``, a local test server
    (``127.0.0.1:PORT``) to plain http, anything else is taken to be a GitHub
    Enterprise instance (``https://HOST/api/v3``).
    """
    host = hostname.lower()
    if host == DEFAULT_HOSTNAME:
        return "https://api.github.com"
    if _LOCALHOST_RE.match(host):
        return f"http://{host}"
    return f"https://{host}/api/v3"


@dataclass(frozen=True)
class GitURL:
    url: SplitResult
    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def hostname(self) -> str:
        return self.url.hostname or ""

    @property
    def host(self) -> str:
        """Hostname with port, without credentials."""
        if self.url.port is not None:
            return f"{self.hostname}:{self.url.port}"
        return self.hostname


def parse_git_pseudo_url(raw_url: str) -> GitURL:
    """Parse a git remote URL following the GitHub naming conventions.

    Accepts ``git@github.com:owner/repo.git`` (rewritten to
    ``ssh://git@github.com/owner/repo.git``) and ``http``/``https`` URLs, with or
    without ``user:password@``. Error messages never echo the credentials.
    """
    work_url = raw_url
    if work_url.startswith("git@"):
        if work_url.count(":") != 1:
            raise ValueError(f"invalid git SSH URL {raw_url}: want exactly one ':'")
        work_url = "ssh://" + work_url.replace(":", "/", 1)

    try:
        parsed = urlsplit(work_url)
        # Accessing the port validates it.
        parsed.port
    except ValueError as exc:
        raise ValueError(f"invalid git URL: {_strip_credentials(exc)}") from None

    display = _safe_display(raw_url, parsed)
    if not parsed.scheme:
        raise ValueError(f"invalid git URL {display}: missing scheme")
    if parsed.scheme not in ("ssh", "http", "https"):
        raise ValueError(f"invalid git URL {display}: invalid scheme: {parsed.scheme}")

    tokens = parsed.path.split("/")
    if len(tokens) != 3:
        raise ValueError(f"invalid git URL: path: want: 3 components; have: {len(tokens)} {tokens}")

    owner = tokens[1]
    repo = tokens[2]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    return GitURL(url=parsed, owner=owner, repo=repo)


def _safe_display(raw_url: str, parsed: SplitResult) -> str:
    if parsed.password:
        return raw_url.replace(f":{parsed.password}@", ":REDACTED@", 1)
    return raw_url


def _strip_credentials(exc: ValueError) -> str:
    # urllib error messages may quote the netloc; keep only the reason.
    return str(exc).split("'", 1)[0].strip() or "invalid URL"

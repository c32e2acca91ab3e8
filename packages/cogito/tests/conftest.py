from __future__ import annotations

import logging
from datetime import datetime, timezone
from email.utils import format_datetime
from pathlib import Path
from typing import Callable

import httpx
import pytest

SHA = "b7a5d7a0c6e4f1d2e3b4a5c6d7e8f9a0b1c2d3e4"

GIT_CONFIG = """[core]
\trepositoryformatversion = 0
\tfilemode = true
[remote "origin"]
\turl = {url}
\tfetch = +refs/heads/*:refs/remotes/origin/*
[branch "main"]
\tremote = origin
\tmerge = refs/heads/main
"""

SERVER_DATE = format_datetime(datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc), usegmt=True)


def make_git_repo(root: Path, url: str = "https://github.com/the-owner/the-repo.git", sha: str = SHA) -> Path:
    """A minimal checkout as Concourse hands it to the put step (branch HEAD)."""
    dot_git = root / ".git"
    (dot_git / "refs" / "heads").mkdir(parents=True)
    (dot_git / "config").write_text(GIT_CONFIG.format(url=url), encoding="utf-8")
    (dot_git / "HEAD").write_text("ref: refs/heads/main\n", encoding="utf-8")
    (dot_git / "refs" / "heads" / "main").write_text(sha + "\n", encoding="utf-8")
    return root


class Recorder:
    """MockTransport handler replaying responses per host and recording requests."""

    def __init__(self, responses: dict[str, list[httpx.Response]] | None = None):
        self.responses = {host: list(r) for host, r in (responses or {}).items()}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.responses.get(request.url.host) or []
        if not queue:
            raise AssertionError(f"unexpected request {request.method} {request.url}")
        return queue.pop(0)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def to(self, host: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == host]



@pytest.fixture
def git_repo() -> Callable[..., Path]:
    return make_git_repo


@pytest.fixture
def recorder() -> Callable[..., Recorder]:
    return Recorder


@pytest.fixture
def build_env() -> dict[str, str]:
    return {
        "ATC_EXTERNAL_URL": "https://cogito.invalid",
        "BUILD_JOB_NAME": "a-job",
    }


@pytest.fixture
def server_date() -> str:
    return SERVER_DATE


@pytest.fixture
def sha() -> str:
    return SHA


@pytest.fixture(autouse=True)
def no_config_env(monkeypatch):
    for var in ("COGITO_CONFIG", "COGITO_RETRY_UP_TO", "COGITO_RETRY_FIRST_DELAY", "COGITO_RETRY_BACKOFF_LIMIT", "COGITO_HTTP_TIMEOUT"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)

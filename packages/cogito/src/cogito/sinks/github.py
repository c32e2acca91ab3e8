from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

import httpx

from cogito.protocol import Environment, PutRequest
from ghstatus.config import ResourceConfig
from ghstatus.engine.retries import Retry
from ghstatus.github.commit_status import CommitStatus, Target
from ghstatus.github.url import api_root

logger = logging.getLogger(__name__)


def gh_adapt_state(state: str) -> str:
    """GitHub has no "abort" state."""
    if state == "abort":
        return "error"
    return state


def gh_make_context(request: PutRequest, env: Environment) -> str:
    context = ""
    if request.source.context_prefix:
        context = request.source.context_prefix + "/"
    return context + (request.params.context or env.build_job_name)


@dataclass
class GitHubCommitStatusSink:
    request: PutRequest
    env: Environment
    git_ref: str
    config: ResourceConfig = field(default_factory=ResourceConfig)
    transport: httpx.BaseTransport | None = None
    sleep: Callable[[float], None] = time.sleep

    def send(self) -> None:
        if not self.git_ref:
            logger.info("ghcommit.skipped no git repository in inputs")
            return
        source = self.request.source
        state = gh_adapt_state(self.request.params.state)
        context = gh_make_context(self.request, self.env)
        build_url = self.env.build_url()
        description = f"Build {self.env.build_name}"

        target = Target(
            server=api_root(source.github_hostname),
            retry=Retry(
                up_to=self.config.retry.up_to,
                first_delay=self.config.retry.first_delay,
                backoff_limit=self.config.retry.backoff_limit,
                sleep=self.sleep,
                log=logger,
            ),
            timeout=self.config.http_timeout,
            transport=self.transport,
        )
        commit_status = CommitStatus(target, source.credentials(), source.owner, source.repo, context, log=logger)

        logger.debug(
            "ghcommit.posting state=%s owner=%s repo=%s git_ref=%s context=%s build_url=%s description=%s",
            state,
            source.owner,
            source.repo,
            self.git_ref,
            context,
            build_url,
            description,
        )
        if source.omit_target_url:
            build_url = ""
        commit_status.add(self.git_ref, state, build_url, description)
        logger.info("ghcommit.posted state=%s git_ref=%s", state, self.git_ref[:9])

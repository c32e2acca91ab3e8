from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable

import httpx

from cogito import googlechat
from cogito.googlechat import ChatError
from cogito.protocol import Environment, PutRequest, Source

logger = logging.getLogger(__name__)

STATE_ICONS = {
    "abort": "\U0001f7e4",
    "error": "\U0001f7e0",
    "failure": "\U0001f534",
    "pending": "\U0001f7e1",
    "success": "\U0001f7e2",
}
UNKNOWN_ICON = "\u2753"


def should_send_to_chat(request: PutRequest) -> bool:
    params = request.params
    if params.chat_message or params.chat_message_file:
        return True
    return params.state in request.source.chat_notify_on_states


def decorate_state(state: str) -> str:
    return f"{STATE_ICONS.get(state, UNKNOWN_ICON)} {state}"


def build_summary_text(
    git_ref: str, state: str, source: Source, env: Environment, now: Callable[[], datetime] = datetime.now
) -> str:
    lines = [
        now().astimezone().strftime("%Y-%m-%d %H:%M:%S %Z"),
        f"*pipeline* {env.build_pipeline_name}",
        f"*job* <{env.build_url()}|{env.build_job_name}/{env.build_name}>",
        f"*state* {decorate_state(state)}",
    ]
    if git_ref:
        commit_url = f"https://github.com/{source.owner}/{source.repo}/commit/{git_ref}"
        lines.append(f"*commit* <{commit_url}|{git_ref[:10]}> (repo: {source.owner}/{source.repo})")
    return "\n".join(lines) + "\n"


def prepare_chat_message(input_dir: Path, request: PutRequest, env: Environment, git_ref: str) -> str:
    params = request.params
    parts = []
    if params.chat_message:
        parts.append(params.chat_message)
    if params.chat_message_file:
        try:
            parts.append((input_dir / params.chat_message_file).read_text(encoding="utf-8"))
        except OSError as exc:
            raise ValueError(f"reading chat_message_file: {exc}") from exc

    if not parts or params.chat_append_summary:
        parts.append(build_summary_text(git_ref, params.state, request.source, env))
    return "\n\n".join(parts)


@dataclass
class GoogleChatSink:
    request: PutRequest
    env: Environment
    git_ref: str
    input_dir: Path
    timeout: float = googlechat.DEFAULT_TIMEOUT_SECONDS
    transport: httpx.BaseTransport | None = field(default=None, repr=False)

    def send(self) -> None:
        params = self.request.params
        webhook = self.request.source.gchat_webhook.get_secret_value()
        if params.gchat_webhook.get_secret_value():
            webhook = params.gchat_webhook.get_secret_value()
            logger.debug("gchat.webhook_override params.gchat_webhook is overriding source.gchat_webhook")
        if not webhook:
            logger.info("gchat.skipped not sending to chat reason=feature not enabled")
            return

        if not should_send_to_chat(self.request):
            logger.debug("gchat.skipped not sending to chat reason=state not in configured states state=%s", params.state)
            return

        try:
            text = prepare_chat_message(self.input_dir, self.request, self.env, self.git_ref)
        except ValueError as exc:
            raise ValueError(f"GoogleChatSink: {exc}") from exc

        thread_key = f"{self.env.build_pipeline_name} {self.git_ref}"
        try:
            reply = googlechat.text_message(webhook, thread_key, text, timeout=self.timeout, transport=self.transport)
        except ChatError as exc:
            raise ChatError(f"GoogleChatSink: {exc}") from exc

        logger.info(
            "gchat.posted state=%s space=%s sender=%s",
            params.state,
            reply.space.display_name,
            reply.sender.display_name,
        )

"""Minimal client for Google Chat incoming webhooks.

See https://developers.google.com/chat/how-tos/webhooks
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class ChatError(RuntimeError):
    """Raised when a message could not be delivered. Never contains the webhook secrets."""


class MessageSender(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    display_name: str = Field("", alias="displayName")
    type: str = ""


class MessageThread(BaseModel):
    name: str = ""


class MessageSpace(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    type: str = ""
    threaded: bool = False
    display_name: str = Field("", alias="displayName")


class MessageReply(BaseModel):
    """Reply to a message post. Only the fields we use are modelled."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    sender: MessageSender = Field(default_factory=MessageSender)
    text: str = ""
    thread: MessageThread = Field(default_factory=MessageThread)
    space: MessageSpace = Field(default_factory=MessageSpace)
    create_time: Optional[datetime] = Field(None, alias="createTime")


def redact_url(url: str | httpx.URL) -> str:
    """Hide the query (it holds the webhook key and token) and any password."""
    try:
        parsed = httpx.URL(str(url))
    except httpx.InvalidURL as exc:
        return f"<invalid URL: {type(exc).__name__}>"
    if parsed.query:
        parsed = parsed.copy_with(query=b"REDACTED")
    if parsed.password:
        parsed = parsed.copy_with(username="REDACTED", password="REDACTED")
    return str(parsed)


def text_message(
    url: str,
    thread_key: str,
    text: str,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    transport: httpx.BaseTransport | None = None,
) -> MessageReply:
    """Post ``text`` to the space of webhook ``url``, threading by ``thread_key``."""
    try:
        request_url = httpx.URL(url)
        if thread_key:
            request_url = request_url.copy_merge_params({"threadKey": thread_key})
    except httpx.InvalidURL as exc:
        raise ChatError(f"TextMessage: new request: invalid URL {redact_url(url)}: {type(exc).__name__}") from None

    headers = {"Content-Type": "application/json; charset=UTF-8"}
    try:
        with httpx.Client(timeout=timeout, transport=transport) as client:
            res = client.post(request_url, headers=headers, json={"text": text})
            body = res.text
    except httpx.HTTPError as exc:
        # httpx errors may carry the request URL; report only the class and the redacted URL.
        raise ChatError(f"TextMessage: send: {type(exc).__name__} (URL: {redact_url(request_url)})") from None

    if res.status_code != 200:
        raise ChatError(
            f"TextMessage: status: {res.status_code} {res.reason_phrase}; "
            f"URL: {redact_url(request_url)}; body: {body.strip()}"
        )

    try:
        reply = MessageReply.model_validate_json(body)
    except ValidationError as exc:
        raise ChatError(f"HTTP status OK but failed to parse response: {exc.error_count()} error(s)") from None

    logger.debug("gchat.posted space=%s thread=%s", reply.space.display_name, reply.thread.name)
    return reply

from __future__ import annotations

from typing import Protocol

from cogito.sinks.gchat import GoogleChatSink
from cogito.sinks.github import GitHubCommitStatusSink


class Sinker(Protocol):
    def send(self) -> None: ...


__all__ = ["GitHubCommitStatusSink", "GoogleChatSink", "Sinker"]

"""Tunables of the status publisher: retry budget and HTTP timeouts."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

CONFIG_ENV = "COGITO_CONFIG"

# Environment variables take precedence over the YAML file.
ENV_OVERRIDES = {
    "COGITO_RETRY_UP_TO": "retry.up_to_seconds",
    "COGITO_RETRY_FIRST_DELAY": "retry.first_delay_seconds",
    "COGITO_RETRY_BACKOFF_LIMIT": "retry.backoff_limit_seconds",
    "COGITO_HTTP_TIMEOUT": "http_timeout_seconds",
}


@dataclass(frozen=True)
class RetryConfig:
    up_to: float = 15 * 60.0
    first_delay: float = 2.0
    backoff_limit: float = 60.0


@dataclass(frozen=True)
class ResourceConfig:
    retry: RetryConfig = field(default_factory=RetryConfig)
    http_timeout: float = 30.0
    chat_timeout: float = 10.0

    @classmethod
    def load(cls, path: Path | None = None) -> ResourceConfig:
        """Load config from a YAML file, then apply environment overrides."""
        if path is None and os.getenv(CONFIG_ENV):
            path = Path(os.environ[CONFIG_ENV])

        raw: dict[str, Any] = {}
        if path is not None and path.exists():
            loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
            if loaded is not None and not isinstance(loaded, dict):
                raise ValueError("Config must be an object")
            raw = loaded or {}

        retry_raw = raw.get("retry") or {}
        if not isinstance(retry_raw, dict):
            raise ValueError("config.retry must be an object")

        env = {key: os.environ[var] for var, key in ENV_OVERRIDES.items() if os.getenv(var)}

        def pick(key: str, section: dict[str, Any], name: str, default: float) -> float:
            value = env.get(key, section.get(name))
            return _coerce_seconds(value, key, default)

        retry = RetryConfig(
            up_to=pick("retry.up_to_seconds", retry_raw, "up_to_seconds", RetryConfig.up_to),
            first_delay=pick("retry.first_delay_seconds", retry_raw, "first_delay_seconds", RetryConfig.first_delay),
            backoff_limit=pick(
                "retry.backoff_limit_seconds", retry_raw, "backoff_limit_seconds", RetryConfig.backoff_limit
            ),
        )
        if retry.first_delay <= 0:
            raise ValueError("config.retry.first_delay_seconds must be > 0")
        if retry.backoff_limit < retry.first_delay:
            raise ValueError("config.retry.backoff_limit_seconds must be >= first_delay_seconds")
        if retry.up_to < retry.first_delay:
            raise ValueError("config.retry.up_to_seconds must be >= first_delay_seconds")

        http_timeout = pick("http_timeout_seconds", raw, "http_timeout_seconds", 30.0)
        chat_timeout = pick("chat_timeout_seconds", raw, "chat_timeout_seconds", 10.0)
        if http_timeout <= 0:
            raise ValueError("config.http_timeout_seconds must be > 0")
        if chat_timeout <= 0:
            raise ValueError("config.chat_timeout_seconds must be > 0")

        return cls(retry=retry, http_timeout=http_timeout, chat_timeout=chat_timeout)


def _coerce_seconds(value: Any, key: str, default: float) -> float:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(f"Missing/invalid config.{key}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError as exc:
            raise ValueError(f"Missing/invalid config.{key}") from exc
    raise ValueError(f"Missing/invalid config.{key}")

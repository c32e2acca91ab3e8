from __future__ import annotations

import json
import logging
import re
import sys
from typing import Any, TextIO

REDACTED = "***REDACTED***"

# Attributes present on every LogRecord; anything else was passed via `extra=`.
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class RedactingFilter(logging.Filter):
    """Strips credentials from log records."""

    PATTERNS = [
        (re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----", re.DOTALL), REDACTED),
        (re.compile(r"\b(?:ghp|gho|ghs|ghu|ghr)_[A-Za-z0-9]{16,}\b"), REDACTED),
        (re.compile(r"\bgithub_pat_[A-Za-z0-9_]{16,}\b"), REDACTED),
        (re.compile(r"(?i)(authorization[\"']?\s*[:=]\s*[\"']?)(?:token|bearer)\s+[^\s\"',}]+"), r"\1" + REDACTED),
        (re.compile(r"(https://chat\.googleapis\.com/[^\s?\"']*)\?[^\s\"']*"), r"\1?REDACTED"),
    ]

    def __init__(self, additional_terms: list[str] | None = None):
        super().__init__()
        self._additional = additional_terms or []

    def set_additional_terms(self, terms: list[str]) -> None:
        self._additional = [t for t in terms if t and len(t) > 2]

    def redact(self, text: str) -> str:
        for pattern, replacement in self.PATTERNS:
            text = pattern.sub(replacement, text)
        for term in self._additional:
            if term and len(term) > 2:
                text = text.replace(term, REDACTED)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self.redact(record.getMessage())
        record.args = ()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and not key.startswith("_"):
                payload[key] = _redacting_filter.redact(value) if isinstance(value, str) else value
        if record.exc_info:
            payload["exc_info"] = _redacting_filter.redact(self.formatException(record.exc_info))
        return json.dumps(payload, ensure_ascii=False, default=str)


_redacting_filter = RedactingFilter()

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def parse_level(name: str) -> int:
    try:
        return LEVELS[name.strip().lower()]
    except KeyError:
        raise ValueError(f"unknown log level {name!r}; want one of debug, info, warn, error") from None


def configure_logging(level: str = "info", stream: TextIO | None = None, redact: bool = True) -> None:
    # stdout carries the resource protocol, so logs default to stderr.
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(JsonFormatter())
    if redact:
        handler.addFilter(_redacting_filter)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(parse_level(level))
    root.addHandler(handler)


def set_redaction_terms(terms: list[str]) -> None:
    """Add secret values to the global redaction filter."""
    _redacting_filter.set_additional_terms(terms)

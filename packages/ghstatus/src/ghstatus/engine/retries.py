"""Generic retry loop driven by a classifier and a backoff function.

The caller supplies three callables:

- ``work_fn()`` does the unit of work; it signals failure by raising.
- ``classifier_fn(err)`` maps the last exception (``None`` on success) to an
  :class:`Action`.
- ``backoff_fn(first, previous, limit, err)`` returns the next delay in seconds.
  It receives the exception so it can derive the delay from it, for example
  when rate limited with a fixed window (see ``ghstatus.github.retry.backoff``).

``Retry.up_to`` bounds the cumulative sleep of one call to :meth:`Retry.do`.
"""
from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

T = TypeVar("T")

BackoffFn = Callable[[bool, float, float, Optional[BaseException]], float]
ClassifierFn = Callable[[Optional[BaseException]], "Action"]

_default_logger = logging.getLogger(__name__)


class Action(enum.Enum):
    SUCCESS = "success"
    HARD_FAIL = "hard_fail"
    SOFT_FAIL = "soft_fail"


def constant_backoff(first: bool, previous: float, limit: float, err: BaseException | None = None) -> float:
    return previous


def exponential_backoff(first: bool, previous: float, limit: float, err: BaseException | None = None) -> float:
    if first:
        return previous
    return min(2 * previous, limit)


def simple_classifier(err: BaseException | None) -> Action:
    if err is not None:
        return Action.SOFT_FAIL
    return Action.SUCCESS


@dataclass(frozen=True)
class Retry:
    up_to: float
    first_delay: float
    backoff_limit: float
    sleep: Callable[[float], None] = time.sleep
    log: logging.Logger = field(default=_default_logger, repr=False)

    def __post_init__(self) -> None:
        if self.first_delay <= 0:
            raise ValueError("first_delay must be positive")
        if self.backoff_limit < self.first_delay:
            raise ValueError("backoff_limit must be >= first_delay")
        if self.up_to < self.first_delay:
            raise ValueError("up_to must be >= first_delay")

    def do(self, backoff_fn: BackoffFn, classifier_fn: ClassifierFn, work_fn: Callable[[], T]) -> T | None:
        """Run ``work_fn`` until it succeeds, hard-fails or the budget is spent.

        Returns the result of the successful attempt. On failure, re-raises the
        exception of the last attempt unchanged.
        """
        delay = self.first_delay
        total_delay = 0.0

        attempt = 0
        while True:
            attempt += 1
            result: T | None = None
            err: Exception | None = None
            try:
                result = work_fn()
            except Exception as exc:
                err = exc

            action = classifier_fn(err)
            if action is Action.SUCCESS:
                self.log.info("retry.success attempt=%d total_delay=%ss", attempt, _fmt(total_delay))
                return result
            if action is not Action.HARD_FAIL and action is not Action.SOFT_FAIL:
                raise RuntimeError(f"retry: internal error: unknown action {action!r}")
            if err is None:
                raise RuntimeError(f"retry: classifier returned {action.name} without an error")
            if action is Action.HARD_FAIL:
                raise err

            delay = backoff_fn(attempt == 1, delay, self.backoff_limit, err)
            total_delay += delay
            if total_delay > self.up_to:
                self.log.error(
                    "retry.would_wait_too_long attempt=%d delay=%ss total_delay=%ss up_to=%ss",
                    attempt,
                    _fmt(delay),
                    _fmt(total_delay),
                    _fmt(self.up_to),
                )
                raise err
            self.log.info(
                "retry.waiting attempt=%d delay=%ss total_delay=%ss", attempt, _fmt(delay), _fmt(total_delay)
            )
            self.sleep(delay)


def _fmt(seconds: float) -> str:
    return f"{seconds:g}"

"""Fixed-delay bounded retry for pipeline steps."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from news_issue.errors import FatalStepError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """At most ``1 + max_retries`` attempts, ``delay_seconds`` apart."""

    max_retries: int = 2
    delay_seconds: float = 2.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0.")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0.")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


@dataclass(slots=True)
class RetryOutcome(Generic[T]):
    value: T | None
    attempts: int
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def with_retry(
    fn: Callable[[], T],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
    on_attempt: Callable[[int, Exception | None], None] | None = None,
) -> RetryOutcome[T]:
    """Call ``fn`` until it succeeds or the policy is exhausted.

    ``FatalStepError`` ends the loop after the attempt that raised it.
    ``on_attempt(attempt_no, error)`` is called after every attempt.
    """

    last_error: Exception | None = None
    for attempt in range(1, policy.max_attempts + 1):
        try:
            value = fn()
        except FatalStepError as error:
            _report(on_attempt, attempt, error)
            return RetryOutcome(value=None, attempts=attempt, error=error)
        except Exception as error:  # noqa: BLE001
            _report(on_attempt, attempt, error)
            last_error = error
            if attempt < policy.max_attempts:
                logger.warning(
                    "Attempt %d/%d failed, retrying in %.1fs: %s",
                    attempt,
                    policy.max_attempts,
                    policy.delay_seconds,
                    error,
                )
                sleep(policy.delay_seconds)
            continue
        _report(on_attempt, attempt, None)
        return RetryOutcome(value=value, attempts=attempt)
    return RetryOutcome(value=None, attempts=policy.max_attempts, error=last_error)


def _report(
    on_attempt: Callable[[int, Exception | None], None] | None,
    attempt: int,
    error: Exception | None,
) -> None:
    if on_attempt is not None:
        on_attempt(attempt, error)

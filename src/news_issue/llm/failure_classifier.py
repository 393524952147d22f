"""Deterministic LLM failure classification for step retry policy."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FailureClass(str, Enum):
    """Normalized failure classes used by retry policy."""

    TIMEOUT = "timeout"
    BACKEND_TRANSIENT = "backend_transient"
    BACKEND_NON_RETRYABLE = "backend_non_retryable"
    BILLING_OR_QUOTA = "billing_or_quota"
    ACCESS_OR_AUTH = "access_or_auth"
    MODEL_NOT_AVAILABLE = "model_not_available"


_TRANSIENT_CLASSES = frozenset({FailureClass.TIMEOUT, FailureClass.BACKEND_TRANSIENT})

_BILLING_OR_QUOTA_PATTERNS: tuple[str, ...] = (
    "quota",
    "resource_exhausted",
    "insufficient",
    "billing",
    "payment",
    "credits",
    "usage limit",
)
_ACCESS_OR_AUTH_PATTERNS: tuple[str, ...] = (
    "unauthorized",
    "forbidden",
    "permission denied",
    "invalid api key",
    "incorrect api key",
    "authentication",
)
_MODEL_NOT_AVAILABLE_PATTERNS: tuple[str, ...] = (
    "model not found",
    "unknown model",
    "unsupported model",
    "invalid model",
    "does not exist",
)
_RATE_LIMIT_TRANSIENT_PATTERNS: tuple[str, ...] = (
    "too many requests",
    "rate limit",
    "429",
    "please retry",
    "try again later",
    "overloaded",
)
_GENERIC_TRANSIENT_PATTERNS: tuple[str, ...] = (
    "temporarily unavailable",
    "temporary failure",
    "connection reset",
    "network error",
    "could not resolve host",
    "bad gateway",
    "service unavailable",
)
_TRANSIENT_HTTP_STATUSES = frozenset({408, 409, 429, 500, 502, 503, 504})


@dataclass(slots=True)
class LlmFailureClassification:
    """Normalized failure classification result."""

    failure_class: FailureClass
    reason_code: str
    matched_pattern: str | None

    @property
    def transient(self) -> bool:
        return self.failure_class in _TRANSIENT_CLASSES


def classify_llm_failure(
    *,
    backend: str,
    output: str,
    status_code: int | None = None,
    exit_code: int | None = None,
    transient_exit_codes: tuple[int, ...] = (),
) -> LlmFailureClassification:
    """Classify a failed LLM call into a deterministic retry class.

    Billing, auth and model errors win over rate-limit wording because
    providers often mention retrying even for permanent failures.
    """

    haystack = output.lower()
    for failure_class, patterns in (
        (FailureClass.BILLING_OR_QUOTA, _BILLING_OR_QUOTA_PATTERNS),
        (FailureClass.ACCESS_OR_AUTH, _ACCESS_OR_AUTH_PATTERNS),
        (FailureClass.MODEL_NOT_AVAILABLE, _MODEL_NOT_AVAILABLE_PATTERNS),
    ):
        pattern = _first_match(haystack, patterns)
        if pattern is not None:
            return LlmFailureClassification(
                failure_class=failure_class,
                reason_code=f"{backend}_{failure_class.value}",
                matched_pattern=pattern,
            )

    if status_code in (401, 403):
        return LlmFailureClassification(
            failure_class=FailureClass.ACCESS_OR_AUTH,
            reason_code=f"{backend}_http_{status_code}",
            matched_pattern=None,
        )

    pattern = _first_match(haystack, _RATE_LIMIT_TRANSIENT_PATTERNS) or _first_match(
        haystack,
        _GENERIC_TRANSIENT_PATTERNS,
    )
    if (
        pattern is not None
        or status_code in _TRANSIENT_HTTP_STATUSES
        or (exit_code is not None and exit_code in transient_exit_codes)
    ):
        return LlmFailureClassification(
            failure_class=FailureClass.BACKEND_TRANSIENT,
            reason_code=f"{backend}_backend_transient",
            matched_pattern=pattern,
        )

    return LlmFailureClassification(
        failure_class=FailureClass.BACKEND_NON_RETRYABLE,
        reason_code=f"{backend}_backend_non_retryable",
        matched_pattern=None,
    )


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None

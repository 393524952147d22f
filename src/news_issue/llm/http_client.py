"""OpenAI-compatible chat completions client over httpx."""

from __future__ import annotations

import logging

import httpx

from news_issue.llm.base import LlmCallError
from news_issue.llm.failure_classifier import classify_llm_failure

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 120.0
DEFAULT_USER_AGENT = "news-issue/1.0"


class HttpLlmClient:
    """HTTP client wrapper posting prompts to a ``/chat/completions`` endpoint."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        base_url: str,
        model: str,
        api_key: str | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        temperature: float = 0.3,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        headers = {"User-Agent": DEFAULT_USER_AGENT}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            headers=headers,
            transport=transport,
        )

    def complete(self, prompt: str, *, task: str) -> str:
        payload = {
            "model": self.model,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        try:
            response = self._client.post("/chat/completions", json=payload)
        except httpx.TimeoutException as exc:
            logger.warning("LLM request timed out (task=%s)", task)
            raise LlmCallError(f"LLM request timed out: {exc}", transient=True) from exc
        except httpx.HTTPError as exc:
            logger.warning("LLM transport error (task=%s): %s", task, exc)
            raise LlmCallError(f"LLM transport error: {exc}", transient=True) from exc

        if not response.is_success:
            classification = classify_llm_failure(
                backend="http",
                output=response.text,
                status_code=response.status_code,
            )
            raise LlmCallError(
                f"LLM HTTP {response.status_code} ({classification.reason_code})",
                transient=classification.transient,
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise LlmCallError(f"Malformed LLM response: {exc}", transient=True) from exc
        return str(content or "")

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpLlmClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

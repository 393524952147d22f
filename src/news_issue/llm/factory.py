"""Build the configured LLM client."""

from __future__ import annotations

from news_issue.config import LlmSettings
from news_issue.llm.base import LlmClient
from news_issue.llm.cli_client import CliLlmClient
from news_issue.llm.http_client import HttpLlmClient


def build_llm_client(settings: LlmSettings) -> LlmClient:
    if settings.backend == "cli":
        return CliLlmClient(
            command_template=settings.command_template,
            model=settings.model,
            timeout_seconds=settings.timeout_seconds,
        )
    if settings.backend == "http":
        return HttpLlmClient(
            base_url=settings.base_url,
            model=settings.model,
            api_key=settings.api_key,
            timeout_seconds=settings.timeout_seconds,
            temperature=settings.temperature,
        )
    raise ValueError(f"Unsupported LLM backend: {settings.backend!r}")

"""LLM client interface shared by scoring, generation and finalization."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


class LlmCallError(RuntimeError):
    """LLM call failure with retryability hint."""

    def __init__(self, message: str, *, transient: bool) -> None:
        super().__init__(message)
        self.transient = transient


@runtime_checkable
class LlmClient(Protocol):
    """Protocol implemented by LLM backends."""

    def complete(self, prompt: str, *, task: str) -> str:
        """Return the raw completion text for ``prompt``.

        ``task`` names the calling operation (``score``, ``title``, ``body`` ...)
        and is used only for logging and routing.
        """

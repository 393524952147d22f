"""Subprocess-based LLM client for CLI agents."""

from __future__ import annotations

import logging
import shlex
import subprocess
import tempfile
from pathlib import Path

from news_issue.llm.base import LlmCallError
from news_issue.llm.failure_classifier import classify_llm_failure

logger = logging.getLogger(__name__)

DEFAULT_TRANSIENT_EXIT_CODES: tuple[int, ...] = (75,)


class CliLlmClient:
    """Execute a command template with the prompt and return its stdout."""

    def __init__(
        self,
        *,
        command_template: str,
        model: str,
        timeout_seconds: float,
        transient_exit_codes: tuple[int, ...] = DEFAULT_TRANSIENT_EXIT_CODES,
    ) -> None:
        self.command_template = command_template
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.transient_exit_codes = transient_exit_codes

    def complete(self, prompt: str, *, task: str) -> str:
        with tempfile.TemporaryDirectory(prefix="news-issue-") as workdir:
            prompt_file = Path(workdir) / "prompt.txt"
            prompt_file.write_text(prompt, "utf-8")
            run_args = build_run_args(
                command_template=self.command_template,
                model=self.model,
                prompt=prompt,
                prompt_file=prompt_file,
            )
            try:
                completed = subprocess.run(  # noqa: S603
                    run_args,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout_seconds,
                    check=False,
                )
            except FileNotFoundError as error:
                raise LlmCallError(
                    f"CLI backend command not found: {run_args[0]}",
                    transient=False,
                ) from error
            except subprocess.TimeoutExpired as error:
                logger.warning("CLI LLM call timed out (task=%s)", task)
                raise LlmCallError(
                    f"CLI backend timed out after {self.timeout_seconds}s",
                    transient=True,
                ) from error
            except OSError as error:
                raise LlmCallError(
                    f"CLI backend failed to start: {error}",
                    transient=True,
                ) from error

        if completed.returncode != 0:
            classification = classify_llm_failure(
                backend="cli",
                output=f"{completed.stderr}\n{completed.stdout}",
                exit_code=completed.returncode,
                transient_exit_codes=self.transient_exit_codes,
            )
            raise LlmCallError(
                f"CLI backend exited with {completed.returncode} ({classification.reason_code})",
                transient=classification.transient,
            )
        return completed.stdout


def build_run_args(
    *,
    command_template: str,
    model: str,
    prompt: str,
    prompt_file: Path,
) -> list[str]:
    stripped = command_template.strip()
    if not stripped:
        raise LlmCallError("CLI backend command template is empty.", transient=False)
    if "{prompt}" not in stripped and "{prompt_file}" not in stripped:
        raise LlmCallError(
            "CLI backend command template must include {prompt} or {prompt_file}.",
            transient=False,
        )
    try:
        rendered = stripped.format(
            model=shlex.quote(model),
            prompt=shlex.quote(prompt),
            prompt_file=shlex.quote(str(prompt_file)),
        )
    except KeyError as error:
        raise LlmCallError(
            f"Unsupported command template placeholder: {error}",
            transient=False,
        ) from error

    argv = shlex.split(rendered)
    if not argv:
        raise LlmCallError("CLI backend command template rendered empty command.", transient=False)
    return argv

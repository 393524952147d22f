"""Prefect flow wrapper around the issue pipeline.

Each step runs as a Prefect task so runs show up step by step in the Prefect
UI. Retries stay with ``RetryPolicy``; the tasks themselves never retry.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from prefect import flow, task
from prefect.cache_policies import NONE

from news_issue.config import Settings
from news_issue.llm.base import LlmClient
from news_issue.models import PipelineResult, StepResult
from news_issue.notify import Notifier
from news_issue.orchestrator.pipeline import IssuePipeline, PipelineStep, build_pipeline
from news_issue.repository import IssueRepository

logger = logging.getLogger(__name__)


@task(name="issue-step", cache_policy=NONE)
def run_pipeline_step(pipeline: IssuePipeline, issue_id: str, step: PipelineStep) -> StepResult:
    return pipeline.run_step(issue_id, step)


@flow(name="issue_pipeline")
def issue_pipeline_flow(
    *,
    issue_id: str,
    settings: Settings,
    llm: LlmClient | None = None,
    notifier: Notifier | None = None,
    on_progress: Callable[[str], None] | None = None,
) -> PipelineResult:
    emit = on_progress or (lambda _: None)
    repository = IssueRepository(settings.db_path)
    try:
        repository.init_schema()
        pipeline = build_pipeline(settings, repository, llm=llm, notifier=notifier)

        def runner(run_issue_id: str, step: PipelineStep) -> StepResult:
            emit(f"[{step.name}] started")
            result = run_pipeline_step(pipeline, run_issue_id, step)
            emit(f"[{step.name}] {result.status.value} after {result.attempts} attempt(s)")
            return result

        return pipeline.run(issue_id, step_runner=runner)
    finally:
        repository.close()

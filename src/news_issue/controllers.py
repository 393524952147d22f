"""Controllers for issue assembly CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from news_issue.allocation.service import AllocationStageService
from news_issue.config import Settings
from news_issue.finalize.finalizer import Finalizer, LlmSubjectLineWriter
from news_issue.finalize.lifecycle import IssueLifecycleService
from news_issue.ingestion.catalog import load_catalog
from news_issue.ingestion.service import IngestionService
from news_issue.ingestion.sources import JsonFileSource
from news_issue.llm.factory import build_llm_client
from news_issue.models import Issue, PipelineResult
from news_issue.notify import LoggingNotifier
from news_issue.orchestrator.pipeline import build_pipeline
from news_issue.repository import IssueRepository


@dataclass(slots=True)
class CatalogLoadCommand:
    db_path: Path | None
    path: Path


@dataclass(slots=True)
class CandidatesImportCommand:
    db_path: Path | None
    path: Path
    module_id: str | None


@dataclass(slots=True)
class IssueCreateCommand:
    db_path: Path | None
    issue_date: date
    issue_id: str | None = None


@dataclass(slots=True)
class IssueCommand:
    """CLI inputs for commands addressing a single issue."""

    db_path: Path | None
    issue_id: str


@dataclass(slots=True)
class IssueListCommand:
    db_path: Path | None
    limit: int


@dataclass(slots=True)
class PipelineRunCommand:
    db_path: Path | None
    issue_id: str
    use_prefect: bool = False


@dataclass(slots=True)
class AllocationPinCommand:
    """CLI inputs for per-issue pin overrides."""

    db_path: Path | None
    issue_id: str
    module_id: str
    asset_id: str
    position: int | None
    unpin: bool = False
    reset: bool = False


@dataclass(slots=True)
class AllocationSelectCommand:
    db_path: Path | None
    issue_id: str
    module_id: str
    item_ids: tuple[str, ...]
    clear: bool = False


@dataclass(slots=True)
class ContentReorderCommand:
    db_path: Path | None
    issue_id: str
    module_id: str
    content_ids: tuple[str, ...]


@dataclass(slots=True)
class ContentSkipCommand:
    db_path: Path | None
    content_id: str
    skipped: bool = True


class IssueCliController:
    """Coordinates issue command execution."""

    def load_catalog(self, command: CatalogLoadCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            summary = load_catalog(repository, command.path)
        return [f"Catalog loaded: modules={summary.modules} assets={summary.assets}"]

    def import_candidates(self, command: CandidatesImportCommand) -> list[str]:
        settings = _settings(command.db_path)
        module_id = command.module_id or settings.ingest.default_module_id
        with _repository(settings) as repository:
            summary = IngestionService(
                repository=repository,
                default_module_id=module_id,
            ).import_from(JsonFileSource(command.path, default_module_id=module_id))
        lines = [
            "Candidates imported: "
            f"fetched={summary.fetched} inserted={summary.inserted} updated={summary.updated}",
        ]
        if summary.unrouted:
            lines.append(f"Warning: {summary.unrouted} candidates have no module and stay unused.")
        return lines

    def create_issue(self, command: IssueCreateCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            issue = repository.create_issue(
                issue_date=command.issue_date,
                issue_id=command.issue_id,
            )
        return [f"Issue created: {_issue_line(issue)}"]

    def list_issues(self, command: IssueListCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            issues = repository.list_issues(limit=command.limit)
        if not issues:
            return ["No issues."]
        return [_issue_line(issue) for issue in issues]

    def show_issue(self, command: IssueCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            issue = repository.require_issue(command.issue_id)
            lines = [_issue_line(issue)]
            if issue.failed_step:
                lines.append(f"  failed_step={issue.failed_step} last_error={issue.last_error}")
            for module in repository.list_modules():
                allocation = repository.get_allocation(issue.issue_id, module.module_id)
                if allocation is None:
                    lines.append(f"  [{module.module_id}] not allocated")
                    continue
                state = "selected" if allocation.selected_at else "awaiting manual selection"
                lines.append(
                    f"  [{module.module_id}] {state} mode={allocation.selection_mode.value} "
                    f"items={len(allocation.item_ids)}/{module.count} "
                    f"pinned={','.join(allocation.pinned_ids) or '-'}",
                )
                units = {
                    unit.content_id: unit
                    for unit in repository.list_content(issue.issue_id, module_id=module.module_id)
                }
                for position, item_id in enumerate(allocation.item_ids, start=1):
                    unit = units.get(item_id)
                    label = unit.headline if unit is not None else item_id
                    lines.append(f"    {position}. {label}")
            attempts = repository.list_step_attempts(issue.issue_id)
        failed_attempts = [attempt for attempt in attempts if attempt.error]
        if failed_attempts:
            lines.append(f"  failed attempts: {len(failed_attempts)}")
            lines.extend(
                f"    {attempt.step_name}#{attempt.attempt_no}: {attempt.error}"
                for attempt in failed_attempts[-5:]
            )
        return lines

    def run_pipeline(self, command: PipelineRunCommand) -> list[str]:
        settings = _settings(command.db_path)
        settings.validate_for_llm()
        if command.use_prefect:
            from news_issue.orchestrator.prefect_flow import issue_pipeline_flow  # noqa: PLC0415

            result = issue_pipeline_flow(
                issue_id=command.issue_id,
                settings=settings,
                notifier=LoggingNotifier(),
            )
            return _pipeline_lines(result)

        with _repository(settings) as repository:
            pipeline = build_pipeline(settings, repository, notifier=LoggingNotifier())
            result = pipeline.run(command.issue_id)
        return _pipeline_lines(result)

    def finalize_issue(self, command: IssueCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            finalizer = Finalizer(
                repository=repository,
                subject_writer=LlmSubjectLineWriter(llm=build_llm_client(settings.llm)),
            )
            summary = finalizer.finalize(issue_id=command.issue_id)
        return [
            f"Issue {command.issue_id} finalized: active_units={summary.active_units} "
            f"released={summary.released}",
            f"Subject: {summary.subject_line or '-'}",
        ]

    def submit_for_review(self, command: IssueCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            issue = _lifecycle(repository, settings).submit_for_review(command.issue_id)
        return [_issue_line(issue)]

    def mark_sent(self, command: IssueCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            issue = _lifecycle(repository, settings).mark_sent(command.issue_id)
        return [_issue_line(issue)]

    def pin(self, command: AllocationPinCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            service = _allocation(repository, settings)
            if command.reset:
                allocation = service.remove_pin_override(
                    issue_id=command.issue_id,
                    module_id=command.module_id,
                    asset_id=command.asset_id,
                )
            else:
                if command.position is None and not command.unpin:
                    raise ValueError("Provide --position N, --unpin or --reset.")
                allocation = service.set_pin_override(
                    issue_id=command.issue_id,
                    module_id=command.module_id,
                    asset_id=command.asset_id,
                    position=None if command.unpin else command.position,
                )
        return [
            f"Pin overrides for {command.module_id}: {allocation.pinned_overrides or '{}'}",
            f"Current items: {', '.join(allocation.item_ids) or '-'}",
        ]

    def select(self, command: AllocationSelectCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            service = _allocation(repository, settings)
            if command.clear:
                service.clear_selection(issue_id=command.issue_id, module_id=command.module_id)
                return [f"Selection cleared for {command.module_id}."]
            allocation = service.select_manually(
                issue_id=command.issue_id,
                module_id=command.module_id,
                item_ids=list(command.item_ids),
            )
        return [f"Selected for {command.module_id}: {', '.join(allocation.item_ids) or '-'}"]

    def reorder(self, command: ContentReorderCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            Finalizer(repository=repository).reorder(
                issue_id=command.issue_id,
                module_id=command.module_id,
                content_ids=list(command.content_ids),
            )
        return [
            f"Manual order stored for {command.module_id}; "
            "run `issue finalize` to apply it.",
        ]

    def skip(self, command: ContentSkipCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            unit = Finalizer(repository=repository).set_skipped(
                content_id=command.content_id,
                skipped=command.skipped,
            )
        state = "skipped" if unit.skipped else "restored"
        return [f"Content {unit.content_id} {state}; run `issue finalize` to apply it."]


def _settings(db_path: Path | None) -> Settings:
    settings = Settings.from_env(db_path=db_path)
    settings.validate()
    return settings


@contextmanager
def _repository(settings: Settings) -> Iterator[IssueRepository]:
    repository = IssueRepository(settings.db_path)
    try:
        repository.init_schema()
        yield repository
    finally:
        repository.close()


def _allocation(repository: IssueRepository, settings: Settings) -> AllocationStageService:
    return AllocationStageService(
        repository=repository,
        allocation_settings=settings.allocation,
        generation_settings=settings.generation,
    )


def _lifecycle(repository: IssueRepository, settings: Settings) -> IssueLifecycleService:
    return IssueLifecycleService(
        repository=repository,
        allocation=_allocation(repository, settings),
        notifier=LoggingNotifier(),
    )


def _issue_line(issue: Issue) -> str:
    subject = f" subject={issue.subject_line!r}" if issue.subject_line else ""
    return f"{issue.issue_id} date={issue.issue_date} status={issue.status.value}{subject}"


def _pipeline_lines(result: PipelineResult) -> list[str]:
    lines = [
        f"Pipeline {'succeeded' if result.success else 'failed'} for issue {result.issue_id}",
    ]
    for step in result.results:
        detail = step.error if step.error else ", ".join(f"{k}={v}" for k, v in step.data.items())
        lines.append(f"  {step.step_name}: {step.status.value} attempts={step.attempts} {detail}")
    return lines

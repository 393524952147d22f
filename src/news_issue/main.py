"""CLI entrypoint for news-issue."""

import logging
from collections.abc import Callable
from datetime import date, datetime
from pathlib import Path

import rich_click as click

from news_issue import __version__
from news_issue.controllers import (
    AllocationPinCommand,
    AllocationSelectCommand,
    CandidatesImportCommand,
    CatalogLoadCommand,
    ContentReorderCommand,
    ContentSkipCommand,
    IssueCliController,
    IssueCommand,
    IssueCreateCommand,
    IssueListCommand,
    PipelineRunCommand,
)
from news_issue.errors import PipelineError

click.rich_click.USE_MARKDOWN = True
CONTROLLER = IssueCliController()

db_path_option = click.option(
    "--db-path",
    type=click.Path(path_type=Path),
    default=None,
    help="SQLite DB path.",
)


@click.group()
@click.version_option(version=__version__, prog_name="news-issue")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def news_issue(verbose: bool) -> None:
    """Newsletter issue assembly CLI."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@news_issue.group()
def catalog() -> None:
    """Module and asset catalog commands."""


@catalog.command("load")
@db_path_option
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def catalog_load(db_path: Path | None, path: Path) -> None:
    """Upsert modules, scoring criteria and assets from a JSON catalog."""

    _run(lambda: CONTROLLER.load_catalog(CatalogLoadCommand(db_path=db_path, path=path)))


@news_issue.group()
def candidates() -> None:
    """Candidate pool commands."""


@candidates.command("import")
@db_path_option
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--module", "module_id", default=None, help="Module for candidates without one.")
def candidates_import(db_path: Path | None, path: Path, module_id: str | None) -> None:
    """Import candidates from a JSON file into the unassigned pool."""

    _run(
        lambda: CONTROLLER.import_candidates(
            CandidatesImportCommand(db_path=db_path, path=path, module_id=module_id),
        ),
    )


@news_issue.group()
def issue() -> None:
    """Issue lifecycle commands."""


@issue.command("create")
@db_path_option
@click.option(
    "--date",
    "issue_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Issue date (YYYY-MM-DD). Defaults to today.",
)
@click.option("--id", "issue_id", default=None, help="Explicit issue id.")
def issue_create(db_path: Path | None, issue_date: datetime | None, issue_id: str | None) -> None:
    """Create an issue in `processing` state."""

    _run(
        lambda: CONTROLLER.create_issue(
            IssueCreateCommand(
                db_path=db_path,
                issue_date=issue_date.date() if issue_date else date.today(),
                issue_id=issue_id,
            ),
        ),
    )


@issue.command("list")
@db_path_option
@click.option("--limit", type=click.IntRange(min=1, max=500), default=20, show_default=True)
def issue_list(db_path: Path | None, limit: int) -> None:
    """List latest issues."""

    _run(lambda: CONTROLLER.list_issues(IssueListCommand(db_path=db_path, limit=limit)))


@issue.command("show")
@db_path_option
@click.argument("issue_id")
def issue_show(db_path: Path | None, issue_id: str) -> None:
    """Show issue status, allocations and recent failed step attempts."""

    _run(lambda: CONTROLLER.show_issue(IssueCommand(db_path=db_path, issue_id=issue_id)))


@issue.command("finalize")
@db_path_option
@click.argument("issue_id")
def issue_finalize(db_path: Path | None, issue_id: str) -> None:
    """Re-rank content after manual edits and return the issue to `draft`."""

    _run(lambda: CONTROLLER.finalize_issue(IssueCommand(db_path=db_path, issue_id=issue_id)))


@issue.command("submit")
@db_path_option
@click.argument("issue_id")
def issue_submit(db_path: Path | None, issue_id: str) -> None:
    """Move a draft issue to `in_review`."""

    _run(lambda: CONTROLLER.submit_for_review(IssueCommand(db_path=db_path, issue_id=issue_id)))


@issue.command("mark-sent")
@db_path_option
@click.argument("issue_id")
def issue_mark_sent(db_path: Path | None, issue_id: str) -> None:
    """Mark a reviewed issue as sent and record asset usage."""

    _run(lambda: CONTROLLER.mark_sent(IssueCommand(db_path=db_path, issue_id=issue_id)))


@news_issue.group()
def pipeline() -> None:
    """Pipeline commands."""


@pipeline.command("run")
@db_path_option
@click.argument("issue_id")
@click.option("--prefect", "use_prefect", is_flag=True, help="Run as a Prefect flow.")
def pipeline_run(db_path: Path | None, issue_id: str, use_prefect: bool) -> None:
    """Run every assembly step for an issue with bounded retry.

    Exits with status 1 when the issue is unknown or already in review or sent.
    Step failures are printed with the failed step and its last error.
    """

    _run(
        lambda: CONTROLLER.run_pipeline(
            PipelineRunCommand(db_path=db_path, issue_id=issue_id, use_prefect=use_prefect),
        ),
    )


@news_issue.group()
def allocation() -> None:
    """Module allocation commands."""


@allocation.command("pin")
@db_path_option
@click.argument("issue_id")
@click.argument("module_id")
@click.argument("asset_id")
@click.option("--position", type=click.IntRange(min=1), default=None, help="Pinned slot.")
@click.option("--unpin", is_flag=True, help="Unpin a globally pinned asset for this issue.")
@click.option("--reset", is_flag=True, help="Drop the per-issue override for this asset.")
def allocation_pin(  # noqa: PLR0913
    db_path: Path | None,
    issue_id: str,
    module_id: str,
    asset_id: str,
    position: int | None,
    unpin: bool,
    reset: bool,
) -> None:
    """Override the pin of one asset for this issue only."""

    _run(
        lambda: CONTROLLER.pin(
            AllocationPinCommand(
                db_path=db_path,
                issue_id=issue_id,
                module_id=module_id,
                asset_id=asset_id,
                position=position,
                unpin=unpin,
                reset=reset,
            ),
        ),
    )


@allocation.command("select")
@db_path_option
@click.argument("issue_id")
@click.argument("module_id")
@click.argument("item_ids", nargs=-1)
@click.option("--clear", is_flag=True, help="Drop the selection so the next run selects again.")
def allocation_select(
    db_path: Path | None,
    issue_id: str,
    module_id: str,
    item_ids: tuple[str, ...],
    clear: bool,
) -> None:
    """Store an ordered manual selection for a module."""

    _run(
        lambda: CONTROLLER.select(
            AllocationSelectCommand(
                db_path=db_path,
                issue_id=issue_id,
                module_id=module_id,
                item_ids=item_ids,
                clear=clear,
            ),
        ),
    )


@news_issue.group()
def content() -> None:
    """Generated content commands."""


@content.command("reorder")
@db_path_option
@click.argument("issue_id")
@click.argument("module_id")
@click.argument("content_ids", nargs=-1, required=True)
def content_reorder(
    db_path: Path | None,
    issue_id: str,
    module_id: str,
    content_ids: tuple[str, ...],
) -> None:
    """Put the listed units first, in the given order."""

    _run(
        lambda: CONTROLLER.reorder(
            ContentReorderCommand(
                db_path=db_path,
                issue_id=issue_id,
                module_id=module_id,
                content_ids=content_ids,
            ),
        ),
    )


@content.command("skip")
@db_path_option
@click.argument("content_id")
@click.option("--restore", is_flag=True, help="Undo a previous skip.")
def content_skip(db_path: Path | None, content_id: str, restore: bool) -> None:
    """Exclude a unit from the issue."""

    _run(
        lambda: CONTROLLER.skip(
            ContentSkipCommand(db_path=db_path, content_id=content_id, skipped=not restore),
        ),
    )


def _run(action: Callable[[], list[str]]) -> None:
    try:
        lines = action()
    except (PipelineError, ValueError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    news_issue()

from __future__ import annotations

import json
from pathlib import Path

import allure
import pytest
from click.testing import CliRunner

from news_issue.main import news_issue
from news_issue.repository import IssueRepository

pytestmark = [
    allure.epic("Issue Assembly"),
    allure.feature("CLI"),
]

CLI_ENV = {
    "NEWS_ISSUE_LLM_BACKEND": "cli",
    "NEWS_ISSUE_LLM_COMMAND_TEMPLATE": "echo {prompt}",
    "NEWS_ISSUE_RETRY_DELAY_SECONDS": "0",
    "NEWS_ISSUE_CANDIDATES_FILE": "",
    "NEWS_ISSUE_RSS_FEEDS": "",
}


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "cli.db"


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def catalog_file(tmp_path: Path) -> Path:
    path = tmp_path / "catalog.json"
    path.write_text(
        json.dumps(
            {
                "modules": [
                    {"module_id": "apps", "name": "Apps", "kind": "app", "count": 2},
                ],
                "assets": [
                    {
                        "asset_id": "app-1",
                        "module_kind": "app",
                        "priority": 5,
                        "is_affiliate": True,
                    },
                    {
                        "asset_id": "app-2",
                        "module_kind": "app",
                        "priority": 3,
                        "is_affiliate": True,
                    },
                    {
                        "asset_id": "app-3",
                        "module_kind": "app",
                        "priority": 1,
                        "is_affiliate": True,
                    },
                ],
            },
        ),
        encoding="utf-8",
    )
    return path


def _invoke(runner: CliRunner, db_path: Path, *args: str):
    command, *rest = args
    subcommand, *params = rest
    return runner.invoke(
        news_issue,
        [command, subcommand, "--db-path", str(db_path), *params],
        env=CLI_ENV,
    )


def test_issue_lifecycle_through_cli(runner, db_path, catalog_file) -> None:
    loaded = _invoke(runner, db_path, "catalog", "load", str(catalog_file))
    created = _invoke(runner, db_path, "issue", "create", "--date", "2026-10-15", "--id", "i-1")
    pin_args = ("allocation", "pin", "i-1", "apps", "app-3", "--position", "1")
    pinned = _invoke(runner, db_path, *pin_args)
    ran = _invoke(runner, db_path, "pipeline", "run", "i-1")
    shown = _invoke(runner, db_path, "issue", "show", "i-1")
    submitted = _invoke(runner, db_path, "issue", "submit", "i-1")
    sent = _invoke(runner, db_path, "issue", "mark-sent", "i-1")

    for result in (loaded, created, pinned, ran, shown, submitted, sent):
        assert result.exit_code == 0, result.output
    assert "modules=1 assets=3" in loaded.output
    assert "i-1 date=2026-10-15 status=processing" in created.output
    assert "Pipeline succeeded for issue i-1" in ran.output
    assert "[apps] selected" in shown.output
    assert "1. app-3" in shown.output
    assert "2. app-1" in shown.output
    assert "status=sent" in sent.output

    repository = IssueRepository(db_path)
    try:
        assert repository.get_asset("app-3").times_used == 1
        assert repository.get_asset("app-2").times_used == 0
    finally:
        repository.close()


def test_issue_list_and_invalid_transition(runner, db_path) -> None:
    _invoke(runner, db_path, "issue", "create", "--date", "2026-10-15", "--id", "i-2")

    listed = _invoke(runner, db_path, "issue", "list")
    submitted = _invoke(runner, db_path, "issue", "submit", "i-2")

    assert "i-2 date=2026-10-15 status=processing" in listed.output
    assert submitted.exit_code == 1
    assert "in_review" in submitted.output


def test_candidates_import_reports_unrouted(runner, db_path, tmp_path) -> None:
    path = tmp_path / "candidates.json"
    path.write_text(
        json.dumps([{"url": "https://example.com/a", "title": "A story"}]),
        encoding="utf-8",
    )

    result = _invoke(runner, db_path, "candidates", "import", str(path))

    assert result.exit_code == 0, result.output
    assert "fetched=1 inserted=1 updated=0" in result.output
    assert "1 candidates have no module" in result.output


def test_pipeline_run_rejects_cli_backend_without_prompt_placeholder(runner, db_path) -> None:
    _invoke(runner, db_path, "issue", "create", "--id", "i-3")

    result = runner.invoke(
        news_issue,
        ["pipeline", "run", "--db-path", str(db_path), "i-3"],
        env={**CLI_ENV, "NEWS_ISSUE_LLM_COMMAND_TEMPLATE": "agent --run"},
    )

    assert result.exit_code == 1
    assert "COMMAND_TEMPLATE" in result.output


def test_unknown_issue_is_reported(runner, db_path) -> None:
    result = _invoke(runner, db_path, "issue", "show", "missing")

    assert result.exit_code == 1
    assert "Issue not found: missing" in result.output


def test_pin_requires_an_action(runner, db_path, catalog_file) -> None:
    _invoke(runner, db_path, "catalog", "load", str(catalog_file))
    _invoke(runner, db_path, "issue", "create", "--id", "i-4")

    result = _invoke(runner, db_path, "allocation", "pin", "i-4", "apps", "app-1")

    assert result.exit_code == 1
    assert "--unpin" in result.output


def test_pipeline_run_for_unknown_issue_exits_with_error(runner, db_path) -> None:
    result = _invoke(runner, db_path, "pipeline", "run", "missing")

    assert result.exit_code == 1
    assert "Issue not found: missing" in result.output

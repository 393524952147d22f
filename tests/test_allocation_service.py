from __future__ import annotations

from datetime import UTC, date, datetime

import allure
import pytest

from news_issue.allocation.service import AllocationStageService
from news_issue.config import AllocationSettings, GenerationSettings
from news_issue.errors import FatalStepError
from news_issue.generation.generator import build_content_id
from news_issue.models import (
    Asset,
    GeneratedContent,
    ModuleConfig,
    ModuleKind,
    SelectionMode,
)

pytestmark = [
    allure.epic("Issue Assembly"),
    allure.feature("Allocation"),
]

SENT_AT = datetime(2026, 10, 15, 9, 0, tzinfo=UTC)


def _service(repository, *, min_fact_check_score: int = 0) -> AllocationStageService:
    return AllocationStageService(
        repository=repository,
        allocation_settings=AllocationSettings(random_seed=1),
        generation_settings=GenerationSettings(min_fact_check_score=min_fact_check_score),
    )


@pytest.fixture()
def apps_issue(repository):
    repository.upsert_module(
        ModuleConfig(module_id="apps", name="Apps", kind=ModuleKind.APP, count=2),
    )
    for asset_id, priority in (("a", 9.0), ("b", 5.0), ("c", 1.0)):
        repository.upsert_asset(
            Asset(
                asset_id=asset_id,
                name=asset_id.upper(),
                module_kind=ModuleKind.APP,
                priority=priority,
                is_affiliate=True,
            ),
        )
    return repository.create_issue(issue_date=date(2026, 10, 15))


def test_run_allocates_and_keeps_existing_selection(repository, apps_issue) -> None:
    service = _service(repository)

    first = service.run(issue_id=apps_issue.issue_id)
    second = service.run(issue_id=apps_issue.issue_id)

    assert first == {"apps": {"items": 2, "pinned": 0}}
    assert second == {"apps": {"items": 2, "reused": True}}
    assert repository.get_allocation(apps_issue.issue_id, "apps").item_ids == ["a", "b"]


def test_pin_override_reallocates_selected_module(repository, apps_issue) -> None:
    service = _service(repository)
    service.run(issue_id=apps_issue.issue_id)

    allocation = service.set_pin_override(
        issue_id=apps_issue.issue_id,
        module_id="apps",
        asset_id="c",
        position=1,
    )

    assert allocation.item_ids == ["c", "a"]
    assert allocation.pinned_ids == ["c"]
    assert allocation.pinned_overrides == {"c": 1}

    reset = service.remove_pin_override(
        issue_id=apps_issue.issue_id,
        module_id="apps",
        asset_id="c",
    )
    assert reset.item_ids == ["a", "b"]


def test_pin_override_position_must_fit_module(repository, apps_issue) -> None:
    with pytest.raises(ValueError, match="1..2"):
        _service(repository).set_pin_override(
            issue_id=apps_issue.issue_id,
            module_id="apps",
            asset_id="c",
            position=3,
        )


def test_usage_is_recorded_once_per_allocation(repository, apps_issue) -> None:
    service = _service(repository)
    service.run(issue_id=apps_issue.issue_id)

    recorded = service.record_usage(issue_id=apps_issue.issue_id, used_at=SENT_AT)
    again = service.record_usage(issue_id=apps_issue.issue_id, used_at=SENT_AT)

    assert (recorded, again) == (2, 0)
    used = repository.get_asset("a")
    assert used.times_used == 1
    assert used.last_used_at == SENT_AT
    assert repository.get_asset("c").last_used_at is None


def test_manual_module_waits_for_operator_selection(repository) -> None:
    repository.upsert_module(
        ModuleConfig(
            module_id="poll",
            name="Poll",
            kind=ModuleKind.POLL,
            count=1,
            selection_mode=SelectionMode.MANUAL,
        ),
    )
    for asset_id in ("p1", "p2"):
        repository.upsert_asset(
            Asset(asset_id=asset_id, name=asset_id, module_kind=ModuleKind.POLL),
        )
    issue = repository.create_issue(issue_date=date(2026, 10, 15))
    service = _service(repository)

    pending = service.run(issue_id=issue.issue_id)
    service.select_manually(issue_id=issue.issue_id, module_id="poll", item_ids=["p2"])
    after = service.run(issue_id=issue.issue_id)

    assert pending == {"poll": {"items": 0, "manual": True}}
    assert after == {"poll": {"items": 1, "reused": True}}
    assert repository.get_allocation(issue.issue_id, "poll").item_ids == ["p2"]

    with pytest.raises(ValueError, match="at most 1"):
        service.select_manually(issue_id=issue.issue_id, module_id="poll", item_ids=["p1", "p2"])
    with pytest.raises(ValueError, match="Unknown"):
        service.select_manually(issue_id=issue.issue_id, module_id="poll", item_ids=["zz"])


def test_clear_selection_lets_next_run_select_again(repository, apps_issue) -> None:
    service = _service(repository)
    service.run(issue_id=apps_issue.issue_id)

    cleared = service.clear_selection(issue_id=apps_issue.issue_id, module_id="apps")
    rerun = service.run(issue_id=apps_issue.issue_id)

    assert cleared.item_ids == []
    assert rerun == {"apps": {"items": 2, "pinned": 0}}


def test_article_module_allocates_fact_checked_units(
    repository,
    make_candidate,
    make_article_module,
) -> None:
    repository.upsert_module(make_article_module(count=1))
    issue = repository.create_issue(issue_date=date(2026, 10, 15))
    for candidate_id, fact_check in (("a", 10), ("b", 20), ("c", 2)):
        repository.upsert_candidate(make_candidate(candidate_id))
        repository.assign_candidates(
            issue_id=issue.issue_id,
            module_id="news",
            candidate_ids=[candidate_id],
        )
        repository.insert_content(
            GeneratedContent(
                content_id=build_content_id(issue.issue_id, "news", candidate_id),
                issue_id=issue.issue_id,
                module_id="news",
                candidate_id=candidate_id,
                headline=f"Headline {candidate_id}",
                body="Body text.",
                fact_check_score=fact_check,
            ),
        )

    _service(repository, min_fact_check_score=5).run(issue_id=issue.issue_id)

    allocation = repository.get_allocation(issue.issue_id, "news")
    assert allocation.item_ids == [build_content_id(issue.issue_id, "news", "b")]


def test_default_settings_do_not_allocate_units_whose_fact_check_failed(
    repository,
    make_candidate,
    make_article_module,
) -> None:
    repository.upsert_module(make_article_module(count=2))
    issue = repository.create_issue(issue_date=date(2026, 10, 15))
    for candidate_id, fact_check in (("verified", 24), ("unverified", 0)):
        repository.upsert_candidate(make_candidate(candidate_id))
        repository.assign_candidates(
            issue_id=issue.issue_id,
            module_id="news",
            candidate_ids=[candidate_id],
        )
        repository.insert_content(
            GeneratedContent(
                content_id=build_content_id(issue.issue_id, "news", candidate_id),
                issue_id=issue.issue_id,
                module_id="news",
                candidate_id=candidate_id,
                headline=f"Headline {candidate_id}",
                body="Body text.",
                fact_check_score=fact_check,
                fact_check_details="Fact-check failed: timeout" if fact_check == 0 else "ok",
            ),
        )
    service = AllocationStageService(
        repository=repository,
        allocation_settings=AllocationSettings(random_seed=1),
        generation_settings=GenerationSettings(),
    )

    service.run(issue_id=issue.issue_id)

    allocation = repository.get_allocation(issue.issue_id, "news")
    assert allocation.item_ids == [build_content_id(issue.issue_id, "news", "verified")]


def test_run_without_active_modules_is_fatal(repository) -> None:
    issue = repository.create_issue(issue_date=date(2026, 10, 15))

    with pytest.raises(FatalStepError):
        _service(repository).run(issue_id=issue.issue_id)

"""Allocation stage service and operator overrides."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from news_issue.allocation.pins import PinLayers
from news_issue.allocation.selector import AllocationSelector, issue_day_start, seeded_rng
from news_issue.allocation.strategies import Selection, SelectionRequired
from news_issue.config import AllocationSettings, GenerationSettings
from news_issue.errors import FatalStepError
from news_issue.models import (
    Asset,
    Issue,
    ModuleAllocation,
    ModuleConfig,
    ModuleKind,
    SelectionMode,
)
from news_issue.repository import IssueRepository
from news_issue.storage.common import utc_now

logger = logging.getLogger(__name__)


class AllocationStageService:
    """Allocates every active module of an issue; existing selections are kept."""

    def __init__(
        self,
        *,
        repository: IssueRepository,
        allocation_settings: AllocationSettings,
        generation_settings: GenerationSettings,
        selector: AllocationSelector | None = None,
    ) -> None:
        self.repository = repository
        self.allocation_settings = allocation_settings
        self.generation_settings = generation_settings
        self.selector = selector or AllocationSelector()

    def run(self, *, issue_id: str) -> dict[str, Any]:
        issue = self.repository.require_issue(issue_id)
        modules = self.repository.list_modules()
        if not modules:
            raise FatalStepError("No active modules configured.")

        results: dict[str, Any] = {}
        for module in modules:
            existing = self.repository.get_allocation(issue_id, module.module_id)
            if existing is not None and existing.selected_at is not None:
                results[module.module_id] = {"items": len(existing.item_ids), "reused": True}
                continue
            allocation = self._allocate_module(issue, module, existing)
            results[module.module_id] = (
                {"items": len(allocation.item_ids), "pinned": len(allocation.pinned_ids)}
                if allocation.selected_at is not None
                else {"items": 0, "manual": True}
            )
        return results

    def select_manually(
        self,
        *,
        issue_id: str,
        module_id: str,
        item_ids: list[str],
    ) -> ModuleAllocation:
        """Store an operator-chosen ordered selection for one module."""

        issue = self.repository.require_issue(issue_id)
        module = self._module(module_id)
        if len(item_ids) > module.count:
            raise ValueError(
                f"Module {module_id} holds at most {module.count} items, got {len(item_ids)}.",
            )
        if len(set(item_ids)) != len(item_ids):
            raise ValueError("Manual selection must not repeat items.")
        known = {asset.asset_id for asset in self.candidates_for(issue, module)}
        unknown = [item_id for item_id in item_ids if item_id not in known]
        if unknown:
            raise ValueError(f"Unknown or ineligible items for {module_id}: {', '.join(unknown)}")

        existing = self.repository.get_allocation(issue_id, module_id)
        allocation = ModuleAllocation(
            issue_id=issue_id,
            module_id=module_id,
            item_ids=list(item_ids),
            selection_mode=SelectionMode.MANUAL,
            pinned_overrides=dict(existing.pinned_overrides) if existing else {},
            selected_at=utc_now(),
        )
        self.repository.save_allocation(allocation)
        return allocation

    def clear_selection(self, *, issue_id: str, module_id: str) -> ModuleAllocation:
        """Drop the current selection so the next allocation run selects again."""

        self.repository.require_issue(issue_id)
        module = self._module(module_id)
        existing = self.repository.get_allocation(issue_id, module_id)
        allocation = ModuleAllocation(
            issue_id=issue_id,
            module_id=module_id,
            item_ids=[],
            selection_mode=module.selection_mode,
            pinned_overrides=dict(existing.pinned_overrides) if existing else {},
        )
        self.repository.save_allocation(allocation)
        return allocation

    def set_pin_override(
        self,
        *,
        issue_id: str,
        module_id: str,
        asset_id: str,
        position: int | None,
    ) -> ModuleAllocation:
        """Pin, reposition or unpin (``position=None``) an asset for this issue only."""

        issue = self.repository.require_issue(issue_id)
        module = self._module(module_id)
        if position is not None and not 1 <= position <= module.count:
            raise ValueError(f"Position must be within 1..{module.count}, got {position}.")

        existing = self.repository.get_allocation(issue_id, module_id)
        overrides = dict(existing.pinned_overrides) if existing else {}
        overrides[asset_id] = position
        return self._store_overrides(issue, module, existing, overrides)

    def remove_pin_override(
        self,
        *,
        issue_id: str,
        module_id: str,
        asset_id: str,
    ) -> ModuleAllocation:
        """Fall back to the global pin configuration for ``asset_id``."""

        issue = self.repository.require_issue(issue_id)
        module = self._module(module_id)
        existing = self.repository.get_allocation(issue_id, module_id)
        overrides = dict(existing.pinned_overrides) if existing else {}
        overrides.pop(asset_id, None)
        return self._store_overrides(issue, module, existing, overrides)

    def record_usage(self, *, issue_id: str, used_at: datetime) -> int:
        """Stamp last-used dates of allocated assets; runs once per allocation."""

        recorded = 0
        for allocation in self.repository.list_allocations(issue_id):
            module = self.repository.get_module(allocation.module_id)
            if module is None or module.kind is ModuleKind.ARTICLE:
                continue
            if allocation.used_at is not None or not allocation.item_ids:
                continue
            recorded += self.repository.record_asset_usage(
                asset_ids=allocation.item_ids,
                used_at=used_at,
            )
            allocation.used_at = used_at
            self.repository.save_allocation(allocation)
        return recorded

    def candidates_for(self, issue: Issue, module: ModuleConfig) -> list[Asset]:
        """Eligible items for a module: active assets, or finished article units."""

        if module.kind is not ModuleKind.ARTICLE:
            return self.repository.list_assets(module_kind=module.kind)

        candidates = {
            candidate.candidate_id: candidate
            for candidate in self.repository.list_issue_candidates(
                issue.issue_id,
                module_id=module.module_id,
            )
        }
        assets: list[Asset] = []
        for unit in self.repository.list_content(issue.issue_id, module_id=module.module_id):
            candidate = candidates.get(unit.candidate_id)
            if candidate is None or candidate.suppressed or unit.skipped or not unit.has_body:
                continue
            if (
                unit.fact_check_score is None
                or unit.fact_check_score < self.generation_settings.min_fact_check_score
            ):
                continue
            assets.append(
                Asset(
                    asset_id=unit.content_id,
                    name=unit.headline,
                    module_kind=ModuleKind.ARTICLE,
                    category=candidate.category,
                    priority=(candidate.total_score or 0.0) + unit.fact_check_score,
                    is_affiliate=True,
                ),
            )
        return assets

    def _allocate_module(
        self,
        issue: Issue,
        module: ModuleConfig,
        existing: ModuleAllocation | None,
    ) -> ModuleAllocation:
        overrides = dict(existing.pinned_overrides) if existing else {}
        candidates = self.candidates_for(issue, module)
        outcome = self.selector.select_for_module(
            candidates=candidates,
            module=module,
            as_of=issue_day_start(issue.issue_date),
            pin_layers=PinLayers.build(candidates, overrides),
            rng=seeded_rng(
                issue_id=issue.issue_id,
                module_id=module.module_id,
                seed=self.allocation_settings.random_seed,
            ),
        )
        allocation = _allocation_from_outcome(issue.issue_id, module, outcome, overrides)
        self.repository.save_allocation(allocation)
        if isinstance(outcome, SelectionRequired):
            logger.info("Module %s awaits operator input: %s", module.module_id, outcome.reason)
        else:
            logger.info(
                "Allocated module %s: %d/%d items (%d pinned, %d skipped by category cap)",
                module.module_id,
                len(allocation.item_ids),
                module.count,
                len(allocation.pinned_ids),
                len(outcome.skipped_by_category),
            )
        return allocation

    def _store_overrides(
        self,
        issue: Issue,
        module: ModuleConfig,
        existing: ModuleAllocation | None,
        overrides: dict[str, int | None],
    ) -> ModuleAllocation:
        manual = existing is not None and existing.selection_mode is SelectionMode.MANUAL
        if existing is not None and existing.selected_at is not None and not manual:
            return self._allocate_module(issue, module, _with_overrides(existing, overrides))

        allocation = existing or ModuleAllocation(
            issue_id=issue.issue_id,
            module_id=module.module_id,
            item_ids=[],
            selection_mode=module.selection_mode,
        )
        allocation.pinned_overrides = overrides
        self.repository.save_allocation(allocation)
        return allocation

    def _module(self, module_id: str) -> ModuleConfig:
        module = self.repository.get_module(module_id)
        if module is None:
            raise ValueError(f"Module not found: {module_id}")
        return module


def _with_overrides(
    allocation: ModuleAllocation,
    overrides: dict[str, int | None],
) -> ModuleAllocation:
    allocation.pinned_overrides = overrides
    return allocation


def _allocation_from_outcome(
    issue_id: str,
    module: ModuleConfig,
    outcome: Selection | SelectionRequired,
    overrides: dict[str, int | None],
) -> ModuleAllocation:
    if isinstance(outcome, SelectionRequired):
        return ModuleAllocation(
            issue_id=issue_id,
            module_id=module.module_id,
            item_ids=[],
            selection_mode=SelectionMode.MANUAL,
            pinned_overrides=overrides,
        )
    return ModuleAllocation(
        issue_id=issue_id,
        module_id=module.module_id,
        item_ids=outcome.item_ids,
        pinned_ids=outcome.pinned_ids,
        selection_mode=module.selection_mode,
        pinned_overrides=overrides,
        selected_at=utc_now(),
    )

"""Module and asset catalog loading from JSON."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from news_issue.models import Asset, CriterionConfig, ModuleConfig, ModuleKind, SelectionMode
from news_issue.repository import IssueRepository
from news_issue.scoring.engine import validate_criteria

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CatalogSummary:
    modules: int = 0
    assets: int = 0


def load_catalog(repository: IssueRepository, path: Path) -> CatalogSummary:
    """Upsert modules (with criteria) and assets described in ``path``.

    Expected shape::

        {"modules": [{"module_id": "news", "name": "News", "kind": "article",
                      "count": 5, "criteria": [{"number": 1, "name": "..."}]}],
         "assets": [{"asset_id": "app-1", "name": "...", "module_kind": "app"}]}
    """

    try:
        payload = json.loads(path.read_text("utf-8"))
    except json.JSONDecodeError as error:
        raise ValueError(f"Invalid catalog JSON in {path}: {error}") from error
    if not isinstance(payload, dict):
        raise ValueError(f"Catalog {path} must be a JSON object.")

    modules = [parse_module(item) for item in payload.get("modules", [])]
    assets = [parse_asset(item) for item in payload.get("assets", [])]
    for module in modules:
        if module.kind is ModuleKind.ARTICLE:
            validate_criteria(module.criteria)

    for module in modules:
        repository.upsert_module(module)
    for asset in assets:
        repository.upsert_asset(asset)
    logger.info("Loaded catalog %s: modules=%d assets=%d", path, len(modules), len(assets))
    return CatalogSummary(modules=len(modules), assets=len(assets))


def parse_module(item: dict[str, Any]) -> ModuleConfig:
    try:
        module = ModuleConfig(
            module_id=str(item["module_id"]),
            name=str(item.get("name") or item["module_id"]),
            kind=ModuleKind(item["kind"]),
            count=int(item["count"]),
            selection_mode=SelectionMode(
                item.get("selection_mode", SelectionMode.AFFILIATE_PRIORITY.value),
            ),
            max_per_category=_optional_int(item.get("max_per_category")),
            cooldown_days=int(item.get("cooldown_days", 0)),
            display_order=int(item.get("display_order", 0)),
            is_active=bool(item.get("is_active", True)),
            lookback_hours=_optional_int(item.get("lookback_hours")),
            criteria=[_parse_criterion(criterion) for criterion in item.get("criteria", [])],
        )
    except KeyError as error:
        raise ValueError(f"Module definition is missing {error}: {item}") from error
    if module.count <= 0:
        raise ValueError(f"Module {module.module_id} count must be > 0.")
    if module.max_per_category is not None and module.max_per_category <= 0:
        raise ValueError(f"Module {module.module_id} max_per_category must be > 0.")
    if module.cooldown_days < 0:
        raise ValueError(f"Module {module.module_id} cooldown_days must be >= 0.")
    return module


def parse_asset(item: dict[str, Any]) -> Asset:
    try:
        return Asset(
            asset_id=str(item["asset_id"]),
            name=str(item.get("name") or item["asset_id"]),
            module_kind=ModuleKind(item["module_kind"]),
            category=item.get("category"),
            priority=float(item.get("priority", 0.0)),
            is_affiliate=bool(item.get("is_affiliate", False)),
            is_active=bool(item.get("is_active", True)),
            pinned_position=_optional_int(item.get("pinned_position")),
        )
    except KeyError as error:
        raise ValueError(f"Asset definition is missing {error}: {item}") from error


def _parse_criterion(item: dict[str, Any]) -> CriterionConfig:
    return CriterionConfig(
        number=int(item["number"]),
        name=str(item["name"]),
        weight=float(item.get("weight", 1.0)),
        prompt=str(item.get("prompt", "")),
        enabled=bool(item.get("enabled", True)),
        minimum_score=_optional_int(item.get("minimum_score")),
    )


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)

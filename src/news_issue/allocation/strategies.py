"""Selection strategies, one per module selection mode."""

from __future__ import annotations

import logging
import random
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from news_issue.allocation.pins import PinLayers
from news_issue.allocation.slots import SlotArray
from news_issue.models import Asset, ModuleConfig, SelectionMode

logger = logging.getLogger(__name__)

UNKNOWN_CATEGORY = "Unknown"
MANUAL_SELECTION_REASON = "Manual selection required"


@dataclass(slots=True)
class Selection:
    """Automatic allocation result in slot order."""

    module_id: str
    slots: SlotArray
    skipped_by_category: list[str] = field(default_factory=list)
    assets: dict[str, Asset] = field(default_factory=dict, repr=False)

    @property
    def item_ids(self) -> list[str]:
        return self.slots.asset_ids()

    @property
    def pinned_ids(self) -> list[str]:
        return self.slots.pinned_ids()


@dataclass(slots=True)
class SelectionRequired:
    """Signal that an operator must choose the module's items."""

    module_id: str
    reason: str = MANUAL_SELECTION_REASON


def in_cooldown(asset: Asset, *, as_of: datetime, cooldown_days: int) -> bool:
    """Whether fewer than ``cooldown_days`` whole days passed since last use."""

    if asset.last_used_at is None or cooldown_days <= 0:
        return False
    days_since = (as_of - asset.last_used_at) // timedelta(days=1)
    return days_since < cooldown_days


def category_key(asset: Asset) -> str:
    return asset.category or UNKNOWN_CATEGORY


class SlotFillingStrategy:
    """Shared scaffolding: pin placement followed by mode-specific fill phases."""

    mode: SelectionMode

    def select(
        self,
        *,
        candidates: list[Asset],
        module: ModuleConfig,
        as_of: datetime,
        pin_layers: PinLayers,
        rng: random.Random,
    ) -> Selection | SelectionRequired:
        by_id = {asset.asset_id: asset for asset in candidates}
        selection = Selection(
            module_id=module.module_id,
            slots=SlotArray(module.count),
            assets=by_id,
        )
        for pin in pin_layers.resolve():
            if pin.asset_id not in by_id:
                continue
            if not selection.slots.pin(pin.position, pin.asset_id):
                logger.info(
                    "Ignoring %s pin of %s at position %d in module %s",
                    pin.source.value,
                    pin.asset_id,
                    pin.position,
                    module.module_id,
                )

        placed = set(selection.item_ids)
        remaining = [asset for asset in candidates if asset.asset_id not in placed]
        self.fill(
            selection=selection,
            remaining=remaining,
            module=module,
            as_of=as_of,
            rng=rng,
        )
        return selection

    def fill(
        self,
        *,
        selection: Selection,
        remaining: list[Asset],
        module: ModuleConfig,
        as_of: datetime,
        rng: random.Random,
    ) -> None:
        raise NotImplementedError

    def place_first_fit(
        self,
        selection: Selection,
        assets: list[Asset],
        module: ModuleConfig,
    ) -> None:
        """Place assets in order, skipping those whose category is already at the cap."""

        for asset in assets:
            if selection.slots.is_full:
                return
            if module.max_per_category is not None:
                counts = Counter(
                    category_key(selection.assets[asset_id]) for asset_id in selection.item_ids
                )
                if counts[category_key(asset)] >= module.max_per_category:
                    selection.skipped_by_category.append(asset.asset_id)
                    continue
            selection.slots.fill(asset.asset_id)


class AffiliatePriorityStrategy(SlotFillingStrategy):
    """Affiliates by descending priority first, then shuffled non-affiliates."""

    mode = SelectionMode.AFFILIATE_PRIORITY

    def fill(
        self,
        *,
        selection: Selection,
        remaining: list[Asset],
        module: ModuleConfig,
        as_of: datetime,
        rng: random.Random,
    ) -> None:
        affiliates = sorted(
            (
                asset
                for asset in remaining
                if asset.is_affiliate
                and not in_cooldown(asset, as_of=as_of, cooldown_days=module.cooldown_days)
            ),
            key=lambda asset: -asset.priority,
        )
        self.place_first_fit(selection, affiliates, module)

        others = [asset for asset in remaining if not asset.is_affiliate]
        rng.shuffle(others)
        self.place_first_fit(selection, others, module)


class RandomStrategy(SlotFillingStrategy):
    """Every remaining candidate shuffled; no priority phase."""

    mode = SelectionMode.RANDOM

    def fill(
        self,
        *,
        selection: Selection,
        remaining: list[Asset],
        module: ModuleConfig,
        as_of: datetime,  # noqa: ARG002
        rng: random.Random,
    ) -> None:
        shuffled = list(remaining)
        rng.shuffle(shuffled)
        self.place_first_fit(selection, shuffled, module)


class ManualStrategy(SlotFillingStrategy):
    """Never selects automatically."""

    mode = SelectionMode.MANUAL

    def select(
        self,
        *,
        candidates: list[Asset],  # noqa: ARG002
        module: ModuleConfig,
        as_of: datetime,  # noqa: ARG002
        pin_layers: PinLayers,  # noqa: ARG002
        rng: random.Random,  # noqa: ARG002
    ) -> Selection | SelectionRequired:
        return SelectionRequired(module_id=module.module_id)


STRATEGIES: dict[SelectionMode, SlotFillingStrategy] = {
    strategy.mode: strategy
    for strategy in (AffiliatePriorityStrategy(), RandomStrategy(), ManualStrategy())
}

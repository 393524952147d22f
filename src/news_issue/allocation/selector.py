"""Entry point that dispatches module allocation to the mode's strategy."""

from __future__ import annotations

import hashlib
import random
from datetime import UTC, date, datetime, time

from news_issue.allocation.pins import PinLayers
from news_issue.allocation.strategies import STRATEGIES, Selection, SelectionRequired
from news_issue.models import Asset, ModuleConfig


class AllocationSelector:
    """Selects at most ``module.count`` items for one module of one issue."""

    def select_for_module(
        self,
        *,
        candidates: list[Asset],
        module: ModuleConfig,
        as_of: datetime,
        pin_layers: PinLayers,
        rng: random.Random,
    ) -> Selection | SelectionRequired:
        strategy = STRATEGIES[module.selection_mode]
        return strategy.select(
            candidates=candidates,
            module=module,
            as_of=as_of,
            pin_layers=pin_layers,
            rng=rng,
        )


def issue_day_start(issue_date: date) -> datetime:
    """Midnight UTC of the issue date, the reference point for cooldowns."""

    return datetime.combine(issue_date, time.min, tzinfo=UTC)


def seeded_rng(*, issue_id: str, module_id: str, seed: int | None = None) -> random.Random:
    """Deterministic RNG per issue and module unless an explicit seed is configured."""

    if seed is not None:
        return random.Random(seed)  # noqa: S311
    digest = hashlib.sha1(f"{issue_id}|{module_id}".encode(), usedforsecurity=False).digest()  # noqa: S324
    return random.Random(int.from_bytes(digest[:8], byteorder="big"))  # noqa: S311

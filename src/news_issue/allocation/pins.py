"""Two-layer pin configuration: global pins overlaid by a per-issue snapshot."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from news_issue.models import Asset, PinSource


@dataclass(frozen=True, slots=True)
class ResolvedPin:
    position: int
    asset_id: str
    source: PinSource


@dataclass(frozen=True, slots=True)
class PinLayers:
    """Immutable pin configuration for one allocation call.

    ``issue_overrides`` maps an asset id to a position, or to ``None`` to unpin a
    globally pinned asset for this issue only.
    """

    global_pins: Mapping[str, int]
    issue_overrides: Mapping[str, int | None]

    @classmethod
    def build(
        cls,
        assets: Iterable[Asset],
        issue_overrides: Mapping[str, int | None] | None = None,
    ) -> PinLayers:
        return cls(
            global_pins=MappingProxyType(
                {
                    asset.asset_id: asset.pinned_position
                    for asset in assets
                    if asset.pinned_position is not None
                },
            ),
            issue_overrides=MappingProxyType(dict(issue_overrides or {})),
        )

    def resolve(self) -> list[ResolvedPin]:
        """Effective pins in placement order: global pins first, then issue-only pins."""

        resolved: list[ResolvedPin] = []
        for asset_id, position in sorted(
            self.global_pins.items(),
            key=lambda item: (item[1], item[0]),
        ):
            if asset_id not in self.issue_overrides:
                resolved.append(ResolvedPin(position, asset_id, PinSource.GLOBAL))
                continue
            override = self.issue_overrides[asset_id]
            if override is not None:
                resolved.append(ResolvedPin(override, asset_id, PinSource.ISSUE))

        issue_only = [
            (asset_id, position)
            for asset_id, position in self.issue_overrides.items()
            if asset_id not in self.global_pins and position is not None
        ]
        for asset_id, position in sorted(issue_only, key=lambda item: (item[1], item[0])):
            resolved.append(ResolvedPin(position, asset_id, PinSource.ISSUE))
        return resolved

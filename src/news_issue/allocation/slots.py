"""Fixed-capacity slot array with explicit slot states."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class EmptySlot:
    position: int


@dataclass(frozen=True, slots=True)
class PinnedSlot:
    position: int
    asset_id: str


@dataclass(frozen=True, slots=True)
class FilledSlot:
    position: int
    asset_id: str


Slot = EmptySlot | PinnedSlot | FilledSlot


class SlotArray:
    """1-based slots; a slot only ever moves from empty to pinned or filled."""

    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError(f"Slot capacity must be >= 0, got {capacity}")
        self._slots: list[Slot] = [EmptySlot(position) for position in range(1, capacity + 1)]

    @property
    def capacity(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[Slot]:
        return iter(self._slots)

    def pin(self, position: int, asset_id: str) -> bool:
        """Pin ``asset_id`` at ``position``; first writer wins."""

        if not 1 <= position <= self.capacity or self.contains(asset_id):
            return False
        if not isinstance(self._slots[position - 1], EmptySlot):
            return False
        self._slots[position - 1] = PinnedSlot(position, asset_id)
        return True

    def fill(self, asset_id: str) -> int | None:
        """Place ``asset_id`` into the first empty slot and return its position."""

        position = self.first_empty()
        if position is None or self.contains(asset_id):
            return None
        self._slots[position - 1] = FilledSlot(position, asset_id)
        return position

    def first_empty(self) -> int | None:
        for slot in self._slots:
            if isinstance(slot, EmptySlot):
                return slot.position
        return None

    @property
    def is_full(self) -> bool:
        return self.first_empty() is None

    def contains(self, asset_id: str) -> bool:
        return asset_id in self.asset_ids()

    def asset_ids(self) -> list[str]:
        """Occupied asset ids in slot order."""

        return [slot.asset_id for slot in self._slots if not isinstance(slot, EmptySlot)]

    def pinned_ids(self) -> list[str]:
        return [slot.asset_id for slot in self._slots if isinstance(slot, PinnedSlot)]

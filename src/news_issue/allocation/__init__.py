"""Bounded module slot allocation under pinning, cooldown and category caps."""

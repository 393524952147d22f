"""Fire-and-forget notification boundary."""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Notifier(Protocol):
    """Delivers operator notifications (email, chat) outside the pipeline."""

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        """Send one notification."""


class LoggingNotifier:
    """Default notifier that only writes to the log."""

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        logger.info("Notification %s: %s", event, payload)


def safe_notify(notifier: Notifier | None, event: str, payload: dict[str, Any]) -> None:
    """Notification failures never affect the pipeline outcome."""

    if notifier is None:
        return
    try:
        notifier.notify(event, payload)
    except Exception:
        logger.exception("Notifier failed for event %s", event)

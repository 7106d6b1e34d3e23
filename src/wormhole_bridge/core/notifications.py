from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Notifier(Protocol):
    """User-visible notification channel (desktop toast, tray balloon, ...).

    Delivery is the frontend's business; the orchestrator only says what to
    show and when.
    """

    def notify(self, title: str, body: str) -> None:  # pragma: no cover - protocol
        ...


class LogNotifier:
    """Notifier that writes notifications to the application log."""

    def notify(self, title: str, body: str) -> None:
        logger.info("%s: %s", title, body)

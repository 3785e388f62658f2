from __future__ import annotations

import logging
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(
        self,
        recipient_id: str,
        title: str,
        message: str,
        related_entity_id: Optional[str] = None,
    ) -> None:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Default notifier until a delivery channel is wired in; writes to the log."""

    def notify(
        self,
        recipient_id: str,
        title: str,
        message: str,
        related_entity_id: Optional[str] = None,
    ) -> None:
        logger.info("[notify] to=%s entity=%s %s: %s", recipient_id, related_entity_id, title, message)

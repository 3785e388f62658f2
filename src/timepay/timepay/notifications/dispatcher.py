from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Optional

from ..core.constants import NOTIFY_MAX_ATTEMPTS
from .notifier import Notifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingNotification:
    recipient_id: str
    title: str
    message: str
    related_entity_id: Optional[str] = None
    attempts: int = 1


class NotificationDispatcher:
    """Fire-and-forget delivery.

    A failing notifier never propagates to the caller; the message is logged
    and queued for ``retry_pending``. After ``max_attempts`` it is dropped.
    """

    def __init__(self, notifier: Notifier, *, max_attempts: int = NOTIFY_MAX_ATTEMPTS):
        self._notifier = notifier
        self._max_attempts = max(1, int(max_attempts))
        self._pending: list[PendingNotification] = []
        self._lock = threading.Lock()

    def dispatch(
        self,
        recipient_id: Optional[str],
        title: str,
        message: str,
        related_entity_id: Optional[str] = None,
    ) -> bool:
        if not recipient_id:
            return False
        return self._send(
            PendingNotification(
                recipient_id=str(recipient_id),
                title=title,
                message=message,
                related_entity_id=related_entity_id,
            )
        )

    def retry_pending(self) -> int:
        """Re-send queued notifications once; returns how many were delivered."""
        with self._lock:
            queued, self._pending = self._pending, []

        delivered = 0
        for item in queued:
            if self._send(replace(item, attempts=item.attempts + 1)):
                delivered += 1
        return delivered

    def pending(self) -> list[PendingNotification]:
        with self._lock:
            return list(self._pending)

    def _send(self, item: PendingNotification) -> bool:
        try:
            self._notifier.notify(item.recipient_id, item.title, item.message, item.related_entity_id)
            return True
        except Exception:
            logger.exception(
                "Notification to %s failed (attempt %s/%s, entity=%s)",
                item.recipient_id,
                item.attempts,
                self._max_attempts,
                item.related_entity_id,
            )
            if item.attempts < self._max_attempts:
                with self._lock:
                    self._pending.append(item)
            else:
                logger.error("Dropping notification to %s after %s attempts", item.recipient_id, item.attempts)
            return False

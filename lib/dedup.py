from datetime import datetime, timedelta
from typing import Dict
import logging

logger = logging.getLogger(__name__)


class IdempotencyStore:
    """Remembers provider message ids for a short window.

    Process-local: a redelivery that lands on another instance is not caught.
    A window of zero disables the check entirely.
    """

    def __init__(self, ttl_seconds: int = 0):
        self.ttl = timedelta(seconds=max(ttl_seconds, 0))
        self._seen: Dict[str, datetime] = {}

    @property
    def enabled(self) -> bool:
        return self.ttl.total_seconds() > 0

    def check_and_remember(self, message_id: str) -> bool:
        """Return True if the id was already seen inside the window, then remember it"""
        if not self.enabled or not message_id:
            return False

        now = datetime.now()
        self._expire(now)
        if message_id in self._seen:
            logger.info(f"Duplicate delivery of message {message_id}")
            return True

        self._seen[message_id] = now
        return False

    def _expire(self, now: datetime) -> None:
        stale = [key for key, seen_at in self._seen.items() if now - seen_at > self.ttl]
        for key in stale:
            del self._seen[key]

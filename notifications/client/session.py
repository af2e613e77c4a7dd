import logging
from typing import Optional

logger = logging.getLogger('notifications.client')


class SyncSession:
    """
    Per-session sync state, created with the sync component and torn down with it.

    Holds the ids already toasted this session and the consecutive poll failure
    count behind the stale indicator. Nothing here is shared between sessions.
    """

    def __init__(self, stale_after: int = 3):
        self.stale_after = stale_after
        self.toasted = set()
        self.consecutive_failures = 0
        self.last_error: Optional[str] = None
        self.closed = False

    def should_toast(self, notification_id: str) -> bool:
        """True exactly once per notification id for the life of the session"""
        if self.closed or notification_id in self.toasted:
            return False
        self.toasted.add(notification_id)
        return True

    def record_failure(self, error) -> bool:
        self.consecutive_failures += 1
        self.last_error = str(error)
        if self.consecutive_failures == self.stale_after:
            logger.warning(f"Notification sync failing {self.consecutive_failures} times in a row: {self.last_error}")
        return self.is_stale

    def record_success(self) -> None:
        if self.consecutive_failures >= self.stale_after:
            logger.info("Notification sync recovered")
        self.consecutive_failures = 0
        self.last_error = None

    @property
    def is_stale(self) -> bool:
        return self.consecutive_failures >= self.stale_after

    def close(self) -> None:
        self.closed = True
        self.toasted = set()

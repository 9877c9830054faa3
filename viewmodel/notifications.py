"""User-facing notifications for the review dashboard."""
import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    """Transient, auto-dismissing message."""
    message: str
    level: str = 'info'
    duration_seconds: float = 3.0


class Notifier:
    """
    Presentation seam for user feedback.

    alert() is the blocking alert used when the event list cannot be loaded.
    notify() emits a transient notification. This default implementation
    logs both and keeps the most recent messages in history; a UI subclasses
    it to render them.
    """

    LEVELS = ('info', 'success', 'error')
    HISTORY_SIZE = 50

    def __init__(self):
        self.history: Deque[Notification] = deque(maxlen=self.HISTORY_SIZE)

    def alert(self, message: str) -> None:
        logger.error(f"ALERT: {message}")
        self.history.append(Notification(message=message, level='error', duration_seconds=0.0))

    def notify(self, message: str, level: str = 'info') -> Notification:
        """
        Emit a transient notification.

        Args:
            message: Text shown to the user
            level: One of info, success, error

        Returns:
            The emitted Notification
        """
        if level not in self.LEVELS:
            raise ValueError(f"Unknown notification level: {level}")

        notification = Notification(message=message, level=level)
        log_level = logging.ERROR if level == 'error' else logging.INFO
        logger.log(log_level, message, extra={'notification_level': level})
        self.history.append(notification)
        return notification

"""Transient user-facing notifications (toasts)."""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Deque, List

from .models import utcnow

LOGGER = logging.getLogger(__name__)


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True, slots=True)
class Notification:
    level: NotificationLevel
    message: str
    timestamp: datetime = field(default_factory=utcnow)


class NotificationCenter:
    """Bounded queue of notifications waiting to be shown."""

    def __init__(self, max_pending: int = 50) -> None:
        self._pending: Deque[Notification] = deque(maxlen=max_pending)

    def push(self, level: NotificationLevel, message: str) -> Notification:
        notification = Notification(level=level, message=message)
        self._pending.append(notification)
        LOGGER.info("Notification [%s]: %s", level.value, message)
        return notification

    def success(self, message: str) -> Notification:
        return self.push(NotificationLevel.SUCCESS, message)

    def error(self, message: str) -> Notification:
        return self.push(NotificationLevel.ERROR, message)

    def info(self, message: str) -> Notification:
        return self.push(NotificationLevel.INFO, message)

    def drain(self) -> List[Notification]:
        drained = list(self._pending)
        self._pending.clear()
        return drained

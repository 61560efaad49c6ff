"""Notification sinks for successful credential mutations.

A sink receives one human-readable message per successful create, update or
delete. Failures never notify; the caller surfaces the raised error.
"""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def notify_success(self, message: str) -> None: ...


class LoggingNotificationSink:
    """Default sink: writes success messages to the log at INFO."""

    async def notify_success(self, message: str) -> None:
        logger.info("[Notification] %s", message)

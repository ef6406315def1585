"""Notification channel factory."""

from __future__ import annotations

import os
from typing import Optional

from ..config import BrokerConfig, load_config
from .base import NotificationChannel, NotificationSession
from .inmemory import InMemoryNotificationChannel


def get_notification_channel(
    backend: Optional[str] = None, config: Optional[BrokerConfig] = None
) -> NotificationChannel:
    """Factory function to get the configured notification channel."""

    config = config or load_config()
    backend = (
        backend
        or os.getenv("CREDBROKER_NOTIFICATIONS")
        or config.notifications.backend
    ).lower()

    if backend == "inmemory":
        return InMemoryNotificationChannel()
    elif backend == "redis":
        from .redis import RedisNotificationChannel

        redis_conf = config.notifications.redis
        return RedisNotificationChannel(
            host=redis_conf.host,
            port=redis_conf.port,
            db=redis_conf.db,
            password=redis_conf.password,
        )
    else:
        raise ValueError(f"Unsupported notification backend: {backend}")


__all__ = [
    "InMemoryNotificationChannel",
    "NotificationChannel",
    "NotificationSession",
    "get_notification_channel",
]

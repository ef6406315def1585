"""Redis pub/sub notification channel for multi-process deployments."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

try:
    import redis.asyncio as redis
except ImportError:
    redis = None

from ..constants import REDIS_CHANNEL_PREFIX
from ..models import RedirectMessage
from .base import NotificationChannel, NotificationSession

logger = logging.getLogger(__name__)


class RedisSession(NotificationSession):
    def __init__(self, request_id: str, pubsub: Any) -> None:
        super().__init__(request_id)
        self._pubsub = pubsub

    async def receive(self, timeout: Optional[float] = None) -> Optional[RedirectMessage]:
        start_time = asyncio.get_event_loop().time()

        while True:
            poll = 1.0
            if timeout is not None:
                remaining = timeout - (asyncio.get_event_loop().time() - start_time)
                if remaining <= 0:
                    return None
                poll = min(poll, remaining)

            raw = await self._pubsub.get_message(
                ignore_subscribe_messages=True, timeout=poll
            )
            if raw and raw.get("type") == "message":
                try:
                    return RedirectMessage.from_json(raw["data"])
                except ValueError as e:
                    logger.warning(f"Failed to parse notification for {self.request_id}: {e}")

    async def close(self) -> None:
        await self._pubsub.unsubscribe()
        await self._pubsub.aclose()


class RedisNotificationChannel(NotificationChannel):
    """Publishes redirect messages on a Redis channel per request id."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
    ) -> None:
        if redis is None:
            raise ImportError("redis package is required for RedisNotificationChannel")

        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self._redis: Optional[Any] = None

    async def connect(self) -> None:
        """Connect to Redis."""
        self._redis = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            decode_responses=True,
        )
        await self._redis.ping()

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    @staticmethod
    def channel_name(request_id: str) -> str:
        return f"{REDIS_CHANNEL_PREFIX}{request_id}"

    async def register(self, request_id: str) -> RedisSession:
        if not self._redis:
            await self.connect()
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self.channel_name(request_id))
        return RedisSession(request_id, pubsub)

    async def publish(self, message: RedirectMessage) -> int:
        if not self._redis:
            await self.connect()
        return await self._redis.publish(
            self.channel_name(message.request_id), message.to_json()
        )

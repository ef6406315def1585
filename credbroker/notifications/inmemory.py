"""In-process notification channel."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Dict, Optional, Set

from ..models import RedirectMessage
from .base import NotificationChannel, NotificationSession


class InMemorySession(NotificationSession):
    def __init__(self, channel: "InMemoryNotificationChannel", request_id: str) -> None:
        super().__init__(request_id)
        self._channel = channel
        self._queue: asyncio.Queue[RedirectMessage] = asyncio.Queue()

    def deliver(self, message: RedirectMessage) -> None:
        self._queue.put_nowait(message)

    async def receive(self, timeout: Optional[float] = None) -> Optional[RedirectMessage]:
        try:
            return await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    async def close(self) -> None:
        await self._channel._unregister(self)


class InMemoryNotificationChannel(NotificationChannel):
    """Routes messages to sessions living in the same process."""

    def __init__(self) -> None:
        self._sessions: Dict[str, Set[InMemorySession]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def register(self, request_id: str) -> InMemorySession:
        session = InMemorySession(self, request_id)
        async with self._lock:
            self._sessions[request_id].add(session)
        return session

    async def publish(self, message: RedirectMessage) -> int:
        async with self._lock:
            sessions = list(self._sessions.get(message.request_id, ()))
        for session in sessions:
            session.deliver(message)
        return len(sessions)

    async def _unregister(self, session: InMemorySession) -> None:
        async with self._lock:
            sessions = self._sessions.get(session.request_id)
            if sessions is None:
                return
            sessions.discard(session)
            if not sessions:
                del self._sessions[session.request_id]

    def session_count(self, request_id: str) -> int:
        return len(self._sessions.get(request_id, ()))

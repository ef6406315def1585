"""Base interface for pushing request outcomes to waiting sessions."""

from __future__ import annotations

import abc
import logging
from typing import Optional

from ..models import RedirectMessage, ResponseStatus

logger = logging.getLogger(__name__)


class NotificationSession(metaclass=abc.ABCMeta):
    """A client session waiting for the outcome of one request."""

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id

    @abc.abstractmethod
    async def receive(self, timeout: Optional[float] = None) -> Optional[RedirectMessage]:
        """Wait for the next message; ``None`` when ``timeout`` elapses first."""
        raise NotImplementedError

    @abc.abstractmethod
    async def close(self) -> None:
        """Stop receiving messages for this request."""
        raise NotImplementedError

    async def __aenter__(self) -> "NotificationSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


class NotificationChannel(metaclass=abc.ABCMeta):
    """Delivers one-shot redirect instructions keyed by request id.

    Sessions must be registered before :meth:`notify` is called. Messages for
    a request with no registered session are dropped: the callback redirect is
    the feedback path of record, the push is a convenience.
    """

    async def connect(self) -> None:
        """Open connection to the backend (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connection to the backend (no-op by default)."""
        pass

    @abc.abstractmethod
    async def register(self, request_id: str) -> NotificationSession:
        """Open a session receiving messages for ``request_id``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def publish(self, message: RedirectMessage) -> int:
        """Send ``message`` and return the number of sessions reached."""
        raise NotImplementedError

    async def notify(
        self, request_id: str, status: ResponseStatus, redirect_url: str
    ) -> int:
        """Tell sessions waiting on ``request_id`` to redirect to ``redirect_url``."""
        message = RedirectMessage(
            request_id=request_id, status=status, redirect_url=redirect_url
        )
        delivered = await self.publish(message)
        if delivered:
            logger.info(f"Sent {status.value} redirect for {request_id} to {delivered} session(s)")
        else:
            logger.debug(f"No session registered for {request_id}; notification dropped")
        return delivered

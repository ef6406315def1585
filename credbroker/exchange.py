"""Issue and verify flows between requestors, connectors and waiting sessions."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from .broker import RequestBroker
from .config import BrokerConfig, load_config
from .connectors import ConnectorRegistry, ConnectorService, load_connectors
from .exceptions import BrokerError, RequestNotFound
from .models import (
    CredentialRequest,
    IssueRequest,
    RequestKind,
    ResponseStatus,
    VerifyRequest,
)
from .notifications import NotificationChannel, get_notification_channel
from .persistence import get_repository
from .security import BrokerKeyProvider, TokenCodec

logger = logging.getLogger(__name__)


class CredentialExchange:
    """Runs the inbound request surface independent of any web framework.

    Each ``receive_*`` call authenticates a requestor token and lists the
    connectors able to serve it. ``handle_*_request`` hands the request to a
    connector to start the end-user flow, and the final step
    (``handle_verify_disclosure`` / ``handle_issue_completion``) encodes the
    outcome token and pushes the redirect to the waiting session.
    """

    def __init__(
        self,
        broker: RequestBroker,
        connectors: ConnectorRegistry,
        channel: NotificationChannel,
    ) -> None:
        self.broker = broker
        self.connectors = connectors
        self.channel = channel

    # ------------------------------------------------------------------
    # Verify
    async def receive_verify_request(self, token: str) -> Dict[str, Any]:
        verify_request = await self.broker.accept_verify_token(token)
        return {
            "verifyRequest": verify_request,
            "availableConnectors": self._available(RequestKind.VERIFY, verify_request),
        }

    async def handle_verify_request(self, connector_name: str, request_id: str) -> Any:
        verify_request = await self._verify_request(request_id)
        connector = self.connectors.require(connector_name, RequestKind.VERIFY, verify_request)
        return await connector.handle_verify_credential_request(verify_request)

    async def handle_verify_disclosure(
        self, connector_name: str, request_id: str, body: Any
    ) -> Any:
        verify_request = await self._verify_request(request_id)
        connector = self.connectors.require(connector_name, RequestKind.VERIFY, verify_request)
        return await self._complete(
            verify_request,
            connector,
            lambda: connector.handle_verify_credential_disclosure(verify_request, body),
        )

    # ------------------------------------------------------------------
    # Issue
    async def receive_issue_request(self, token: str) -> Dict[str, Any]:
        issue_request = await self.broker.accept_issue_token(token)
        return {
            "issueRequest": issue_request,
            "availableConnectors": self._available(RequestKind.ISSUE, issue_request),
        }

    async def handle_issue_request(self, connector_name: str, request_id: str) -> Any:
        issue_request = await self._issue_request(request_id)
        connector = self.connectors.require(connector_name, RequestKind.ISSUE, issue_request)
        return await connector.handle_issue_credential_request(issue_request)

    async def handle_issue_completion(
        self, connector_name: str, request_id: str, body: Any
    ) -> Any:
        issue_request = await self._issue_request(request_id)
        connector = self.connectors.require(connector_name, RequestKind.ISSUE, issue_request)
        return await self._complete(
            issue_request,
            connector,
            lambda: connector.handle_issue_credential_completion(issue_request, body),
        )

    # ------------------------------------------------------------------
    # Helpers
    def _available(self, kind: RequestKind, request: CredentialRequest) -> list[str]:
        return [c.name for c in self.connectors.available_connectors(kind, request)]

    async def _verify_request(self, request_id: str) -> VerifyRequest:
        found = await self.broker.resolve_verify_request(request_id)
        if found is None:
            raise RequestNotFound(f"No verify request {request_id!r}")
        return found

    async def _issue_request(self, request_id: str) -> IssueRequest:
        found = await self.broker.resolve_issue_request(request_id)
        if found is None:
            raise RequestNotFound(f"No issue request {request_id!r}")
        return found

    async def _complete(
        self,
        request: CredentialRequest,
        connector: ConnectorService,
        step: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Run the final connector step and notify the session either way."""
        try:
            data = await step()
        except Exception as e:
            if isinstance(e, BrokerError):
                logger.warning(
                    f"Connector {connector.name} failed for {request.request_id}: {e}"
                )
                failure = {"error": e.kind.value, "message": str(e)}
            else:
                logger.exception(
                    f"Connector {connector.name} crashed for {request.request_id}"
                )
                failure = {"error": "connector_failure"}
            await self._notify(request, ResponseStatus.FAILURE, connector, failure)
            raise

        await self._notify(request, ResponseStatus.SUCCESS, connector, data)
        return data

    async def _notify(
        self,
        request: CredentialRequest,
        status: ResponseStatus,
        connector: ConnectorService,
        data: Any,
    ) -> str:
        token = self.broker.encode_outcome_token(request, status, connector.name, data)
        redirect_url = f"{request.callback_url}{token}"
        try:
            await self.channel.notify(request.request_id, status, redirect_url)
        except Exception:
            # The callback redirect stays valid without the push.
            logger.exception(f"Failed to push {status.value} redirect for {request.request_id}")
        return redirect_url


def create_exchange(config: Optional[BrokerConfig] = None) -> CredentialExchange:
    """Wire a :class:`CredentialExchange` from configuration."""
    config = config or load_config()
    repository = get_repository(config=config)
    key_provider = BrokerKeyProvider.from_config(config.signing)
    broker = RequestBroker(repository, repository, TokenCodec(key_provider))
    return CredentialExchange(
        broker,
        load_connectors(config.connectors),
        get_notification_channel(config=config),
    )

"""Capability interface every credential connector implements."""

from __future__ import annotations

import abc
from typing import Any, ClassVar, FrozenSet

from ..exceptions import ConnectorUnsupportedForType
from ..models import CredentialType, IssueRequest, RequestKind, VerifyRequest


class ConnectorService(metaclass=abc.ABCMeta):
    """Abstract base for credential protocol connectors.

    A connector names the protocol category it speaks and the request kinds it
    handles. It supports a credential type when that type carries a descriptor
    for the connector's protocol. Capabilities a connector does not offer raise
    :class:`~credbroker.exceptions.ConnectorUnsupportedForType`.
    """

    name: ClassVar[str]
    protocol: ClassVar[str]
    kinds: ClassVar[FrozenSet[RequestKind]] = frozenset()

    def supports(self, kind: RequestKind, credential_type: CredentialType) -> bool:
        """Return ``True`` if this connector can handle ``kind`` for the type."""
        return kind in self.kinds and credential_type.descriptor(self.protocol) is not None

    async def handle_verify_credential_request(self, request: VerifyRequest) -> Any:
        """Build the presentation request the end-user's wallet should answer."""
        raise ConnectorUnsupportedForType(f"{self.name} does not verify credentials")

    async def handle_verify_credential_disclosure(
        self, request: VerifyRequest, body: Any
    ) -> Any:
        """Check a disclosure and return the disclosed data."""
        raise ConnectorUnsupportedForType(f"{self.name} does not verify credentials")

    async def handle_issue_credential_request(self, request: IssueRequest) -> Any:
        """Build the credential offer for the end-user's wallet."""
        raise ConnectorUnsupportedForType(f"{self.name} does not issue credentials")

    async def handle_issue_credential_completion(
        self, request: IssueRequest, body: Any
    ) -> Any:
        """Finish issuance once the wallet has accepted the offer."""
        raise ConnectorUnsupportedForType(f"{self.name} does not issue credentials")

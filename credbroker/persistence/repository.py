"""Repository abstractions for organizations, credential types and requests."""

from __future__ import annotations

from typing import Protocol

from ..models import CredentialType, IssueRequest, Organization, VerifyRequest


class TrustStore(Protocol):
    """Protocol for resolving organizations and their credential types."""

    async def get_organization(self, uuid: str) -> Organization | None:
        """Return the organization with public id ``uuid``."""

    async def find_credential_type(
        self, organization_uuid: str, type_name: str
    ) -> CredentialType | None:
        """Return the type named ``type_name`` owned by the organization."""

    async def add_organization(self, organization: Organization) -> Organization:
        """Register a new organization."""

    async def add_credential_type(self, credential_type: CredentialType) -> CredentialType:
        """Register a credential type in its organization's namespace."""


class RequestStore(Protocol):
    """Protocol for append-only request persistence.

    ``create_*`` assigns a fresh uuid, persists the record atomically and
    returns a copy carrying that uuid. Records are never updated afterwards.
    """

    async def create_verify_request(self, request: VerifyRequest) -> VerifyRequest:
        """Persist a new verify request."""

    async def create_issue_request(self, request: IssueRequest) -> IssueRequest:
        """Persist a new issue request."""

    async def find_verify_request(self, uuid: str) -> VerifyRequest | None:
        """Retrieve a verify request by uuid."""

    async def find_issue_request(self, uuid: str) -> IssueRequest | None:
        """Retrieve an issue request by uuid."""


class BrokerRepository(TrustStore, RequestStore, Protocol):
    """A backend that serves as both trust store and request store."""

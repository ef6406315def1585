"""In-memory implementation of the broker repositories."""

from __future__ import annotations

import asyncio
import uuid as uuidlib
from typing import Dict, Tuple

from ..models import CredentialType, IssueRequest, Organization, VerifyRequest
from .repository import BrokerRepository


class InMemoryBrokerRepository(BrokerRepository):
    """Store organizations, types and requests in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._organizations: Dict[str, Organization] = {}
        self._types: Dict[Tuple[str, str], CredentialType] = {}
        self._verify_requests: Dict[str, VerifyRequest] = {}
        self._issue_requests: Dict[str, IssueRequest] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Trust store
    async def get_organization(self, uuid: str) -> Organization | None:
        return self._organizations.get(uuid)

    async def find_credential_type(
        self, organization_uuid: str, type_name: str
    ) -> CredentialType | None:
        return self._types.get((organization_uuid, type_name))

    async def add_organization(self, organization: Organization) -> Organization:
        async with self._lock:
            if organization.uuid in self._organizations:
                raise ValueError(f"Organization {organization.uuid} already exists")
            self._organizations[organization.uuid] = organization
        return organization

    async def add_credential_type(self, credential_type: CredentialType) -> CredentialType:
        key = (credential_type.organization, credential_type.type)
        async with self._lock:
            if credential_type.organization not in self._organizations:
                raise ValueError(f"Unknown organization {credential_type.organization}")
            if key in self._types:
                raise ValueError(f"Credential type {key} already exists")
            self._types[key] = credential_type
        return credential_type

    # ------------------------------------------------------------------
    # Request store
    async def create_verify_request(self, request: VerifyRequest) -> VerifyRequest:
        saved = request.model_copy(update={"uuid": str(uuidlib.uuid4())})
        async with self._lock:
            self._verify_requests[saved.uuid] = saved
        return saved

    async def create_issue_request(self, request: IssueRequest) -> IssueRequest:
        saved = request.model_copy(update={"uuid": str(uuidlib.uuid4())})
        async with self._lock:
            self._issue_requests[saved.uuid] = saved
        return saved

    async def find_verify_request(self, uuid: str) -> VerifyRequest | None:
        return self._verify_requests.get(uuid)

    async def find_issue_request(self, uuid: str) -> IssueRequest | None:
        return self._issue_requests.get(uuid)

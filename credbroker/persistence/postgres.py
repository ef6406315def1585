"""PostgreSQL implementation of the broker repositories."""

from __future__ import annotations

import json
import uuid as uuidlib
from typing import Any

import asyncpg

from ..models import CredentialType, IssueRequest, Organization, VerifyRequest
from .repository import BrokerRepository

_REQUEST_COLUMNS = """
    r.uuid, r.callback_url, r.created_at,
    o.uuid AS org_uuid, o.name AS org_name, o.shared_secret,
    t.type AS type_name, t.descriptors
"""


def _loads(value: Any) -> Any:
    return json.loads(value) if isinstance(value, str) else value


class PostgresBrokerRepository(BrokerRepository):
    """Persist organizations, credential types and requests using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS organizations (
                uuid TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                shared_secret TEXT NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS credential_types (
                id SERIAL PRIMARY KEY,
                organization_uuid TEXT NOT NULL REFERENCES organizations(uuid),
                type TEXT NOT NULL,
                descriptors JSONB NOT NULL,
                UNIQUE (organization_uuid, type)
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS verify_requests (
                id SERIAL PRIMARY KEY,
                uuid TEXT NOT NULL UNIQUE,
                requestor_uuid TEXT NOT NULL REFERENCES organizations(uuid),
                type_id INTEGER NOT NULL REFERENCES credential_types(id),
                callback_url TEXT NOT NULL,
                created_at TIMESTAMPTZ NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS issue_requests (
                id SERIAL PRIMARY KEY,
                uuid TEXT NOT NULL UNIQUE,
                requestor_uuid TEXT NOT NULL REFERENCES organizations(uuid),
                type_id INTEGER NOT NULL REFERENCES credential_types(id),
                callback_url TEXT NOT NULL,
                created_at TIMESTAMPTZ NOT NULL,
                data JSONB
            )
            """
        )

    @staticmethod
    def _request_fields(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "uuid": row["uuid"],
            "callback_url": row["callback_url"],
            "created_at": row["created_at"],
            "requestor": Organization(
                uuid=row["org_uuid"],
                name=row["org_name"],
                shared_secret=row["shared_secret"],
            ),
            "type": CredentialType(
                organization=row["org_uuid"],
                type=row["type_name"],
                descriptors=_loads(row["descriptors"]),
            ),
        }

    # ------------------------------------------------------------------
    # Trust store
    async def get_organization(self, uuid: str) -> Organization | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT uuid, name, shared_secret FROM organizations WHERE uuid = $1",
                uuid,
            )
        finally:
            await conn.close()
        if not row:
            return None
        return Organization(
            uuid=row["uuid"], name=row["name"], shared_secret=row["shared_secret"]
        )

    async def find_credential_type(
        self, organization_uuid: str, type_name: str
    ) -> CredentialType | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT organization_uuid, type, descriptors FROM credential_types WHERE organization_uuid = $1 AND type = $2",
                organization_uuid,
                type_name,
            )
        finally:
            await conn.close()
        if not row:
            return None
        return CredentialType(
            organization=row["organization_uuid"],
            type=row["type"],
            descriptors=_loads(row["descriptors"]),
        )

    async def add_organization(self, organization: Organization) -> Organization:
        conn = await self._connect()
        try:
            await conn.execute(
                "INSERT INTO organizations (uuid, name, shared_secret) VALUES ($1, $2, $3)",
                organization.uuid,
                organization.name,
                organization.shared_secret.get_secret_value(),
            )
        except asyncpg.UniqueViolationError as e:
            raise ValueError(str(e)) from e
        finally:
            await conn.close()
        return organization

    async def add_credential_type(self, credential_type: CredentialType) -> CredentialType:
        conn = await self._connect()
        try:
            await conn.execute(
                "INSERT INTO credential_types (organization_uuid, type, descriptors) VALUES ($1, $2, $3::jsonb)",
                credential_type.organization,
                credential_type.type,
                json.dumps(credential_type.descriptors),
            )
        except asyncpg.IntegrityConstraintViolationError as e:
            raise ValueError(str(e)) from e
        finally:
            await conn.close()
        return credential_type

    # ------------------------------------------------------------------
    # Request store
    async def create_verify_request(self, request: VerifyRequest) -> VerifyRequest:
        saved = request.model_copy(update={"uuid": str(uuidlib.uuid4())})
        conn = await self._connect()
        try:
            status = await conn.execute(
                """
                INSERT INTO verify_requests (uuid, requestor_uuid, type_id, callback_url, created_at)
                SELECT $1, $2, id, $3, $4 FROM credential_types
                WHERE organization_uuid = $5 AND type = $6
                """,
                saved.uuid,
                saved.requestor.uuid,
                saved.callback_url,
                saved.created_at,
                saved.type.organization,
                saved.type.type,
            )
        finally:
            await conn.close()
        if status != "INSERT 0 1":
            raise ValueError(f"Credential type {saved.type.type!r} is not stored")
        return saved

    async def create_issue_request(self, request: IssueRequest) -> IssueRequest:
        saved = request.model_copy(update={"uuid": str(uuidlib.uuid4())})
        conn = await self._connect()
        try:
            status = await conn.execute(
                """
                INSERT INTO issue_requests (uuid, requestor_uuid, type_id, callback_url, created_at, data)
                SELECT $1, $2, id, $3, $4, $5::jsonb FROM credential_types
                WHERE organization_uuid = $6 AND type = $7
                """,
                saved.uuid,
                saved.requestor.uuid,
                saved.callback_url,
                saved.created_at,
                json.dumps(saved.data),
                saved.type.organization,
                saved.type.type,
            )
        finally:
            await conn.close()
        if status != "INSERT 0 1":
            raise ValueError(f"Credential type {saved.type.type!r} is not stored")
        return saved

    async def find_verify_request(self, uuid: str) -> VerifyRequest | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                f"""
                SELECT {_REQUEST_COLUMNS}
                FROM verify_requests r
                JOIN organizations o ON o.uuid = r.requestor_uuid
                JOIN credential_types t ON t.id = r.type_id
                WHERE r.uuid = $1
                """,
                uuid,
            )
        finally:
            await conn.close()
        if not row:
            return None
        return VerifyRequest(**self._request_fields(row))

    async def find_issue_request(self, uuid: str) -> IssueRequest | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                f"""
                SELECT {_REQUEST_COLUMNS}, r.data
                FROM issue_requests r
                JOIN organizations o ON o.uuid = r.requestor_uuid
                JOIN credential_types t ON t.id = r.type_id
                WHERE r.uuid = $1
                """,
                uuid,
            )
        finally:
            await conn.close()
        if not row:
            return None
        return IssueRequest(**self._request_fields(row), data=_loads(row["data"]))

"""SQLite implementation of the broker repositories."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
import uuid as uuidlib
from datetime import datetime
from pathlib import Path
from typing import Any

from ..models import CredentialType, IssueRequest, Organization, VerifyRequest
from .repository import BrokerRepository

_REQUEST_COLUMNS = """
    r.uuid, r.callback_url, r.created_at,
    o.uuid AS org_uuid, o.name AS org_name, o.shared_secret,
    t.type AS type_name, t.descriptors
"""


class SQLiteBrokerRepository(BrokerRepository):
    """Persist organizations, credential types and requests using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._write_lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS organizations (
                uuid TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                shared_secret TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS credential_types (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                organization_uuid TEXT NOT NULL REFERENCES organizations(uuid),
                type TEXT NOT NULL,
                descriptors TEXT NOT NULL,
                UNIQUE (organization_uuid, type)
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS verify_requests (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                uuid TEXT NOT NULL UNIQUE,
                requestor_uuid TEXT NOT NULL REFERENCES organizations(uuid),
                type_id INTEGER NOT NULL REFERENCES credential_types(id),
                callback_url TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS issue_requests (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                uuid TEXT NOT NULL UNIQUE,
                requestor_uuid TEXT NOT NULL REFERENCES organizations(uuid),
                type_id INTEGER NOT NULL REFERENCES credential_types(id),
                callback_url TEXT NOT NULL,
                created_at TEXT NOT NULL,
                data TEXT
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        with self._write_lock:
            cur = self._conn.cursor()
            try:
                cur.execute(query, params)
            except sqlite3.IntegrityError as e:
                self._conn.rollback()
                raise ValueError(str(e)) from e
            self._conn.commit()
            return cur.rowcount

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._write_lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchone()

    @staticmethod
    def _request_fields(row: sqlite3.Row) -> dict[str, Any]:
        return {
            "uuid": row["uuid"],
            "callback_url": row["callback_url"],
            "created_at": datetime.fromisoformat(row["created_at"]),
            "requestor": Organization(
                uuid=row["org_uuid"],
                name=row["org_name"],
                shared_secret=row["shared_secret"],
            ),
            "type": CredentialType(
                organization=row["org_uuid"],
                type=row["type_name"],
                descriptors=json.loads(row["descriptors"]),
            ),
        }

    # ------------------------------------------------------------------
    # Trust store
    async def get_organization(self, uuid: str) -> Organization | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT uuid, name, shared_secret FROM organizations WHERE uuid = ?",
            uuid,
        )
        if not row:
            return None
        return Organization(
            uuid=row["uuid"], name=row["name"], shared_secret=row["shared_secret"]
        )

    async def find_credential_type(
        self, organization_uuid: str, type_name: str
    ) -> CredentialType | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT organization_uuid, type, descriptors FROM credential_types WHERE organization_uuid = ? AND type = ?",
            organization_uuid,
            type_name,
        )
        if not row:
            return None
        return CredentialType(
            organization=row["organization_uuid"],
            type=row["type"],
            descriptors=json.loads(row["descriptors"]),
        )

    async def add_organization(self, organization: Organization) -> Organization:
        await asyncio.to_thread(
            self._execute,
            "INSERT INTO organizations (uuid, name, shared_secret) VALUES (?, ?, ?)",
            organization.uuid,
            organization.name,
            organization.shared_secret.get_secret_value(),
        )
        return organization

    async def add_credential_type(self, credential_type: CredentialType) -> CredentialType:
        await asyncio.to_thread(
            self._execute,
            "INSERT INTO credential_types (organization_uuid, type, descriptors) VALUES (?, ?, ?)",
            credential_type.organization,
            credential_type.type,
            json.dumps(credential_type.descriptors),
        )
        return credential_type

    # ------------------------------------------------------------------
    # Request store
    async def create_verify_request(self, request: VerifyRequest) -> VerifyRequest:
        saved = request.model_copy(update={"uuid": str(uuidlib.uuid4())})
        inserted = await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO verify_requests (uuid, requestor_uuid, type_id, callback_url, created_at)
            SELECT ?, ?, id, ?, ? FROM credential_types
            WHERE organization_uuid = ? AND type = ?
            """,
            saved.uuid,
            saved.requestor.uuid,
            saved.callback_url,
            saved.created_at.isoformat(),
            saved.type.organization,
            saved.type.type,
        )
        if inserted != 1:
            raise ValueError(f"Credential type {saved.type.type!r} is not stored")
        return saved

    async def create_issue_request(self, request: IssueRequest) -> IssueRequest:
        saved = request.model_copy(update={"uuid": str(uuidlib.uuid4())})
        inserted = await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO issue_requests (uuid, requestor_uuid, type_id, callback_url, created_at, data)
            SELECT ?, ?, id, ?, ?, ? FROM credential_types
            WHERE organization_uuid = ? AND type = ?
            """,
            saved.uuid,
            saved.requestor.uuid,
            saved.callback_url,
            saved.created_at.isoformat(),
            json.dumps(saved.data),
            saved.type.organization,
            saved.type.type,
        )
        if inserted != 1:
            raise ValueError(f"Credential type {saved.type.type!r} is not stored")
        return saved

    async def find_verify_request(self, uuid: str) -> VerifyRequest | None:
        row = await asyncio.to_thread(
            self._fetchone,
            f"""
            SELECT {_REQUEST_COLUMNS}
            FROM verify_requests r
            JOIN organizations o ON o.uuid = r.requestor_uuid
            JOIN credential_types t ON t.id = r.type_id
            WHERE r.uuid = ?
            """,
            uuid,
        )
        if not row:
            return None
        return VerifyRequest(**self._request_fields(row))

    async def find_issue_request(self, uuid: str) -> IssueRequest | None:
        row = await asyncio.to_thread(
            self._fetchone,
            f"""
            SELECT {_REQUEST_COLUMNS}, r.data
            FROM issue_requests r
            JOIN organizations o ON o.uuid = r.requestor_uuid
            JOIN credential_types t ON t.id = r.type_id
            WHERE r.uuid = ?
            """,
            uuid,
        )
        if not row:
            return None
        return IssueRequest(
            **self._request_fields(row),
            data=json.loads(row["data"]) if row["data"] is not None else None,
        )

    def close(self) -> None:
        self._conn.close()

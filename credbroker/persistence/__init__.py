"""Persistence layer for organizations, credential types and requests."""

from __future__ import annotations

import os
from typing import Optional

from ..config import BrokerConfig, load_config
from .inmemory import InMemoryBrokerRepository
from .repository import BrokerRepository, RequestStore, TrustStore
from .sqlite import SQLiteBrokerRepository

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresBrokerRepository
except ImportError:  # pragma: no cover - optional dependency
    PostgresBrokerRepository = None  # type: ignore


def get_repository(
    database_url: Optional[str] = None, config: Optional[BrokerConfig] = None
) -> BrokerRepository:
    """Build the repository backend for ``database_url``.

    The URL can be provided explicitly, via environment variable
    ``CREDBROKER_DATABASE_URL`` or ``DATABASE_URL``, or from loaded
    configuration. When no database is configured, an in-memory repository is
    returned. Every call constructs a new backend; callers pass it on
    explicitly.
    """

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("CREDBROKER_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.database_url
    )

    if not database_url:
        return InMemoryBrokerRepository()

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        return SQLiteBrokerRepository(path)
    if database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        if PostgresBrokerRepository is None:
            raise RuntimeError("Postgres support not available")
        return PostgresBrokerRepository(database_url)
    raise ValueError(f"Unsupported database backend: {database_url}")


__all__ = [
    "BrokerRepository",
    "InMemoryBrokerRepository",
    "PostgresBrokerRepository",
    "RequestStore",
    "SQLiteBrokerRepository",
    "TrustStore",
    "get_repository",
]

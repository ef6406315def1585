from __future__ import annotations

import os
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import DEFAULT_CONNECTORS, DEFAULT_ISSUER


class RedisConfig(BaseModel):
    """Configuration for the Redis notification channel."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None


class NotificationConfig(BaseModel):
    """Notification channel settings."""

    backend: Literal["inmemory", "redis"] = "inmemory"
    redis: RedisConfig = RedisConfig()


class SigningConfig(BaseModel):
    """Broker key material used for outcome tokens."""

    key_path: Optional[str] = None
    issuer: str = DEFAULT_ISSUER


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8000


class BrokerConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    signing: SigningConfig = SigningConfig()
    notifications: NotificationConfig = NotificationConfig()
    connectors: List[str] = Field(default_factory=lambda: list(DEFAULT_CONNECTORS))
    server: ServerConfig = ServerConfig()


def load_config(path: Optional[str] = None) -> BrokerConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to CREDBROKER_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("CREDBROKER_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = BrokerConfig(**data)
    else:
        config = BrokerConfig()

    env_db_url = os.getenv("CREDBROKER_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    return config

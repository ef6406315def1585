"""Connector interface, registry and built-in connectors."""

from .base import ConnectorService
from .demo import DemoConnector
from .registry import ConnectorRegistry, load_connectors

__all__ = ["ConnectorRegistry", "ConnectorService", "DemoConnector", "load_connectors"]

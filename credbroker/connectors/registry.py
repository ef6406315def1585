"""Registry mapping connector names to connector implementations."""

from __future__ import annotations

import importlib
import logging
from typing import Dict, Iterable, List, Optional

from ..exceptions import ConnectorNotFound, ConnectorUnsupportedForType
from ..models import CredentialRequest, RequestKind
from .base import ConnectorService

logger = logging.getLogger(__name__)


class ConnectorRegistry:
    """Ordered set of connectors keyed by name.

    Iteration and :meth:`available_connectors` follow registration order.
    """

    def __init__(self, connectors: Iterable[ConnectorService] = ()) -> None:
        self._connectors: Dict[str, ConnectorService] = {}
        for connector in connectors:
            self.register(connector)

    def register(self, connector: ConnectorService) -> None:
        if connector.name in self._connectors:
            raise ValueError(f"Connector {connector.name!r} is already registered")
        self._connectors[connector.name] = connector
        logger.debug(f"Registered connector {connector.name} ({connector.protocol})")

    @property
    def names(self) -> List[str]:
        return list(self._connectors)

    def get_connector(self, name: str) -> Optional[ConnectorService]:
        return self._connectors.get(name)

    def available_connectors(
        self, kind: RequestKind, request: CredentialRequest
    ) -> List[ConnectorService]:
        """Connectors able to handle ``request`` as a ``kind`` request."""
        return [
            connector
            for connector in self._connectors.values()
            if connector.supports(kind, request.type)
        ]

    def require(
        self, name: str, kind: RequestKind, request: CredentialRequest
    ) -> ConnectorService:
        """Return connector ``name`` if it can handle ``request``.

        Raises:
            ConnectorNotFound: No connector is registered under ``name``.
            ConnectorUnsupportedForType: The connector cannot handle the
                request's kind or credential type.
        """
        connector = self.get_connector(name)
        if connector is None:
            raise ConnectorNotFound(f"No connector named {name!r}")
        if not connector.supports(kind, request.type):
            raise ConnectorUnsupportedForType(
                f"Connector {name!r} cannot {kind.value} credential type {request.type.type!r}"
            )
        return connector

    def __iter__(self):
        return iter(self._connectors.values())

    def __len__(self) -> int:
        return len(self._connectors)


def _import_connector(spec: str) -> ConnectorService:
    module_name, _, class_name = spec.partition(":")
    if not class_name:
        raise ValueError(f"Connector spec must look like 'module:Class', got {spec!r}")
    module = importlib.import_module(module_name)
    connector_cls = getattr(module, class_name)
    return connector_cls()


def load_connectors(specs: Iterable[str]) -> ConnectorRegistry:
    """Instantiate connectors from ``module:Class`` import paths."""
    registry = ConnectorRegistry()
    for spec in specs:
        registry.register(_import_connector(spec))
    return registry

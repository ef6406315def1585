"""credbroker: brokers verifiable-credential issue and verify requests."""

from .broker import RequestBroker
from .connectors import ConnectorRegistry, ConnectorService, DemoConnector
from .exchange import CredentialExchange, create_exchange
from .models import (
    CredentialType,
    IssueRequest,
    Organization,
    ResponseStatus,
    VerifyRequest,
)
from .notifications import get_notification_channel
from .persistence import get_repository
from .security import BrokerKeyProvider, TokenCodec

__version__ = "0.1.0"
__all__ = [
    "BrokerKeyProvider",
    "ConnectorRegistry",
    "ConnectorService",
    "CredentialExchange",
    "CredentialType",
    "DemoConnector",
    "IssueRequest",
    "Organization",
    "RequestBroker",
    "ResponseStatus",
    "TokenCodec",
    "VerifyRequest",
    "create_exchange",
    "get_notification_channel",
    "get_repository",
]

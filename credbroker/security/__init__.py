"""Token and key handling for credbroker."""

from .keys import BrokerKeyProvider
from .tokens import TokenCodec

__all__ = ["BrokerKeyProvider", "TokenCodec"]

"""Error taxonomy for the request broker.

Every error carries an :class:`ErrorKind` so callers can branch on the kind of
failure instead of matching on message text.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    MALFORMED_TOKEN = "malformed_token"
    UNKNOWN_ISSUER = "unknown_issuer"
    INVALID_REQUEST_TOKEN = "invalid_request_token"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED = "expired"
    UNKNOWN_CREDENTIAL_TYPE = "unknown_credential_type"
    REQUEST_NOT_FOUND = "request_not_found"
    CONNECTOR_NOT_FOUND = "connector_not_found"
    CONNECTOR_UNSUPPORTED = "connector_unsupported"
    CONNECTOR_FAILURE = "connector_failure"


AUTHENTICATION_KINDS = frozenset(
    {
        ErrorKind.MALFORMED_TOKEN,
        ErrorKind.UNKNOWN_ISSUER,
        ErrorKind.INVALID_REQUEST_TOKEN,
        ErrorKind.INVALID_SIGNATURE,
        ErrorKind.EXPIRED,
    }
)


class BrokerError(Exception):
    """Base class for all credbroker errors."""

    kind: ErrorKind

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.kind.value)


class MalformedToken(BrokerError):
    """The token cannot be parsed or lacks a required claim."""

    kind = ErrorKind.MALFORMED_TOKEN


class UnknownIssuer(BrokerError):
    """The ``iss`` claim does not match any known organization."""

    kind = ErrorKind.UNKNOWN_ISSUER


class InvalidRequestToken(BrokerError):
    """Generic verification failure surfaced to clients."""

    kind = ErrorKind.INVALID_REQUEST_TOKEN


class InvalidSignature(InvalidRequestToken):
    kind = ErrorKind.INVALID_SIGNATURE


class Expired(InvalidRequestToken):
    kind = ErrorKind.EXPIRED


class UnknownCredentialType(BrokerError):
    """The requesting organization defines no credential type of that name."""

    kind = ErrorKind.UNKNOWN_CREDENTIAL_TYPE


class RequestNotFound(BrokerError):
    kind = ErrorKind.REQUEST_NOT_FOUND


class ConnectorNotFound(BrokerError):
    kind = ErrorKind.CONNECTOR_NOT_FOUND


class ConnectorUnsupportedForType(BrokerError):
    """The connector exists but cannot handle this request kind or type."""

    kind = ErrorKind.CONNECTOR_UNSUPPORTED


class ConnectorError(BrokerError):
    """Raised by connectors when a protocol-specific step fails."""

    kind = ErrorKind.CONNECTOR_FAILURE


__all__ = [
    "AUTHENTICATION_KINDS",
    "BrokerError",
    "ConnectorError",
    "ConnectorNotFound",
    "ConnectorUnsupportedForType",
    "ErrorKind",
    "Expired",
    "InvalidRequestToken",
    "InvalidSignature",
    "MalformedToken",
    "RequestNotFound",
    "UnknownCredentialType",
    "UnknownIssuer",
]

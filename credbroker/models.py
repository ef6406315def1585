"""Domain models for organizations, credential types and requests."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    computed_field,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .constants import REQUEST_ID_DELIMITER


class BrokerModel(BaseModel):
    """Base model using camelCase names on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class RequestKind(str, Enum):
    ISSUE = "issue"
    VERIFY = "verify"


class ResponseStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class Organization(BrokerModel):
    """A requesting organization and its pre-shared signing secret."""

    uuid: str
    name: str = ""
    shared_secret: SecretStr = Field(exclude=True)


class CredentialType(BrokerModel):
    """A credential schema in one organization's type namespace.

    ``descriptors`` maps a protocol category (e.g. ``"demo"``) to the
    protocol-specific type description a connector needs.
    """

    organization: str
    type: str
    descriptors: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    def descriptor(self, protocol: str) -> Optional[Dict[str, Any]]:
        return self.descriptors.get(protocol)


class CredentialRequest(BrokerModel):
    """Common fields of issue and verify requests."""

    request_type: ClassVar[str]
    kind: ClassVar[RequestKind]

    uuid: Optional[str] = None
    requestor: Organization
    type: CredentialType
    callback_url: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @computed_field(alias="requestId")  # type: ignore[misc]
    @property
    def request_id(self) -> Optional[str]:
        """Type-tagged external address, ``"<requestType>:<uuid>"``."""
        if not self.uuid:
            return None
        return f"{self.request_type}{REQUEST_ID_DELIMITER}{self.uuid}"

    @model_validator(mode="after")
    def _type_belongs_to_requestor(self) -> "CredentialRequest":
        if self.type.organization != self.requestor.uuid:
            raise ValueError(
                f"Credential type {self.type.type!r} is not owned by {self.requestor.uuid}"
            )
        return self


class VerifyRequest(CredentialRequest):
    request_type: ClassVar[str] = RequestKind.VERIFY.value
    kind: ClassVar[RequestKind] = RequestKind.VERIFY


class IssueRequest(CredentialRequest):
    request_type: ClassVar[str] = RequestKind.ISSUE.value
    kind: ClassVar[RequestKind] = RequestKind.ISSUE

    data: Any = None


class RequestTokenData(BrokerModel):
    """Verified claims of an organization-signed request token."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    iss: str
    iat: float
    type: str
    callback_url: str


class VerifyRequestData(RequestTokenData):
    pass


class IssueRequestData(RequestTokenData):
    data: Any = None


class RedirectMessage(BrokerModel):
    """Instruction pushed to the browser session waiting on a request."""

    request_id: str
    status: ResponseStatus
    redirect_url: str

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, data: str | bytes) -> "RedirectMessage":
        return cls.model_validate_json(data)


def parse_request_id(request_id: str) -> Tuple[str, str]:
    """Split ``request_id`` into ``(request_type, uuid)`` at the first delimiter.

    Either component may be empty when the identifier is malformed.
    """
    request_type, _, uuid = request_id.partition(REQUEST_ID_DELIMITER)
    return request_type, uuid


__all__ = [
    "BrokerModel",
    "CredentialRequest",
    "CredentialType",
    "IssueRequest",
    "IssueRequestData",
    "Organization",
    "RedirectMessage",
    "RequestKind",
    "RequestTokenData",
    "ResponseStatus",
    "VerifyRequest",
    "VerifyRequestData",
    "parse_request_id",
]

"""Request broker: authenticates request tokens and addresses request records."""

from __future__ import annotations

import logging
from typing import Any, Optional, Tuple, Type, TypeVar

from .exceptions import (
    InvalidRequestToken,
    MalformedToken,
    UnknownCredentialType,
    UnknownIssuer,
)
from .models import (
    CredentialRequest,
    CredentialType,
    IssueRequest,
    IssueRequestData,
    Organization,
    RequestTokenData,
    ResponseStatus,
    VerifyRequest,
    VerifyRequestData,
    parse_request_id,
)
from .persistence import RequestStore, TrustStore
from .security import BrokerKeyProvider, TokenCodec

logger = logging.getLogger(__name__)

D = TypeVar("D", bound=RequestTokenData)


class RequestBroker:
    """Turns signed request tokens into persisted requests and back into outcomes.

    Dependencies are passed in explicitly: the trust store resolves
    organizations and credential types, the request store persists request
    records and the codec handles all token cryptography.
    """

    def __init__(
        self,
        trust_store: TrustStore,
        request_store: RequestStore,
        codec: TokenCodec,
    ) -> None:
        self._trust_store = trust_store
        self._request_store = request_store
        self._codec = codec

    @property
    def key_provider(self) -> BrokerKeyProvider:
        """The broker key pair whose public half requestors trust."""
        return self._codec.key_provider

    # ------------------------------------------------------------------
    # Inbound tokens
    async def accept_verify_token(self, token: str) -> VerifyRequest:
        """Authenticate ``token`` and persist the verify request it describes."""
        payload, requestor = await self._authenticate(token, VerifyRequestData)
        credential_type = await self._resolve_type(requestor, payload.type)

        verify_request = VerifyRequest(
            requestor=requestor,
            type=credential_type,
            callback_url=payload.callback_url,
        )
        saved = await self._request_store.create_verify_request(verify_request)
        logger.info(
            f"Created verify request {saved.request_id} for organization {requestor.uuid}"
        )
        return saved

    async def accept_issue_token(self, token: str) -> IssueRequest:
        """Authenticate ``token`` and persist the issue request it describes."""
        payload, requestor = await self._authenticate(token, IssueRequestData)
        credential_type = await self._resolve_type(requestor, payload.type)

        issue_request = IssueRequest(
            requestor=requestor,
            type=credential_type,
            callback_url=payload.callback_url,
            data=payload.data,
        )
        saved = await self._request_store.create_issue_request(issue_request)
        logger.info(
            f"Created issue request {saved.request_id} for organization {requestor.uuid}"
        )
        return saved

    async def _authenticate(
        self, token: str, model: Type[D]
    ) -> Tuple[D, Organization]:
        # The issuer claim is untrusted until verify_and_extract succeeds with
        # that issuer's secret.
        try:
            issuer = self._codec.decode_issuer_hint(token)
            requestor = await self._trust_store.get_organization(issuer)
            if requestor is None:
                raise UnknownIssuer(f"No organization with id {issuer!r}")
            payload = self._codec.verify_and_extract(
                token, requestor.shared_secret.get_secret_value(), model
            )
        except InvalidRequestToken as e:
            logger.error(f"Received error during JWT decoding: {e.kind.value}: {e}")
            raise InvalidRequestToken("Could not decode request JWT") from e
        except (MalformedToken, UnknownIssuer) as e:
            logger.error(f"Received error during JWT decoding: {e}")
            raise
        return payload, requestor

    async def _resolve_type(
        self, requestor: Organization, type_name: str
    ) -> CredentialType:
        credential_type = await self._trust_store.find_credential_type(
            requestor.uuid, type_name
        )
        if credential_type is None:
            logger.warning(
                f"Organization {requestor.uuid} has no credential type {type_name!r}"
            )
            raise UnknownCredentialType(
                f"Unknown credential type {type_name!r} for organization {requestor.uuid}"
            )
        return credential_type

    # ------------------------------------------------------------------
    # Request lookup
    async def resolve_by_request_id(self, request_id: str) -> Optional[CredentialRequest]:
        """Return the request addressed by ``request_id`` or ``None``.

        A well-formed id that matches no record is a normal outcome (consumed
        or stale links), so misses are never raised.
        """
        request_type, uuid = parse_request_id(request_id)
        if not request_type or not uuid:
            return None

        if request_type == VerifyRequest.request_type:
            found: Optional[CredentialRequest] = await self._request_store.find_verify_request(uuid)
        elif request_type == IssueRequest.request_type:
            found = await self._request_store.find_issue_request(uuid)
        else:
            logger.debug(f"Unrecognized request type tag in {request_id!r}")
            return None

        if found is None:
            logger.info(f"No request found for {request_id!r}")
        return found

    async def resolve_verify_request(self, request_id: str) -> Optional[VerifyRequest]:
        found = await self.resolve_by_request_id(request_id)
        return found if isinstance(found, VerifyRequest) else None

    async def resolve_issue_request(self, request_id: str) -> Optional[IssueRequest]:
        found = await self.resolve_by_request_id(request_id)
        return found if isinstance(found, IssueRequest) else None

    # ------------------------------------------------------------------
    # Outcome
    def encode_outcome_token(
        self,
        request: CredentialRequest,
        status: ResponseStatus,
        connector_name: str,
        data: Any,
    ) -> str:
        """Encode the outcome of ``request`` with the broker's own key."""
        if request.request_id is None:
            raise ValueError("Cannot encode an outcome for an unsaved request")
        return self._codec.encode_outcome(
            request.request_id, status, connector_name, data
        )

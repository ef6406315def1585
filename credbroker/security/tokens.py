"""Request token verification and outcome token encoding."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Type, TypeVar

import jwt
from pydantic import ValidationError

from ..constants import JWT_MAX_AGE, REQUEST_TOKEN_ALGORITHMS
from ..exceptions import (
    Expired,
    InvalidRequestToken,
    InvalidSignature,
    MalformedToken,
)
from ..models import RequestTokenData, ResponseStatus
from .keys import BrokerKeyProvider

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=RequestTokenData)


class TokenCodec:
    """Decodes organization-signed request tokens and encodes outcome tokens.

    Request tokens are verified in two phases: :meth:`decode_issuer_hint`
    reads the untrusted ``iss`` claim so the caller can look up that
    organization's secret, then :meth:`verify_and_extract` checks the
    signature and freshness against that secret. No claim is trusted before
    the second phase succeeds.
    """

    def __init__(
        self,
        key_provider: BrokerKeyProvider,
        max_age: int = JWT_MAX_AGE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.key_provider = key_provider
        self.max_age = max_age
        self._clock = clock

    def decode_issuer_hint(self, token: str) -> str:
        """Return the unverified ``iss`` claim of ``token``."""
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError as e:
            raise MalformedToken(f"Could not decode token: {e}") from e

        issuer = claims.get("iss")
        if not issuer or not isinstance(issuer, str):
            raise MalformedToken(f"Could not decode issuer from: {claims}")
        return issuer

    def verify_and_extract(self, token: str, secret: str, model: Type[T]) -> T:
        """Verify ``token`` with ``secret`` and validate its claims into ``model``.

        Raises:
            InvalidSignature: The HMAC does not match ``secret``.
            Expired: The token is ``max_age`` seconds old or older.
            MalformedToken: Required claims are missing or have the wrong shape.
        """
        try:
            claims = jwt.decode(
                token,
                secret,
                algorithms=REQUEST_TOKEN_ALGORITHMS,
                options={"require": ["iss", "iat"], "verify_aud": False},
            )
        except jwt.ExpiredSignatureError as e:
            raise Expired(str(e)) from e
        except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError) as e:
            raise InvalidSignature(str(e)) from e
        except (jwt.DecodeError, jwt.MissingRequiredClaimError) as e:
            raise MalformedToken(str(e)) from e
        except jwt.InvalidTokenError as e:
            raise InvalidRequestToken(str(e)) from e

        age = self._clock() - float(claims["iat"])
        if age >= self.max_age:
            raise Expired(f"Token issued {age:.0f}s ago, max age is {self.max_age}s")

        try:
            return model.model_validate(claims)
        except ValidationError as e:
            raise MalformedToken(f"Unexpected request payload: {e}") from e

    def encode_outcome(
        self,
        request_id: str,
        status: ResponseStatus | str,
        connector_name: str,
        data: Any,
    ) -> str:
        """Encode the terminal result of a request, signed with the broker key."""
        payload: Dict[str, Any] = {
            "iss": self.key_provider.issuer,
            "iat": int(self._clock()),
            "requestId": request_id,
            "status": ResponseStatus(status).value,
            "connectorName": connector_name,
            "data": data,
        }
        return jwt.encode(
            payload,
            self.key_provider.get_signing_key(),
            algorithm=self.key_provider.algorithm,
            headers={"kid": self.key_provider.kid},
        )

    def decode_outcome(self, token: str) -> Dict[str, Any]:
        """Verify an outcome token against the broker's public key."""
        return jwt.decode(
            token,
            self.key_provider.get_verification_key(),
            algorithms=[self.key_provider.algorithm],
            issuer=self.key_provider.issuer,
            options={"verify_aud": False},
        )

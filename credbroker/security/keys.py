"""Key management for the broker's own signing key."""

from __future__ import annotations

import base64
import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa
from jwt.algorithms import ECAlgorithm, OKPAlgorithm, RSAAlgorithm

from ..config import SigningConfig
from ..constants import DEFAULT_ISSUER

logger = logging.getLogger(__name__)

# RFC 7638 required members per key type
_THUMBPRINT_MEMBERS = {
    "EC": ("crv", "kty", "x", "y"),
    "OKP": ("crv", "kty", "x"),
    "RSA": ("e", "kty", "n"),
}


def _algorithm_for(private_key: Any) -> str:
    if isinstance(private_key, ed25519.Ed25519PrivateKey):
        return "EdDSA"
    if isinstance(private_key, rsa.RSAPrivateKey):
        return "RS256"
    if isinstance(private_key, ec.EllipticCurvePrivateKey):
        if isinstance(private_key.curve, ec.SECP256R1):
            return "ES256"
        if isinstance(private_key.curve, ec.SECP384R1):
            return "ES384"
    raise ValueError(f"Unsupported signing key type: {type(private_key).__name__}")


class BrokerKeyProvider:
    """Holds the broker's private key and publishes its verification material.

    Outcome tokens are signed with this key, never with a requestor's shared
    secret. Requestors verify them with the public JWK returned by
    :meth:`jwks`.
    """

    def __init__(self, private_key: Any, issuer: str = DEFAULT_ISSUER) -> None:
        self.algorithm = _algorithm_for(private_key)
        self.issuer = issuer
        self._private_key = private_key
        self.kid = self._thumbprint()

    @classmethod
    def generate(cls, issuer: str = DEFAULT_ISSUER) -> "BrokerKeyProvider":
        """Create a provider around a fresh Ed25519 key."""
        return cls(ed25519.Ed25519PrivateKey.generate(), issuer=issuer)

    @classmethod
    def from_pem(
        cls, pem: bytes, issuer: str = DEFAULT_ISSUER, password: Optional[bytes] = None
    ) -> "BrokerKeyProvider":
        return cls(serialization.load_pem_private_key(pem, password=password), issuer=issuer)

    @classmethod
    def from_file(cls, path: str | Path, issuer: str = DEFAULT_ISSUER) -> "BrokerKeyProvider":
        return cls.from_pem(Path(path).read_bytes(), issuer=issuer)

    @classmethod
    def from_config(cls, config: SigningConfig) -> "BrokerKeyProvider":
        if config.key_path:
            return cls.from_file(config.key_path, issuer=config.issuer)
        logger.warning(
            "No signing key configured; generated an ephemeral key. "
            "Outcome tokens will not verify after a restart."
        )
        return cls.generate(issuer=config.issuer)

    def get_signing_key(self) -> Any:
        return self._private_key

    def get_verification_key(self) -> Any:
        return self._private_key.public_key()

    def private_pem(self) -> bytes:
        return self._private_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )

    def public_jwk(self) -> dict[str, Any]:
        """Public key as a JWK including ``kid``, ``alg`` and ``use``."""
        jwk = self._raw_public_jwk()
        jwk.update({"kid": self.kid, "alg": self.algorithm, "use": "sig"})
        return jwk

    def jwks(self) -> dict[str, Any]:
        return {"keys": [self.public_jwk()]}

    def _raw_public_jwk(self) -> dict[str, Any]:
        public_key = self.get_verification_key()
        if self.algorithm == "EdDSA":
            return json.loads(OKPAlgorithm.to_jwk(public_key))
        if self.algorithm == "RS256":
            return json.loads(RSAAlgorithm.to_jwk(public_key))
        return json.loads(ECAlgorithm.to_jwk(public_key))

    def _thumbprint(self) -> str:
        jwk = self._raw_public_jwk()
        members = {k: jwk[k] for k in _THUMBPRINT_MEMBERS[jwk["kty"]]}
        canonical = json.dumps(members, separators=(",", ":"), sort_keys=True)
        digest = hashlib.sha256(canonical.encode("utf-8")).digest()
        return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")

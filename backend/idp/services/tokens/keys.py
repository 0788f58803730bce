"""RS256 signing key pair shared by the issuer and the validator.

The key pair is the only process-wide state of the token core. It is loaded
once by the application factory (or generated for development and tests)
and passed explicitly to every component that signs or verifies.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm

from idp.services._shared.errors import SigningFailed

log = logging.getLogger(__name__)

ALGORITHM = "RS256"
MIN_KEY_SIZE = 2048


def _thumbprint(jwk: dict[str, Any]) -> str:
    """RFC 7638 JWK thumbprint (SHA-256, base64url without padding)."""
    canonical = json.dumps(
        {"e": jwk["e"], "kty": jwk["kty"], "n": jwk["n"]},
        separators=(",", ":"),
        sort_keys=True,
    )
    digest = hashlib.sha256(canonical.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


@dataclass(frozen=True, slots=True)
class KeyMaterial:
    """
    Immutable RSA key pair plus its key id.

    :ivar private_key: Signing key.
    :ivar public_key: Verification key (matches ``private_key``).
    :ivar kid: RFC 7638 thumbprint of ``public_key``; written to the ``kid``
        header of every access token and to the published JWKS.
    """

    private_key: rsa.RSAPrivateKey
    public_key: rsa.RSAPublicKey
    kid: str

    # ----------------------------- Constructors -----------------------------

    @classmethod
    def from_private_key(
        cls,
        private_key: Any,
        public_key: Any | None = None,
    ) -> KeyMaterial:
        """
        Build key material, deriving or cross-checking the public half.

        :raises SigningFailed: If the key is not RSA, is shorter than 2048
            bits, or ``public_key`` does not belong to ``private_key``.
        """
        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise SigningFailed("signing key must be an RSA private key")
        if private_key.key_size < MIN_KEY_SIZE:
            raise SigningFailed(f"signing key must be at least {MIN_KEY_SIZE} bits")

        derived = private_key.public_key()
        if public_key is None:
            public_key = derived
        elif not isinstance(public_key, rsa.RSAPublicKey):
            raise SigningFailed("public key must be an RSA public key")
        elif public_key.public_numbers() != derived.public_numbers():
            raise SigningFailed("public key does not match the private key")

        jwk = json.loads(RSAAlgorithm.to_jwk(public_key))
        return cls(private_key=private_key, public_key=public_key, kid=_thumbprint(jwk))

    @classmethod
    def from_pem(cls, private_pem: bytes, public_pem: bytes | None = None) -> KeyMaterial:
        """Parse PEM-encoded keys (PKCS#1 or PKCS#8 private, SPKI public)."""
        try:
            private_key = serialization.load_pem_private_key(private_pem, password=None)
            public_key = (
                serialization.load_pem_public_key(public_pem) if public_pem is not None else None
            )
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise SigningFailed(f"unreadable key material: {exc}") from exc
        return cls.from_private_key(private_key, public_key)

    @classmethod
    def from_pem_files(
        cls,
        private_path: str | Path,
        public_path: str | Path | None = None,
    ) -> KeyMaterial:
        """
        Load the key pair from PEM files.

        :param private_path: Private key file.
        :param public_path: Optional public key file; derived when omitted or
            missing on disk.
        :raises SigningFailed: If a file cannot be read or parsed.
        """
        try:
            private_pem = Path(private_path).read_bytes()
            public_pem = None
            if public_path is not None and Path(public_path).exists():
                public_pem = Path(public_path).read_bytes()
        except OSError as exc:
            raise SigningFailed(f"cannot read key file: {exc}") from exc
        material = cls.from_pem(private_pem, public_pem)
        log.info("signing key loaded", extra={"kid": material.kid})
        return material

    @classmethod
    def generate(cls, key_size: int = MIN_KEY_SIZE) -> KeyMaterial:
        """Create a fresh random key pair (development and tests only)."""
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
        return cls.from_private_key(private_key)

    # ------------------------------- Exports --------------------------------

    def public_pem(self) -> str:
        """Public key as SubjectPublicKeyInfo PEM (``-----BEGIN PUBLIC KEY-----``)."""
        return self.public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("ascii")

    def private_pem(self) -> bytes:
        """Unencrypted PKCS#8 PEM of the private key, for writing key files."""
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def jwk(self) -> dict[str, Any]:
        """Public key as a JSON Web Key with ``kid``, ``use`` and ``alg``."""
        jwk = json.loads(RSAAlgorithm.to_jwk(self.public_key))
        jwk.update({"kid": self.kid, "use": "sig", "alg": ALGORITHM})
        return jwk

    def jwks(self) -> dict[str, list[dict[str, Any]]]:
        return {"keys": [self.jwk()]}

    # ------------------------------ Self-check ------------------------------

    def self_check(self) -> None:
        """
        Sign and verify a probe token.

        :raises SigningFailed: If the pair cannot round-trip a signature.
        """
        try:
            probe = jwt.encode({"probe": True}, self.private_key, algorithm=ALGORITHM)
            jwt.decode(probe, self.public_key, algorithms=[ALGORITHM])
        except jwt.PyJWTError as exc:
            raise SigningFailed(f"key self-check failed: {exc}") from exc

    def __repr__(self) -> str:
        return f"<KeyMaterial kid={self.kid}>"

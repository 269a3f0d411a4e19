"""
Session Credentials

RS256 signed JWTs asserting an authenticated subject email and an expiry.
The private half of the key pair signs, the public half verifies. Nothing is
stored server side: a credential is valid exactly when its signature checks
out against the public key and its expiry has not passed.

Key files are PEM encoded RSA private keys (PKCS#1 or PKCS#8, unencrypted),
loaded once at startup.
"""
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from backend.core.errors import (
    ConfigurationError,
    Expired,
    KeyUnavailable,
    MalformedToken,
    SignatureInvalid,
)

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "RS256"
DEFAULT_SESSION_TTL = timedelta(hours=2)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class KeyPair:
    """RSA signing key and its public half. Immutable once loaded."""

    private_key: rsa.RSAPrivateKey
    public_key: rsa.RSAPublicKey

    @classmethod
    def generate(cls, key_size: int = 2048) -> "KeyPair":
        """Generate a fresh key pair (tooling and tests)."""
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
        return cls(private_key=private_key, public_key=private_key.public_key())

    @classmethod
    def from_pem(cls, pem_data: bytes) -> "KeyPair":
        """
        Parse a PEM encoded RSA private key.

        Raises:
            ConfigurationError: If the data is not an unencrypted RSA private key
        """
        try:
            private_key = serialization.load_pem_private_key(pem_data, password=None)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"Failed to parse RSA private key: {e}") from e

        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise ConfigurationError(f"Not an RSA private key: {type(private_key).__name__}")

        return cls(private_key=private_key, public_key=private_key.public_key())

    @classmethod
    def from_pem_file(cls, path) -> "KeyPair":
        """
        Load the signing key from a PEM file.

        Raises:
            ConfigurationError: If the file is unreadable or unparsable
        """
        path = Path(path)
        try:
            pem_data = path.read_bytes()
        except OSError as e:
            raise ConfigurationError(f"Failed to read {path}: {e}") from e

        key_pair = cls.from_pem(pem_data)
        logger.info(f"Loaded {key_pair.private_key.key_size}-bit RSA signing key from {path}")
        return key_pair

    def private_pem(self) -> bytes:
        """Serialize the private key (PKCS#8 PEM). Sensitive."""
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def public_pem(self) -> bytes:
        return self.public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )


def save_private_key(key_pair: KeyPair, path, overwrite: bool = False) -> Path:
    """
    Write the private key to a PEM file readable by the owner only.

    Raises:
        FileExistsError: If the file exists and overwrite is False
    """
    path = Path(path)
    if path.exists() and not overwrite:
        raise FileExistsError(f"{path} already exists")

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(key_pair.private_pem())
    os.chmod(path, 0o600)  # Owner read/write only
    return path


@dataclass(frozen=True)
class SessionClaims:
    """Verified content of a session credential."""

    subject_email: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class IssuedCredential:
    token: str
    expires_at: datetime

    @property
    def expires_at_unix(self) -> int:
        return int(self.expires_at.timestamp())


class CredentialVerifier:
    """
    Validates session credentials against the public key.

    verify() is a pure function of (token, public key, current time).
    """

    def __init__(self, public_key: rsa.RSAPublicKey, clock: Callable[[], datetime] = _utcnow):
        self._public_key = public_key
        self._clock = clock

    def verify(self, token: str) -> SessionClaims:
        """
        Decode and validate a session credential.

        Validates:
        - Header algorithm is exactly RS256 (no "none", no HMAC substitution)
        - Signature against the public key
        - Presence of email, iat, exp claims
        - Expiration against the current time (no leeway)

        Raises:
            MalformedToken: Token, header or claims cannot be parsed
            SignatureInvalid: Wrong algorithm or signature mismatch
            Expired: exp has passed
        """
        if not token or not isinstance(token, str):
            raise MalformedToken()

        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as e:
            raise MalformedToken(f"Malformed token: {e}") from e

        algorithm = header.get("alg")
        if algorithm != JWT_ALGORITHM:
            logger.warning(f"Rejected token with unexpected signing algorithm: {algorithm!r}")
            raise SignatureInvalid(f"unexpected signing method: {algorithm}")

        try:
            payload = jwt.decode(
                token,
                self._public_key,
                algorithms=[JWT_ALGORITHM],  # Only accept RS256
                options={
                    "verify_signature": True,
                    # Expiry is checked below against the injected clock
                    "verify_exp": False,
                    "require": ["exp", "iat"],
                },
            )
        except jwt.InvalidSignatureError as e:
            raise SignatureInvalid() from e
        except jwt.InvalidAlgorithmError as e:
            raise SignatureInvalid(f"unexpected signing method: {algorithm}") from e
        except jwt.InvalidTokenError as e:
            raise MalformedToken(f"Malformed token: {e}") from e

        email = payload.get("email")
        if not isinstance(email, str) or not email:
            raise MalformedToken("Token has no subject email")

        try:
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError) as e:
            raise MalformedToken("Token timestamps are invalid") from e

        if expires_at <= self._clock():
            raise Expired()

        return SessionClaims(subject_email=email, issued_at=issued_at, expires_at=expires_at)


class CredentialSigner:
    """
    Issues session credentials with the private key.

    The signer exclusively owns the key pair; the verifier it hands out only
    sees the public half.
    """

    def __init__(
        self,
        key_pair: Optional[KeyPair],
        ttl: timedelta = DEFAULT_SESSION_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._key_pair = key_pair
        self._ttl = ttl
        self._clock = clock

    @property
    def verifier(self) -> CredentialVerifier:
        if self._key_pair is None:
            raise KeyUnavailable()
        return CredentialVerifier(self._key_pair.public_key, clock=self._clock)

    def issue(self, subject_email: str) -> IssuedCredential:
        """
        Sign a credential for the subject, valid for the configured TTL.

        Raises:
            KeyUnavailable: If no key pair was loaded
        """
        if self._key_pair is None:
            raise KeyUnavailable()

        # Whole seconds so the unix expiry handed to clients matches the claim
        now = self._clock().replace(microsecond=0)
        expires_at = now + self._ttl
        payload = {
            "email": subject_email,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(payload, self._key_pair.private_key, algorithm=JWT_ALGORITHM)
        return IssuedCredential(token=token, expires_at=expires_at)

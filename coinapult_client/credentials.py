"""
Account credentials.

A client holds exactly one of :class:`SharedSecret` (HMAC mode) or
:class:`KeyPair` (ECC mode). Both are immutable once built.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Union

import ecdsa

from .constants import ECC_CURVE
from .exceptions import ConfigurationError


@dataclass(frozen=True)
class SharedSecret:
    """API key and secret issued by Coinapult."""
    api_key: str
    api_secret: str = field(repr=False)

    def __post_init__(self):
        if not self.api_key:
            raise ConfigurationError("api_key cannot be empty")
        if not self.api_secret:
            raise ConfigurationError("api_secret cannot be empty")


@dataclass(frozen=True)
class KeyPair:
    """
    ECDSA keypair identifying an account.

    The account identity is the hex SHA-256 of the PEM-encoded public key.
    """
    signing_key: ecdsa.SigningKey = field(repr=False)

    def __post_init__(self):
        if not isinstance(self.signing_key, ecdsa.SigningKey):
            raise ConfigurationError("signing_key must be an ecdsa.SigningKey")
        if self.signing_key.curve != ECC_CURVE:
            raise ConfigurationError(
                f"Key is on curve {self.signing_key.curve.name}, expected {ECC_CURVE.name}"
            )

    @classmethod
    def generate(cls) -> "KeyPair":
        """Create a fresh keypair on the API curve."""
        return cls(ecdsa.SigningKey.generate(curve=ECC_CURVE))

    @classmethod
    def from_pem(cls, pem: Union[str, bytes]) -> "KeyPair":
        """
        Load a private key from PEM.

        Raises:
            ConfigurationError: If the PEM cannot be parsed or uses another curve
        """
        try:
            signing_key = ecdsa.SigningKey.from_pem(pem)
        except Exception as e:
            raise ConfigurationError(f"Invalid private key PEM: {e}") from e
        return cls(signing_key)

    @property
    def verifying_key(self) -> ecdsa.VerifyingKey:
        return self.signing_key.get_verifying_key()

    @property
    def public_pem(self) -> bytes:
        return self.verifying_key.to_pem()

    @property
    def public_hash(self) -> str:
        return hashlib.sha256(self.public_pem).hexdigest()

    def private_pem(self) -> bytes:
        return self.signing_key.to_pem()


Credentials = Union[SharedSecret, KeyPair]

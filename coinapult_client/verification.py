"""
Verification of Coinapult responses and callbacks.

Verification failures are results, not exceptions: a malicious or broken
server must not be able to crash the client, and callers branch on
``valid_sign`` / ``ok``.
"""

import hmac
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

import ecdsa
from ecdsa.util import MalformedSignature, sigdecode_string

from .constants import COINAPULT_PUBLIC_KEY_PEM, ECC_CURVE, ECC_HASHFUNC
from .credentials import SharedSecret
from .encoding import decode_payload
from .exceptions import ConfigurationError
from .signing import hmac_sha512

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResponseEnvelope:
    """Signed response as received: base64 payload and hex signature."""
    data: str
    sign: str

    @classmethod
    def from_reply(cls, reply: Any) -> Optional["ResponseEnvelope"]:
        """Extract the envelope from a decoded reply, or None if it has none."""
        if not isinstance(reply, Mapping):
            return None
        data = reply.get('data')
        sign = reply.get('sign')
        if not isinstance(data, str) or not isinstance(sign, str):
            return None
        return cls(data=data, sign=sign)


@dataclass(frozen=True)
class VerifiedPayload:
    """Decoded response payload and the outcome of signature verification."""
    payload: Dict[str, Any] = field(default_factory=dict)
    valid_sign: bool = False
    error: Optional[str] = None

    def get(self, key: str, default: Any = None) -> Any:
        return self.payload.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.payload[key]

    def __contains__(self, key: str) -> bool:
        return key in self.payload

    def to_dict(self) -> Dict[str, Any]:
        """Payload with the ``validSign`` flag, as the API documents it."""
        return {**self.payload, 'validSign': self.valid_sign}


class ResponseVerifier:
    """
    Checks response signatures against a server public key.

    The client always builds this with the pinned Coinapult key.
    """

    def __init__(self, public_key_pem: Union[str, bytes] = COINAPULT_PUBLIC_KEY_PEM):
        try:
            self.verifying_key = ecdsa.VerifyingKey.from_pem(public_key_pem)
        except Exception as e:
            raise ConfigurationError(f"Invalid server public key: {e}") from e

        if self.verifying_key.curve != ECC_CURVE:
            raise ConfigurationError(
                f"Server key is on curve {self.verifying_key.curve.name}, expected {ECC_CURVE.name}"
            )

    def check_signature(self, data: str, sign: str) -> bool:
        """Return True if sign is a valid hex signature of data."""
        try:
            signature = bytes.fromhex(sign)
            return self.verifying_key.verify(
                signature,
                data.encode('utf-8'),
                hashfunc=ECC_HASHFUNC,
                sigdecode=sigdecode_string,
            )
        except (ecdsa.BadSignatureError, MalformedSignature, ValueError, TypeError, AttributeError):
            return False

    def verify(self, envelope: ResponseEnvelope) -> VerifiedPayload:
        """
        Verify a response envelope and decode its payload.

        Args:
            envelope: Received ``data``/``sign`` pair

        Returns:
            VerifiedPayload with the decoded payload and ``valid_sign=True``,
            or an empty payload with ``valid_sign=False``
        """
        if not self.check_signature(envelope.data, envelope.sign):
            logger.warning("Response signature verification failed")
            return VerifiedPayload({}, False)

        try:
            payload = decode_payload(envelope.data)
        except ValueError as e:
            logger.warning("Signed response payload could not be decoded: %s", e)
            return VerifiedPayload({}, False)

        return VerifiedPayload(payload, True)

    def verify_reply(self, reply: Any) -> VerifiedPayload:
        """
        Verify a decoded JSON reply.

        A reply without an envelope is invalid. Its unsigned ``error`` text, if
        any, is kept in ``error`` and nothing else from it is exposed.
        """
        envelope = ResponseEnvelope.from_reply(reply)
        if envelope is None:
            logger.warning("Response carries no signed envelope")
            error = reply.get('error') if isinstance(reply, Mapping) else None
            return VerifiedPayload({}, False, None if error is None else str(error))
        return self.verify(envelope)


@dataclass(frozen=True)
class CallbackAuthResult:
    """Outcome of callback authentication and the locally computed HMAC."""
    ok: bool
    hmac: str = ''


class CallbackAuthenticator:
    """Authenticates notifications Coinapult posts to a callback URL."""

    def __init__(self, credentials: SharedSecret):
        if not isinstance(credentials, SharedSecret):
            raise ConfigurationError("Callback authentication requires shared-secret credentials")
        self.credentials = credentials

    def authenticate(self, received_key: str, received_hmac: str, received_data: Union[str, bytes]) -> CallbackAuthResult:
        """
        Check that a callback was signed with our API secret.

        The HMAC is only computed when the key matches, and both comparisons
        run in constant time.
        """
        if not isinstance(received_data, (str, bytes)):
            return CallbackAuthResult(False, '')

        if not isinstance(received_key, str) or not hmac.compare_digest(
            received_key.encode('utf-8'), self.credentials.api_key.encode('utf-8')
        ):
            return CallbackAuthResult(False, '')

        expected = hmac_sha512(self.credentials.api_secret, received_data)
        if not isinstance(received_hmac, str):
            return CallbackAuthResult(False, expected)

        ok = hmac.compare_digest(
            expected.encode('ascii'), received_hmac.lower().encode('utf-8')
        )
        return CallbackAuthResult(ok, expected)

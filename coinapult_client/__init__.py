"""
Coinapult Client Library

A Python client for the Coinapult API that signs requests with either an
HMAC shared secret or an ECDSA keypair, and verifies signed replies against
the pinned Coinapult server key.

Example usage:
    from coinapult_client import CoinapultClient, SharedSecret

    client = CoinapultClient(SharedSecret("your-api-key", "your-api-secret"))
    info = client.account_info()
"""

from .client import AccountStatus, CoinapultClient, search_params
from .credentials import KeyPair, SharedSecret
from .encoding import canonical_encode, decode_payload
from .exceptions import (
    CoinapultError,
    ConfigurationError,
    ValidationError,
    TransportError,
    SignedRequestReusedError
)
from .nonce import generate_nonce
from .signing import (
    EccAuthenticator,
    EccSigner,
    HmacAuthenticator,
    SignedRequest,
    authenticator_for,
    hmac_sha512
)
from .verification import (
    CallbackAuthenticator,
    CallbackAuthResult,
    ResponseEnvelope,
    ResponseVerifier,
    VerifiedPayload
)

__version__ = "1.0.0"
__all__ = [
    "AccountStatus",
    "CoinapultClient",
    "search_params",
    "KeyPair",
    "SharedSecret",
    "canonical_encode",
    "decode_payload",
    "CoinapultError",
    "ConfigurationError",
    "ValidationError",
    "TransportError",
    "SignedRequestReusedError",
    "generate_nonce",
    "EccAuthenticator",
    "EccSigner",
    "HmacAuthenticator",
    "SignedRequest",
    "authenticator_for",
    "hmac_sha512",
    "CallbackAuthenticator",
    "CallbackAuthResult",
    "ResponseEnvelope",
    "ResponseVerifier",
    "VerifiedPayload"
]

"""
Request signing for the Coinapult API.

Two schemes exist and a request carries exactly one of them:

* shared-secret: ``cpt-key`` + ``cpt-hmac`` (HMAC-SHA512 over the payload)
* keypair: ``cpt-ecc-pub`` or ``cpt-ecc-new`` + ``cpt-ecc-sign``
  (deterministic ECDSA over SHA-256 of the payload)

The payload is always ``canonical_encode(params)`` and is sent as the
``data`` form field.
"""

import base64
import hashlib
import hmac
import logging
import time
from typing import Any, Dict, List, Optional, Tuple, Union

from ecdsa.util import sigencode_string

from .constants import (
    ECC_HASHFUNC,
    HEADER_ECC_NEW,
    HEADER_ECC_PUB,
    HEADER_ECC_SIGN,
    HEADER_HMAC,
    HEADER_KEY,
    NONCE_LENGTH,
)
from .credentials import Credentials, KeyPair, SharedSecret
from .encoding import canonical_encode
from .exceptions import ConfigurationError, SignedRequestReusedError
from .nonce import generate_nonce

logger = logging.getLogger(__name__)


def hmac_sha512(secret: str, data: Union[str, bytes]) -> str:
    """
    Compute the hex HMAC-SHA512 tag of data.

    Args:
        secret: Shared API secret
        data: Signed payload (text is UTF-8 encoded)

    Returns:
        Lowercase hex digest
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    mac = hmac.new(secret.encode('utf-8'), data, hashlib.sha512)
    return mac.hexdigest()


class SignedRequest:
    """
    Headers and form body for one signed call.

    A signed payload must never be replayed, so the request can only be
    consumed once.
    """

    def __init__(self, headers: List[Tuple[str, str]], data: str):
        self._headers = tuple(headers)
        self._data = data
        self._consumed = False

    @property
    def headers(self) -> List[Tuple[str, str]]:
        return list(self._headers)

    @property
    def data(self) -> str:
        return self._data

    @property
    def consumed(self) -> bool:
        return self._consumed

    def consume(self) -> Tuple[Dict[str, str], Dict[str, str]]:
        """
        Hand the request over to the transport.

        Returns:
            Tuple of (headers, form body)

        Raises:
            SignedRequestReusedError: If the request was already consumed
        """
        if self._consumed:
            raise SignedRequestReusedError("Signed request has already been sent")
        self._consumed = True
        return dict(self._headers), {'data': self._data}


class EccSigner:
    """Deterministic ECDSA signer (RFC 6979) for a keypair."""

    def __init__(self, keypair: KeyPair):
        self.keypair = keypair

    def sign(self, data: Union[str, bytes]) -> str:
        """
        Sign data and return the hex encoded ``r || s`` signature.

        The per-signature secret is derived from the private key and the
        message hash, so identical data always yields an identical signature.
        """
        if isinstance(data, str):
            data = data.encode('utf-8')
        signature = self.keypair.signing_key.sign_deterministic(
            data,
            hashfunc=ECC_HASHFUNC,
            sigencode=sigencode_string,
        )
        return signature.hex()


class HmacAuthenticator:
    """Signs requests with a shared API key and secret."""

    def __init__(self, credentials: SharedSecret, nonce_length: int = NONCE_LENGTH):
        self.credentials = credentials
        self.nonce_length = nonce_length

    def sign(self, method: str, params: Optional[Dict[str, Any]] = None,
             new_account: bool = False) -> SignedRequest:
        """
        Build a shared-secret signed request.

        Appends ``nonce``, ``timestamp`` and ``endpoint`` to a copy of params.

        Args:
            method: Logical API method, e.g. ``t/send``
            params: Call parameters
            new_account: Not supported with shared-secret credentials

        Returns:
            Single-use SignedRequest
        """
        if new_account:
            raise ConfigurationError("Account creation requires keypair credentials")

        payload = dict(params or {})
        payload['nonce'] = generate_nonce(self.nonce_length)
        payload['timestamp'] = str(int(time.time()))
        payload['endpoint'] = '/' + method.lstrip('/')

        signdata = canonical_encode(payload)
        headers = [
            (HEADER_KEY, self.credentials.api_key),
            (HEADER_HMAC, hmac_sha512(self.credentials.api_secret, signdata)),
        ]
        logger.debug("Signed %s with shared secret", method)
        return SignedRequest(headers, signdata)


class EccAuthenticator:
    """Signs requests with an ECDSA keypair."""

    def __init__(self, credentials: KeyPair, nonce_length: int = NONCE_LENGTH):
        self.credentials = credentials
        self.nonce_length = nonce_length
        self.signer = EccSigner(credentials)

    def sign(self, method: str, params: Optional[Dict[str, Any]] = None,
             new_account: bool = False) -> SignedRequest:
        """
        Build a keypair signed request.

        In new-account mode the PEM public key is sent and no nonce is added;
        otherwise the public key hash identifies the caller and a nonce is
        added.

        Args:
            method: Logical API method (only used for logging)
            params: Call parameters
            new_account: True for the account creation call

        Returns:
            Single-use SignedRequest
        """
        payload = dict(params or {})
        headers = []

        if new_account:
            encoded_pem = base64.b64encode(self.credentials.public_pem).decode('ascii')
            headers.append((HEADER_ECC_NEW, encoded_pem))
        else:
            headers.append((HEADER_ECC_PUB, self.credentials.public_hash))
            payload['nonce'] = generate_nonce(self.nonce_length)
        payload['timestamp'] = int(time.time())

        data = canonical_encode(payload)
        headers.append((HEADER_ECC_SIGN, self.signer.sign(data)))
        logger.debug("Signed %s with keypair (new_account=%s)", method, new_account)
        return SignedRequest(headers, data)


RequestAuthenticator = Union[HmacAuthenticator, EccAuthenticator]


def authenticator_for(credentials: Credentials, nonce_length: int = NONCE_LENGTH) -> RequestAuthenticator:
    """
    Pick the signing scheme for a credentials variant.

    Raises:
        ConfigurationError: If credentials are neither SharedSecret nor KeyPair
    """
    if isinstance(credentials, SharedSecret):
        return HmacAuthenticator(credentials, nonce_length)
    if isinstance(credentials, KeyPair):
        return EccAuthenticator(credentials, nonce_length)
    raise ConfigurationError(
        f"Unsupported credentials type: {type(credentials).__name__}"
    )

"""
Coinapult API client.

This module maps the Coinapult endpoints to signed HTTP calls. Signing lives
in :mod:`coinapult_client.signing`, response and callback verification in
:mod:`coinapult_client.verification`.
"""

import enum
import logging
import math
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import urljoin

import requests

from .constants import DEFAULT_CONFIG, SEARCH_CRITERIA
from .credentials import Credentials, KeyPair, SharedSecret
from .exceptions import (
    CoinapultError,
    ConfigurationError,
    TransportError,
    ValidationError,
)
from .signing import EccAuthenticator, SignedRequest, authenticator_for
from .verification import (
    CallbackAuthenticator,
    CallbackAuthResult,
    ResponseVerifier,
    VerifiedPayload,
)

logger = logging.getLogger(__name__)

Reply = Union[Dict[str, Any], VerifiedPayload]


class AccountStatus(str, enum.Enum):
    """Outcome of the account creation handshake."""
    SUCCESS = "Success"
    ERROR = "Error"


def search_params(criteria: Mapping[str, Any], many: bool = False, page: Optional[int] = None) -> Dict[str, Any]:
    """
    Build ``t/search`` parameters from search criteria.

    Raises:
        ValidationError: On an unknown criteria key or empty criteria
    """
    params = {}
    for key, value in criteria.items():
        if key not in SEARCH_CRITERIA:
            raise ValidationError(f"Invalid search criteria '{key}'")
        params[key] = value

    if not params:
        raise ValidationError("Empty search criteria")

    if many:
        params['many'] = '1'
    if page is not None:
        params['page'] = page
    return params


class CoinapultClient:
    """
    Client for the Coinapult API.

    The signing scheme follows the credentials: :class:`SharedSecret` signs
    with HMAC-SHA512, :class:`KeyPair` signs with deterministic ECDSA and
    verifies signed replies against the pinned Coinapult key.
    """

    def __init__(self, credentials: Credentials, base_url: Optional[str] = None, **config):
        """
        Initialize the client.

        Args:
            credentials: SharedSecret or KeyPair
            base_url: API root, defaults to the public Coinapult API
            **config: Configuration options (timeout, nonce_length)
        """
        self.credentials = credentials

        # Merge default config with user overrides
        self.config = {**DEFAULT_CONFIG, **config}
        if base_url is not None:
            self.config['base_url'] = base_url

        self._validate_config()
        self.base_url = self.config['base_url'].rstrip('/') + '/'

        self.authenticator = authenticator_for(credentials, self.config['nonce_length'])
        self.verifier = ResponseVerifier() if isinstance(credentials, KeyPair) else None

        self.session = requests.Session()
        logger.debug("Coinapult client for %s (%s)", self.base_url, type(credentials).__name__)

    def _validate_config(self):
        """Validate client configuration."""
        if not isinstance(self.credentials, (SharedSecret, KeyPair)):
            raise ConfigurationError("credentials must be SharedSecret or KeyPair")

        if not self.config['base_url']:
            raise ConfigurationError("base_url cannot be empty")

        if self.config['timeout'] <= 0:
            raise ConfigurationError("timeout must be positive")

        nonce_length = self.config['nonce_length']
        if isinstance(nonce_length, bool) or not isinstance(nonce_length, int) or nonce_length <= 0:
            raise ConfigurationError(f"nonce_length must be a positive integer, got {nonce_length!r}")

    @property
    def uses_keypair(self) -> bool:
        return isinstance(self.credentials, KeyPair)

    def _url(self, method: str) -> str:
        return urljoin(self.base_url, method.lstrip('/'))

    def _send(self, http_method: str, method: str, **kwargs) -> Any:
        """
        Perform the HTTP exchange and decode the JSON reply.

        Raises:
            TransportError: On network failure, non-2xx status or non-JSON reply
        """
        url = self._url(method)
        try:
            response = self.session.request(http_method, url, timeout=self.config['timeout'], **kwargs)
        except requests.RequestException as e:
            raise TransportError(f"HTTP request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"HTTP {response.status_code} from {method}: {response.text}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON reply from {method}: {e}", response.status_code) from e

    def _post_signed(self, method: str, signed: SignedRequest) -> Any:
        headers, body = signed.consume()
        logger.debug("POST %s", method)
        return self._send('POST', method, headers=headers, data=body)

    def _request(self, method: str, params: Optional[Dict[str, Any]] = None) -> Reply:
        """
        Make a signed call.

        In keypair mode every reply goes through the verifier and comes back
        as a VerifiedPayload; a reply without a signed envelope is invalid.
        """
        signed = self.authenticator.sign(method, params or {})
        reply = self._post_signed(method, signed)

        if self.verifier is not None:
            return self.verifier.verify_reply(reply)
        return reply

    # Coinapult API

    def ticker(self, begin: Optional[Any] = None, end: Optional[Any] = None) -> Any:
        """Get exchange rates. Unsigned."""
        params = {}
        if begin is not None:
            params['begin'] = begin
        if end is not None:
            params['end'] = end
        return self._send('GET', 'ticker', params=params)

    def account_info(self) -> Reply:
        return self._request('accountInfo')

    def get_bitcoin_address(self) -> Reply:
        return self._request('getBitcoinAddress')

    def send(self, amount: Union[int, float, str], address: str, currency: str = 'BTC',
             ext_oid: Optional[str] = None, callback: Optional[str] = None) -> Reply:
        """
        Send funds to an address.

        Raises:
            ValidationError: If amount is not positive or address is empty
        """
        if not address:
            raise ValidationError("address is required")
        try:
            value = float(amount)
        except (TypeError, ValueError):
            value = math.nan
        positive = not isinstance(amount, bool) and math.isfinite(value) and value > 0
        if not positive:
            raise ValidationError(f"amount must be positive, got {amount!r}")

        params = {
            'amount': amount,
            'address': address,
            'currency': currency,
        }
        if callback is not None:
            params['callback'] = callback
        if ext_oid is not None:
            params['extOID'] = ext_oid
        return self._request('t/send', params)

    def receive(self, amount: Optional[Any] = None, in_currency: Optional[str] = 'BTC',
                out_amount: Optional[Any] = None, out_currency: Optional[str] = None,
                ext_oid: Optional[str] = None, callback: Optional[str] = None,
                address: Optional[str] = None) -> Reply:
        """Request a payment, optionally converted to another currency."""
        params = {}
        if amount is not None:
            params['amount'] = amount
        params['currency'] = 'BTC' if in_currency is None else in_currency
        if out_amount is not None:
            params['outAmount'] = str(out_amount)
        if out_currency is not None:
            params['outCurrency'] = out_currency
        if ext_oid is not None:
            params['extOID'] = str(ext_oid)
        if callback is not None:
            params['callback'] = str(callback)
        if address is not None:
            params['address'] = str(address)
        return self._request('t/receive', params)

    def search(self, criteria: Mapping[str, Any], many: bool = False, page: Optional[int] = None) -> Reply:
        """
        Search transactions.

        Raises:
            ValidationError: On unknown or empty criteria, before anything is signed
        """
        return self._request('t/search', search_params(criteria, many, page))

    def convert(self, amount: Union[int, float, str], in_currency: str = 'BTC',
                out_currency: Optional[str] = None, callback: Optional[str] = None) -> Reply:
        params = {
            'amount': amount,
            'inCurrency': in_currency,
        }
        if out_currency is not None:
            params['outCurrency'] = out_currency
        if callback is not None:
            params['callback'] = callback
        return self._request('t/convert', params)

    # Helpers

    def authenticate_callback(self, recv_key: str, recv_hmac: str, recv_data: Union[str, bytes]) -> CallbackAuthResult:
        """
        Authenticate a callback notification.

        Raises:
            ConfigurationError: If the client holds keypair credentials
        """
        if not isinstance(self.credentials, SharedSecret):
            raise ConfigurationError("Callback authentication requires shared-secret credentials")
        return CallbackAuthenticator(self.credentials).authenticate(recv_key, recv_hmac, recv_data)

    def create_account(self) -> AccountStatus:
        """
        Register the keypair as a new account.

        Every failure, whatever its cause, is reported as ``AccountStatus.ERROR``.

        Raises:
            ConfigurationError: If the client holds shared-secret credentials
        """
        if not isinstance(self.authenticator, EccAuthenticator):
            raise ConfigurationError("Account creation requires keypair credentials")

        signed = self.authenticator.sign('account/create', {}, new_account=True)
        try:
            reply = self._post_signed('account/create', signed)
        except CoinapultError as e:
            logger.warning("Account creation failed: %s", e)
            return AccountStatus.ERROR

        if not isinstance(reply, Mapping) or reply.get('error') is not None:
            logger.warning("Account creation rejected by server")
            return AccountStatus.ERROR

        verified = self.verifier.verify_reply(reply)
        if verified.valid_sign and verified.get('success') == self.credentials.public_hash:
            return AccountStatus.SUCCESS

        logger.warning("Account creation reply not accepted")
        return AccountStatus.ERROR

    def close(self):
        """Close HTTP session."""
        if self.session:
            self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

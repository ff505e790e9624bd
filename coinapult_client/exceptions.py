"""
Custom exceptions for the Coinapult client library.

Signature and HMAC mismatches are not exceptions: they are reported as
``valid_sign=False`` / ``ok=False`` results.
"""


class CoinapultError(Exception):
    """Base exception for Coinapult client errors."""
    pass


class ConfigurationError(CoinapultError):
    """Raised when credentials or client configuration are invalid."""
    pass


class ValidationError(CoinapultError):
    """Raised when endpoint arguments are invalid."""
    pass


class TransportError(CoinapultError):
    """Raised when the HTTP exchange fails or returns a non-2xx status."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class SignedRequestReusedError(CoinapultError):
    """Raised when a signed request is sent more than once."""
    pass

"""
Constants for the Coinapult client library.
Header names and the pinned server key must match the Coinapult API.
"""

import hashlib

from ecdsa import SECP256k1

# HTTP Headers (shared-secret mode)
HEADER_KEY = "cpt-key"
HEADER_HMAC = "cpt-hmac"

# HTTP Headers (keypair mode)
HEADER_ECC_PUB = "cpt-ecc-pub"
HEADER_ECC_NEW = "cpt-ecc-new"
HEADER_ECC_SIGN = "cpt-ecc-sign"

# Base58 alphabet, no 0OIl
NONCE_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
NONCE_LENGTH = 22

# Curve and hash shared by request signing and response verification
ECC_CURVE = SECP256k1
ECC_HASHFUNC = hashlib.sha256

# Keys accepted by t/search
SEARCH_CRITERIA = frozenset([
    "transaction_id",
    "type",
    "currency",
    "to",
    "from",
    "extOID",
    "txhash",
])

# Coinapult server public key, every signed response is checked against it
COINAPULT_PUBLIC_KEY_PEM = """-----BEGIN PUBLIC KEY-----
MFYwEAYHKoZIzj0CAQYFK4EEAAoDQgAEWp9wd4EuLhIZNaoUgZxQztSjrbqgTT0w
LBq8RwigNE6nOOXFEoGCjGfekugjrHWHUi8ms7bcfrowpaJKqMfZXg==
-----END PUBLIC KEY-----
"""

DEFAULT_BASE_URL = "https://api.coinapult.com/api/"

# Default configuration values
DEFAULT_CONFIG = {
    'base_url': DEFAULT_BASE_URL,
    'timeout': 30,                  # HTTP timeout in seconds
    'nonce_length': NONCE_LENGTH,
}

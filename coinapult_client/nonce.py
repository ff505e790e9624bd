"""Single-use request nonces."""

import secrets

from .constants import NONCE_ALPHABET, NONCE_LENGTH
from .exceptions import ValidationError


def generate_nonce(length: int = NONCE_LENGTH) -> str:
    """
    Generate a random base58 nonce.

    Characters come from the OS CSPRNG, so concurrent callers never share
    generator state.

    Args:
        length: Number of characters

    Returns:
        Nonce string of ``length`` base58 characters

    Raises:
        ValidationError: If length is not a positive integer
    """
    if isinstance(length, bool) or not isinstance(length, int) or length <= 0:
        raise ValidationError(f"Nonce length must be a positive integer, got {length!r}")

    return ''.join(secrets.choice(NONCE_ALPHABET) for _ in range(length))

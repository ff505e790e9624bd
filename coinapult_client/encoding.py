"""
Canonical payload encoding.

A parameter mapping is serialized to compact JSON in insertion order and then
base64 encoded. Signatures and HMAC tags are computed over the base64 text.
"""

import base64
import binascii
import json
from typing import Any, Dict


def canonical_encode(params: Dict[str, Any]) -> str:
    """
    Encode parameters as base64(JSON).

    Keys are not sorted: the server only re-hashes the received text.

    Args:
        params: Parameter mapping for one call

    Returns:
        ASCII base64 text used both as signing payload and request body
    """
    raw = json.dumps(params, separators=(',', ':')).encode('utf-8')
    return base64.b64encode(raw).decode('ascii')


def decode_payload(data: str) -> Dict[str, Any]:
    """
    Decode base64(JSON) text back into a mapping.

    Raises:
        ValueError: If data is not valid base64 or does not hold a JSON object
    """
    try:
        raw = base64.b64decode(data, validate=True)
        obj = json.loads(raw.decode('utf-8'))
    except (binascii.Error, UnicodeDecodeError, TypeError) as e:
        raise ValueError(f"Undecodable payload: {e}") from e

    if not isinstance(obj, dict):
        raise ValueError("Payload is not a JSON object")
    return obj

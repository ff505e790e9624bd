#!/usr/bin/env python3
"""
Basic usage examples for the Coinapult Python client library.

This script shows both credential modes: shared-secret (HMAC) and keypair
(ECDSA). Set COINAPULT_API_KEY / COINAPULT_API_SECRET to run the
shared-secret examples against the live API.
"""

import logging
import os
import sys

from coinapult_client import (
    AccountStatus,
    CoinapultClient,
    CoinapultError,
    KeyPair,
    SharedSecret,
    ValidationError,
    canonical_encode,
    hmac_sha512,
)


def shared_secret_examples(api_key, api_secret):
    """Run examples with an API key and secret."""

    print("=== Shared-secret (HMAC) examples ===\n")

    with CoinapultClient(SharedSecret(api_key, api_secret)) as client:
        print("1. Ticker (unsigned)...")
        ticker = client.ticker()
        print(f"   {ticker}\n")

        print("2. Account info (signed)...")
        info = client.account_info()
        print(f"   {info}\n")

        print("3. Search with invalid criteria...")
        try:
            client.search({"amount": 1})
        except ValidationError as e:
            print(f"   ✓ Rejected before sending: {e}\n")

        print("4. Authenticating a callback...")
        data = canonical_encode({"transaction_id": "example", "state": "complete"})
        result = client.authenticate_callback(api_key, hmac_sha512(api_secret, data), data)
        print(f"   Authentic: {'✓' if result.ok else '✗'}\n")


def keypair_examples():
    """Run examples with a freshly generated keypair."""

    print("=== Keypair (ECDSA) examples ===\n")

    keypair = KeyPair.generate()
    print(f"1. Generated keypair, account id: {keypair.public_hash}\n")

    with CoinapultClient(keypair) as client:
        print("2. Creating account...")
        status = client.create_account()
        print(f"   Result: {status.value}\n")
        if status is not AccountStatus.SUCCESS:
            return

        print("3. Account info (signed reply)...")
        info = client.account_info()
        if info.valid_sign:
            print("   ✓ Signature valid")
            print(f"   Payload: {info.payload}\n")
        else:
            print(f"   ✗ Reply rejected: {info.error or 'invalid signature'}\n")


def main():
    logging.basicConfig(level=logging.INFO)

    api_key = os.environ.get("COINAPULT_API_KEY")
    api_secret = os.environ.get("COINAPULT_API_SECRET")

    try:
        if api_key and api_secret:
            shared_secret_examples(api_key, api_secret)
        else:
            print("COINAPULT_API_KEY / COINAPULT_API_SECRET not set, skipping HMAC examples\n")
        keypair_examples()
    except CoinapultError as e:
        print(f"Coinapult Client Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

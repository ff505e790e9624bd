"""
Unit tests for the Coinapult client.
"""

import base64
import hashlib
import hmac
import json
from unittest.mock import Mock, patch

import pytest
import requests

from coinapult_client import (
    AccountStatus,
    CoinapultClient,
    ConfigurationError,
    EccSigner,
    KeyPair,
    ResponseVerifier,
    SharedSecret,
    TransportError,
    ValidationError,
    VerifiedPayload,
    canonical_encode,
    decode_payload,
    hmac_sha512,
    search_params,
)
from coinapult_client.constants import (
    DEFAULT_BASE_URL,
    HEADER_ECC_NEW,
    HEADER_ECC_PUB,
    HEADER_ECC_SIGN,
    HEADER_HMAC,
    HEADER_KEY,
)

FIXED_NONCE = "abcdefghijkmnopqrstuvw"
FIXED_TIME = 1700000000


def _response(payload, status_code=200):
    response = Mock()
    response.status_code = status_code
    response.text = json.dumps(payload)
    response.json.return_value = payload
    return response


def _signed_reply(server_key, payload):
    data = canonical_encode(payload)
    return {"data": data, "sign": EccSigner(server_key).sign(data)}


class TestClientConfig:
    """Test client construction."""

    def test_init_default_config(self):
        client = CoinapultClient(SharedSecret("k1", "s1"))

        assert client.base_url == DEFAULT_BASE_URL
        assert client.config['timeout'] == 30
        assert client.config['nonce_length'] == 22
        assert client.verifier is None
        assert client.uses_keypair is False

    def test_init_custom_config(self):
        client = CoinapultClient(
            SharedSecret("k1", "s1"),
            "http://localhost:8080/api",
            timeout=5,
            nonce_length=30
        )

        assert client.base_url == "http://localhost:8080/api/"
        assert client.config['timeout'] == 5
        assert client.config['nonce_length'] == 30

    def test_keypair_client_pins_server_key(self):
        client = CoinapultClient(KeyPair.generate())

        assert client.uses_keypair is True
        assert client.verifier.verifying_key.to_string() == ResponseVerifier().verifying_key.to_string()

    def test_init_invalid_config(self):
        with pytest.raises(ConfigurationError):
            CoinapultClient(("k1", "s1"))

        with pytest.raises(ConfigurationError):
            CoinapultClient(SharedSecret("k1", "s1"), "")

        with pytest.raises(ConfigurationError):
            CoinapultClient(SharedSecret("k1", "s1"), timeout=0)

        with pytest.raises(ConfigurationError):
            CoinapultClient(SharedSecret("k1", "s1"), nonce_length=-1)

        for nonce_length in (2.5, True, "22"):
            with pytest.raises(ConfigurationError):
                CoinapultClient(KeyPair.generate(), nonce_length=nonce_length)

    def test_context_manager(self):
        with CoinapultClient(SharedSecret("k1", "s1")) as client:
            assert client.session is not None


class TestSharedSecretClient:
    """Test endpoints with shared-secret credentials."""

    @pytest.fixture
    def client(self):
        return CoinapultClient(SharedSecret("k1", "s1"), "http://localhost:8080/api/")

    @patch('coinapult_client.signing.time.time', return_value=FIXED_TIME)
    @patch('coinapult_client.signing.generate_nonce', return_value=FIXED_NONCE)
    @patch('coinapult_client.client.requests.Session.request')
    def test_send_scenario(self, mock_request, mock_nonce, mock_time, client):
        """Test the full signed send request with a fixed nonce and timestamp."""
        mock_request.return_value = _response({"transaction_id": "t1"})

        result = client.send(amount=1.5, address="1Abc", currency="BTC")

        assert result == {"transaction_id": "t1"}
        args, kwargs = mock_request.call_args
        assert args == ('POST', 'http://localhost:8080/api/t/send')

        expected_json = json.dumps({
            "amount": 1.5,
            "address": "1Abc",
            "currency": "BTC",
            "nonce": FIXED_NONCE,
            "timestamp": str(FIXED_TIME),
            "endpoint": "/t/send",
        }, separators=(',', ':'))
        expected_data = base64.b64encode(expected_json.encode('utf-8')).decode('ascii')
        expected_hmac = hmac.new(b"s1", expected_data.encode('ascii'), hashlib.sha512).hexdigest()

        assert kwargs['headers'] == {HEADER_KEY: "k1", HEADER_HMAC: expected_hmac}
        assert kwargs['data'] == {"data": expected_data}
        assert kwargs['timeout'] == 30

    @patch('coinapult_client.client.requests.Session.request')
    def test_send_optional_fields(self, mock_request, client):
        mock_request.return_value = _response({})

        client.send(0.1, "1Abc", currency="USD", ext_oid="order-1", callback="https://example.com/cb")

        payload = decode_payload(mock_request.call_args[1]['data']['data'])
        assert list(payload)[:5] == ["amount", "address", "currency", "callback", "extOID"]
        assert payload["extOID"] == "order-1"

    @pytest.mark.parametrize("amount,address", [
        (0, "1Abc"), (-1, "1Abc"), ("x", "1Abc"), (1, ""), (None, "1Abc"),
        (True, "1Abc"), (float("inf"), "1Abc"), (float("nan"), "1Abc"), ("inf", "1Abc"),
    ])
    @patch('coinapult_client.client.requests.Session.request')
    def test_send_invalid(self, mock_request, client, amount, address):
        with pytest.raises(ValidationError):
            client.send(amount, address)
        mock_request.assert_not_called()

    @patch('coinapult_client.client.requests.Session.request')
    def test_receive_params(self, mock_request, client):
        mock_request.return_value = _response({})

        client.receive(amount=None, in_currency=None, out_amount=10, out_currency="USD",
                       ext_oid=42, callback="https://example.com/cb", address="1Abc")

        args, kwargs = mock_request.call_args
        assert args[1] == 'http://localhost:8080/api/t/receive'
        payload = decode_payload(kwargs['data']['data'])
        assert "amount" not in payload
        assert payload["currency"] == "BTC"
        assert payload["outAmount"] == "10"
        assert payload["outCurrency"] == "USD"
        assert payload["extOID"] == "42"
        assert payload["address"] == "1Abc"
        assert payload["endpoint"] == "/t/receive"

    @patch('coinapult_client.client.requests.Session.request')
    def test_convert_params(self, mock_request, client):
        mock_request.return_value = _response({})

        client.convert(2, in_currency="USD", out_currency="BTC")

        payload = decode_payload(mock_request.call_args[1]['data']['data'])
        assert payload["amount"] == 2
        assert payload["inCurrency"] == "USD"
        assert payload["outCurrency"] == "BTC"
        assert "callback" not in payload

    @patch('coinapult_client.client.requests.Session.request')
    def test_simple_endpoints(self, mock_request, client):
        mock_request.return_value = _response({"balances": []})

        client.account_info()
        client.get_bitcoin_address()

        calls = mock_request.call_args_list
        assert calls[0][0][1] == 'http://localhost:8080/api/accountInfo'
        assert calls[1][0][1] == 'http://localhost:8080/api/getBitcoinAddress'
        assert decode_payload(calls[1][1]['data']['data'])["endpoint"] == "/getBitcoinAddress"

    @patch('coinapult_client.client.requests.Session.request')
    def test_ticker_unsigned_get(self, mock_request, client):
        mock_request.return_value = _response({"index": 400.0})

        result = client.ticker(begin=1, end=2)

        assert result == {"index": 400.0}
        args, kwargs = mock_request.call_args
        assert args == ('GET', 'http://localhost:8080/api/ticker')
        assert kwargs['params'] == {"begin": 1, "end": 2}
        assert 'headers' not in kwargs

    @patch('coinapult_client.client.requests.Session.request')
    def test_search_unknown_key(self, mock_request, client):
        with pytest.raises(ValidationError):
            client.search({"foo": 1})
        mock_request.assert_not_called()

    @patch('coinapult_client.client.requests.Session.request')
    def test_search_empty(self, mock_request, client):
        with pytest.raises(ValidationError):
            client.search({})
        mock_request.assert_not_called()

    @patch('coinapult_client.client.requests.Session.request')
    def test_search_currency(self, mock_request, client):
        mock_request.return_value = _response([])

        client.search({"currency": "BTC"})

        payload = decode_payload(mock_request.call_args[1]['data']['data'])
        assert list(payload) == ["currency", "nonce", "timestamp", "endpoint"]
        assert payload["currency"] == "BTC"
        assert payload["endpoint"] == "/t/search"

    def test_search_params(self):
        assert search_params({"currency": "BTC"}) == {"currency": "BTC"}
        assert search_params({"to": "1Abc", "from": "1Def"}, many=True, page=2) == {
            "to": "1Abc", "from": "1Def", "many": "1", "page": 2
        }

    @patch('coinapult_client.client.requests.Session.request')
    def test_transport_failure(self, mock_request, client):
        mock_request.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(TransportError) as excinfo:
            client.account_info()
        assert isinstance(excinfo.value.__cause__, requests.ConnectionError)

    @patch('coinapult_client.client.requests.Session.request')
    def test_non_2xx(self, mock_request, client):
        mock_request.return_value = _response({"error": "Invalid key"}, status_code=401)

        with pytest.raises(TransportError) as excinfo:
            client.account_info()
        assert excinfo.value.status_code == 401

    @patch('coinapult_client.client.requests.Session.request')
    def test_invalid_json(self, mock_request, client):
        response = _response({})
        response.json.side_effect = ValueError("No JSON object could be decoded")
        mock_request.return_value = response

        with pytest.raises(TransportError):
            client.account_info()

    def test_authenticate_callback(self, client):
        data = canonical_encode({"transaction_id": "t1"})
        result = client.authenticate_callback("k1", hmac_sha512("s1", data), data)

        assert result.ok is True
        assert client.authenticate_callback("k2", result.hmac, data).ok is False

    def test_create_account_requires_keypair(self, client):
        with pytest.raises(ConfigurationError):
            client.create_account()


class TestKeyPairClient:
    """Test endpoints and account creation with keypair credentials."""

    @pytest.fixture
    def server_key(self):
        return KeyPair.generate()

    @pytest.fixture
    def keypair(self):
        return KeyPair.generate()

    @pytest.fixture
    def client(self, keypair, server_key):
        client = CoinapultClient(keypair, "http://localhost:8080/api/")
        client.verifier = ResponseVerifier(server_key.public_pem)
        return client

    @patch('coinapult_client.client.requests.Session.request')
    def test_signed_request_headers(self, mock_request, client, keypair):
        mock_request.return_value = _response({"error": "unused"})

        client.account_info()

        headers = mock_request.call_args[1]['headers']
        assert set(headers) == {HEADER_ECC_PUB, HEADER_ECC_SIGN}
        assert headers[HEADER_ECC_PUB] == keypair.public_hash

    @patch('coinapult_client.client.requests.Session.request')
    def test_signed_reply_verified(self, mock_request, client, server_key):
        mock_request.return_value = _response(_signed_reply(server_key, {"balances": []}))

        result = client.account_info()

        assert isinstance(result, VerifiedPayload)
        assert result.valid_sign is True
        assert result.payload == {"balances": []}

    @patch('coinapult_client.client.requests.Session.request')
    def test_forged_reply_flagged(self, mock_request, client):
        mock_request.return_value = _response(_signed_reply(KeyPair.generate(), {"balances": []}))

        result = client.account_info()

        assert result.valid_sign is False
        assert result.payload == {}

    @patch('coinapult_client.client.requests.Session.request')
    def test_unsigned_error_reply_flagged(self, mock_request, client):
        """Test that an unsigned error reply is an invalid payload carrying the error text."""
        mock_request.return_value = _response({"error": "Bad nonce"})

        result = client.account_info()

        assert isinstance(result, VerifiedPayload)
        assert result.valid_sign is False
        assert result.payload == {}
        assert result.error == "Bad nonce"

    @patch('coinapult_client.client.requests.Session.request')
    def test_reply_without_envelope_not_exposed(self, mock_request, client):
        """Test that an unsigned reply never reaches the caller as data."""
        mock_request.return_value = _response({"balances": [{"currency": "BTC", "amount": 1e6}]})

        result = client.account_info()

        assert isinstance(result, VerifiedPayload)
        assert result.valid_sign is False
        assert result.payload == {}
        assert result.get("balances") is None
        assert result.error is None

    @patch('coinapult_client.client.requests.Session.request')
    def test_create_account_success(self, mock_request, client, keypair, server_key):
        mock_request.return_value = _response(_signed_reply(server_key, {"success": keypair.public_hash}))

        assert client.create_account() == AccountStatus.SUCCESS
        assert client.create_account() == "Success"

        args, kwargs = mock_request.call_args
        assert args == ('POST', 'http://localhost:8080/api/account/create')
        assert set(kwargs['headers']) == {HEADER_ECC_NEW, HEADER_ECC_SIGN}
        assert base64.b64decode(kwargs['headers'][HEADER_ECC_NEW]) == keypair.public_pem
        assert "nonce" not in decode_payload(kwargs['data']['data'])

    @patch('coinapult_client.client.requests.Session.request')
    def test_create_account_other_account(self, mock_request, client, server_key):
        """Test that a valid reply addressed to another key is rejected."""
        other = KeyPair.generate()
        mock_request.return_value = _response(_signed_reply(server_key, {"success": other.public_hash}))

        assert client.create_account() == AccountStatus.ERROR

    @patch('coinapult_client.client.requests.Session.request')
    def test_create_account_bad_signature(self, mock_request, client, keypair):
        forger = KeyPair.generate()
        mock_request.return_value = _response(_signed_reply(forger, {"success": keypair.public_hash}))

        assert client.create_account() == AccountStatus.ERROR

    @patch('coinapult_client.client.requests.Session.request')
    def test_create_account_missing_success(self, mock_request, client, server_key):
        mock_request.return_value = _response(_signed_reply(server_key, {"status": "ok"}))

        assert client.create_account() == AccountStatus.ERROR

    @patch('coinapult_client.client.requests.Session.request')
    def test_create_account_error_marker(self, mock_request, client, keypair, server_key):
        reply = _signed_reply(server_key, {"success": keypair.public_hash})
        reply["error"] = "Account exists"
        mock_request.return_value = _response(reply)

        assert client.create_account() == AccountStatus.ERROR

    @patch('coinapult_client.client.requests.Session.request')
    def test_create_account_null_error(self, mock_request, client, keypair, server_key):
        """Test that a null error field is not treated as an error."""
        reply = _signed_reply(server_key, {"success": keypair.public_hash})
        reply["error"] = None
        mock_request.return_value = _response(reply)

        assert client.create_account() == AccountStatus.SUCCESS

    @patch('coinapult_client.client.requests.Session.request')
    def test_create_account_transport_failure(self, mock_request, client):
        mock_request.side_effect = requests.Timeout("timed out")

        assert client.create_account() == AccountStatus.ERROR

    @patch('coinapult_client.client.requests.Session.request')
    def test_create_account_http_error(self, mock_request, client):
        mock_request.return_value = _response({"error": "nope"}, status_code=500)

        assert client.create_account() == AccountStatus.ERROR

    def test_authenticate_callback_requires_shared_secret(self, client):
        with pytest.raises(ConfigurationError):
            client.authenticate_callback("k1", "00", "data")

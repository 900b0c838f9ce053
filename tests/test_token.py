"""Tests for the service token codec."""

import base64
import json

import pytest

from l402_gate.token import (
    TOKEN_VERSION,
    ServiceToken,
    create_service_token,
    decode_token,
    encode_token,
)


PAYMENT_HASH = "a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2"


def b64json(payload):
    return base64.b64encode(json.dumps(payload).encode()).decode()


class TestCreateServiceToken:
    def test_embeds_hash_and_resource(self):
        token = create_service_token(PAYMENT_HASH, "/api/joke")
        assert token.version == TOKEN_VERSION
        assert token.payment_hash == PAYMENT_HASH
        assert token.resource == "/api/joke"
        assert token.issued_at > 0

    def test_requires_payment_hash(self):
        with pytest.raises(ValueError, match="payment_hash is required"):
            create_service_token("", "/api/joke")


class TestEncodeDecode:
    def test_roundtrip(self):
        token = ServiceToken(version=1, payment_hash=PAYMENT_HASH, resource="/api/data", issued_at=1700000000000)
        assert decode_token(encode_token(token)) == token

    def test_roundtrip_fresh_token(self):
        token = create_service_token(PAYMENT_HASH, "/api/wisdom?lang=en")
        assert decode_token(encode_token(token)) == token

    def test_encoding_is_header_safe(self):
        """No colon, so the credential split stays unambiguous."""
        raw = encode_token(create_service_token(PAYMENT_HASH, "/a:b:c"))
        assert ":" not in raw
        assert " " not in raw and '"' not in raw

    def test_wire_format_matches_l402_js(self):
        raw = encode_token(ServiceToken(1, PAYMENT_HASH, "/api/test", 123))
        payload = json.loads(base64.b64decode(raw))
        assert payload == {
            "version": 1,
            "paymentHash": PAYMENT_HASH,
            "service": "/api/test",
            "issuedAt": 123,
        }

    def test_decodes_unpadded_input(self):
        raw = encode_token(ServiceToken(1, PAYMENT_HASH, "/x", 1)).rstrip("=")
        decoded = decode_token(raw)
        assert decoded is not None
        assert decoded.payment_hash == PAYMENT_HASH

    def test_missing_optional_fields_default(self):
        decoded = decode_token(b64json({"version": 1, "paymentHash": PAYMENT_HASH}))
        assert decoded == ServiceToken(version=1, payment_hash=PAYMENT_HASH, resource="", issued_at=0)


class TestDecodeRejects:
    def test_garbage(self):
        assert decode_token("not-valid-base64!!!") is None

    def test_truncated(self):
        raw = encode_token(create_service_token(PAYMENT_HASH, "/api"))
        assert decode_token(raw[: len(raw) // 2]) is None

    def test_invalid_json(self):
        assert decode_token(base64.b64encode(b"not json").decode()) is None

    def test_not_an_object(self):
        assert decode_token(b64json([1, PAYMENT_HASH])) is None

    def test_missing_version(self):
        assert decode_token(b64json({"paymentHash": PAYMENT_HASH})) is None

    def test_missing_payment_hash(self):
        assert decode_token(b64json({"version": 1, "service": "/x"})) is None

    def test_wrong_types(self):
        assert decode_token(b64json({"version": True, "paymentHash": PAYMENT_HASH})) is None
        assert decode_token(b64json({"version": 1, "paymentHash": 42})) is None
        assert decode_token(b64json({"version": 1, "paymentHash": PAYMENT_HASH, "issuedAt": "now"})) is None

    def test_non_string_input(self):
        assert decode_token(None) is None
        assert decode_token("") is None
        assert decode_token(12345) is None

    def test_deeply_nested_json(self):
        assert decode_token(base64.b64encode(b"[" * 5000).decode()) is None
        assert decode_token(base64.b64encode(b'{"a":' * 5000).decode()) is None

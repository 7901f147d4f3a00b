"""Tests for crypto webhook signature verification."""

import hashlib
import hmac

from payments.signature import sign, verify_signature

BODY = b'{"order_id":"REF1","payment_status":"finished"}'


class TestSignature:
    def test_sign_is_hmac_sha512_hex(self):
        expected = hmac.new(b"secret", BODY, hashlib.sha512).hexdigest()
        assert sign(BODY, "secret") == expected

    def test_valid_signature(self):
        assert verify_signature(BODY, sign(BODY, "secret"), "secret") is True

    def test_signature_is_case_insensitive(self):
        assert verify_signature(BODY, sign(BODY, "secret").upper(), "secret") is True

    def test_tampered_body(self):
        assert verify_signature(BODY + b" ", sign(BODY, "secret"), "secret") is False

    def test_wrong_secret(self):
        assert verify_signature(BODY, sign(BODY, "other"), "secret") is False

    def test_missing_secret_refuses_everything(self):
        assert verify_signature(BODY, sign(BODY, ""), None) is False
        assert verify_signature(BODY, "", "secret") is False

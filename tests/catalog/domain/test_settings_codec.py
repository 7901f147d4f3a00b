"""Tests for decoding and encoding the key-value settings table."""

import json

import pytest

from catalog.settings import decode_settings, encode_setting
from shared.errors import ValidationError


def _rows(**values):
    return [{"key": key, "value": value} for key, value in values.items()]


class TestDecodeSettings:
    def test_empty_table_gives_defaults(self):
        settings = decode_settings([])
        assert settings.fallback_rate == 130.0
        assert settings.urgent_message.enabled is False
        assert settings.active_payment_options.crypto_nowpayments is True

    def test_plain_and_structured_values(self):
        settings = decode_settings(
            _rows(
                mpesa_till="123456",
                socials=json.dumps({"whatsapp": "+254700000000"}),
                urgent_message=json.dumps({"enabled": True, "text": "Maintenance tonight"}),
                fallback_rate="128.5",
            )
        )
        assert settings.mpesa_till == "123456"
        assert settings.socials.whatsapp == "+254700000000"
        assert settings.urgent_message.text == "Maintenance tonight"
        assert settings.fallback_rate == 128.5

    def test_malformed_json_falls_back_to_default(self):
        settings = decode_settings(_rows(socials="{not json", mpesa_till="999"))
        assert settings.socials.whatsapp == ""
        assert settings.mpesa_till == "999"

    def test_malformed_number_falls_back_to_default(self):
        settings = decode_settings(_rows(fallback_rate="abc"))
        assert settings.fallback_rate == 130.0

    def test_wrong_shape_falls_back_for_that_key_only(self):
        settings = decode_settings(
            _rows(
                socials=json.dumps([1, 2, 3]),
                urgent_message=json.dumps({"enabled": True, "text": "Hi"}),
            )
        )
        assert settings.socials.instagram == ""
        assert settings.urgent_message.enabled is True

    def test_unknown_keys_ignored(self):
        settings = decode_settings(_rows(legacy_banner="old"))
        assert not hasattr(settings, "legacy_banner")


class TestEncodeSetting:
    def test_structured_value_stored_as_json(self):
        text = encode_setting("active_payment_options", {"crypto_nowpayments": False})
        assert json.loads(text) == {"mpesa_manual": True, "mpesa_payhero": True, "crypto_nowpayments": False}

    def test_numeric_value_stored_as_text(self):
        assert encode_setting("fallback_rate", "131") == "131.0"

    def test_numeric_value_rejected(self):
        with pytest.raises(ValidationError) as exc:
            encode_setting("fallback_rate", "lots")
        assert "fallback_rate" in exc.value.messages

    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError) as exc:
            encode_setting("theme", "dark")
        assert exc.value.messages == {"theme": ["unknown setting"]}

    def test_structured_shape_rejected(self):
        with pytest.raises(ValidationError):
            encode_setting("urgent_message", {"enabled": "maybe"})

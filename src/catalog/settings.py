"""Settings codec.

Settings persist as a flat ``key -> text`` table. Structured values (social
links, the urgent-message toggle, the payment-option toggles) are stored as
JSON text; ``fallback_rate`` is stored as a decimal string. Decoding never
fails: malformed text falls back to the default for that key and is logged.
"""

import json

import structlog
from pydantic import ValidationError as PydanticValidationError

from catalog.models import StoreSettings
from shared.errors import ValidationError

logger = structlog.get_logger(__name__)

STRUCTURED_KEYS = ("socials", "urgent_message", "active_payment_options")
NUMERIC_KEYS = ("fallback_rate",)
KNOWN_KEYS = tuple(StoreSettings.model_fields)


def decode_settings(rows: list[dict]) -> StoreSettings:
    """Merge stored ``{key, value}`` rows over the defaults."""
    defaults = StoreSettings()
    values = defaults.model_dump()
    stored = {row["key"]: row["value"] for row in rows}

    for key in KNOWN_KEYS:
        if key not in stored:
            continue
        raw = stored[key]
        if key in STRUCTURED_KEYS:
            try:
                values[key] = json.loads(raw)
            except (TypeError, ValueError):
                logger.warning("Malformed JSON setting, using default", key=key)
                continue
        elif key in NUMERIC_KEYS:
            try:
                values[key] = float(raw)
            except (TypeError, ValueError):
                logger.warning("Malformed numeric setting, using default", key=key, value=raw)
                continue
        else:
            values[key] = raw

    try:
        return StoreSettings.model_validate(values)
    except PydanticValidationError:
        # One bad structured value must not take down the whole snapshot
        merged = defaults.model_dump()
        for key, value in values.items():
            try:
                StoreSettings.model_validate({**merged, key: value})
            except PydanticValidationError:
                logger.warning("Setting has invalid shape, using default", key=key)
                continue
            merged[key] = value
        return StoreSettings.model_validate(merged)


def encode_setting(key: str, value) -> str:
    """Serialize one setting value for the key-value table."""
    if key not in KNOWN_KEYS:
        raise ValidationError({key: ["unknown setting"]})
    if key in STRUCTURED_KEYS:
        field_type = StoreSettings.model_fields[key].annotation
        try:
            model = field_type.model_validate(value)
        except PydanticValidationError as exc:
            raise ValidationError({key: [error["msg"] for error in exc.errors()]}) from exc
        return json.dumps(model.model_dump())
    if key in NUMERIC_KEYS:
        try:
            return str(float(value))
        except (TypeError, ValueError):
            raise ValidationError({key: ["must be a number"]}) from None
    return str(value)

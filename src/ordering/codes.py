"""Reference code and tracking number generation.

Both identifiers are a base-36 millisecond timestamp followed by a random
suffix, upper-cased so customers can copy them by hand. Ref codes start with
``REF`` and tracking numbers with ``CB`` so the two kinds are never confused.

The generator does not guarantee uniqueness. ``allocate_code()`` checks each
candidate against the store and retries, and the unique constraints in the
schema catch whatever slips between the check and the insert.
"""

import secrets
import string
import time
from collections.abc import Callable

import structlog

from shared.errors import ConflictError

logger = structlog.get_logger(__name__)

REF_CODE_PREFIX = "REF"
TRACKING_NUMBER_PREFIX = "CB"

_ALPHABET = string.digits + string.ascii_uppercase


def to_base36(number: int) -> str:
    if number < 0:
        raise ValueError("number must be non-negative")
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_ALPHABET[remainder])
    return "".join(reversed(digits))


def _random_suffix(length: int) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def _timestamp(clock: Callable[[], float]) -> str:
    return to_base36(int(clock() * 1000))


def generate_ref_code(clock: Callable[[], float] = time.time) -> str:
    """Customer-facing payment reference, e.g. ``REFLX3K9QZ8A1B2C3``."""
    return f"{REF_CODE_PREFIX}{_timestamp(clock)}{_random_suffix(6)}"


def generate_tracking_number(clock: Callable[[], float] = time.time) -> str:
    """Customer-facing order identifier, e.g. ``CBLX3K9QZ8A1B2``."""
    return f"{TRACKING_NUMBER_PREFIX}{_timestamp(clock)}{_random_suffix(4)}"


def allocate_code(
    generate: Callable[[], str],
    is_taken: Callable[[str], bool],
    attempts: int,
    kind: str = "ref_code",
) -> str:
    """Draw codes from ``generate`` until one is not taken."""
    for attempt in range(1, attempts + 1):
        code = generate()
        if not is_taken(code):
            return code
        logger.warning("Generated code collided, retrying", kind=kind, attempt=attempt)
    raise ConflictError(f"Could not allocate a unique {kind} after {attempts} attempts", kind=kind)

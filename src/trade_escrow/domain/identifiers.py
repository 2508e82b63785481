"""Deal identifier helpers.

Deal identifiers are caller-supplied opaque 32-byte values. They travel as
0x-prefixed lowercase hex (66 chars) everywhere in the service.
"""

from __future__ import annotations

import hashlib
import re

from trade_escrow.domain.exceptions import InvalidDealIdError

DEAL_ID_BYTES = 32
_HEX_RE = re.compile(r"(0x)?[0-9a-fA-F]{64}")


def normalize_deal_id(value: str | bytes) -> str:
    """Return the canonical text form of a deal identifier.

    Accepts 32 raw bytes or a 64-hex-char string with or without the 0x prefix.

    Raises:
        InvalidDealIdError: If the value is not a 32-byte identifier.
    """
    if isinstance(value, bytes | bytearray):
        if len(value) != DEAL_ID_BYTES:
            raise InvalidDealIdError(value)
        return "0x" + bytes(value).hex()
    if isinstance(value, str) and _HEX_RE.fullmatch(value):
        return "0x" + value.removeprefix("0x").lower()
    raise InvalidDealIdError(value)


def deal_id_from_reference(reference: str) -> str:
    """Derive a deal identifier from an external batch reference.

    Callers may use any collision-resistant scheme; the service never
    derives identifiers itself.
    """
    if not reference:
        raise ValueError("reference must be a non-empty string")
    return "0x" + hashlib.sha256(reference.encode("utf-8")).hexdigest()

"""
Keyed integrity tag over an ordered tuple of string fields.

Tag = lowercase hex HMAC-SHA256(secret, "|".join(fields)). The separator and
field order are part of the cookie wire format; changing either invalidates
every session in flight.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Sequence

SEPARATOR = "|"


def sign(secret: str, fields: Sequence[str]) -> str:
    msg = SEPARATOR.join(fields).encode("utf-8")
    return hmac.new(secret.encode("utf-8"), msg, hashlib.sha256).hexdigest()


def verify(secret: str, fields: Sequence[str], tag: object) -> bool:
    """Constant-time check of a presented tag. Never raises."""
    if not isinstance(tag, str) or not tag:
        return False
    expected = sign(secret, fields)
    try:
        return hmac.compare_digest(expected, tag)
    except TypeError:
        # compare_digest rejects non-ASCII str operands.
        return False

"""Random identifiers for connections and sessions."""

from __future__ import annotations

import secrets
from collections.abc import Container

ID_LENGTH = 16  # hex characters, 64 bits of entropy


def generate_id(existing_ids: Container[str] = ()) -> str:
    """Return a fresh 16-character lowercase hex id not in *existing_ids*."""
    new_id = secrets.token_hex(ID_LENGTH // 2)
    while new_id in existing_ids:
        new_id = secrets.token_hex(ID_LENGTH // 2)
    return new_id


def validate_id(value: object) -> bool:
    """True if *value* has the shape of an id this module hands out."""
    return isinstance(value, str) and len(value) == ID_LENGTH

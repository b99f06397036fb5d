"""
Identity key validation utilities.
"""

import re
import uuid

UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

# Values tool callers tend to invent instead of reusing the id they were given
PLACEHOLDER_IDS = {"", "new", "temp", "current", "me", "self"}


def is_valid_identity_key(user_id: str | None, strict: bool = True) -> bool:
    """
    Check whether a caller-supplied user_id can be used as an identity key.

    Placeholders are always rejected. In strict mode the key must also be a
    version 1-5 UUID.
    """
    candidate = (user_id or "").strip()
    if candidate.lower() in PLACEHOLDER_IDS:
        return False
    if strict:
        return bool(UUID_RE.match(candidate))
    return True


def mint_identity_key() -> str:
    """Generate a fresh identity key for a caller that has none."""
    return str(uuid.uuid4())

from __future__ import annotations

import re
import secrets

_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")


def new_id() -> str:
    """Return a fresh 24-character hex identifier for users and bugs."""
    return secrets.token_hex(12)


def is_valid_id(value: object) -> bool:
    return isinstance(value, str) and _ID_RE.match(value) is not None

"""ACL codec: all ACLs with their entries in a single ``acl.json``."""

from __future__ import annotations

import json

from .config import FILE_ACL, JSON_INDENT
from .errors import FatalUserError
from .model import Acl
from .utils import to_sorted_json


def encode_acls(acls: list[Acl]) -> str | None:
    """Render the ACLs as JSON text, or None if there are none (no file)."""
    if not acls:
        return None
    return to_sorted_json([acl.to_dict() for acl in acls], indent=JSON_INDENT)


def decode_acls(text: str | None) -> list[Acl]:
    """Parse acl.json content; a missing file means no ACLs."""
    if text is None or not text.strip():
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise FatalUserError(f"Invalid JSON in {FILE_ACL}: {e}") from e
    if not isinstance(data, list):
        raise FatalUserError(f"{FILE_ACL} must contain a JSON array of ACLs")
    try:
        return [Acl.from_dict(item) for item in data]
    except (KeyError, TypeError, AttributeError) as e:
        raise FatalUserError(f"Invalid ACL in {FILE_ACL}: {e}") from e

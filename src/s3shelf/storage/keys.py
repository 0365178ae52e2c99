"""Object key helpers.

Keys are stored with forward slashes only and no leading slash, so that
``normalize_key`` is idempotent.
"""

import uuid
from typing import Any, Callable, Optional

DELIMITER = "/"

IdExtractor = Callable[[Any], Optional[Any]]


def normalize_key(raw: str) -> str:
    """Convert backslashes to forward slashes and strip leading slashes."""
    return raw.replace("\\", DELIMITER).lstrip(DELIMITER)


def compose_key(prefix: Optional[str], name: str) -> str:
    """Join an optional directory prefix and an object name.

    Args:
        prefix: Directory prefix; blank means the bucket root
        name: Object name, possibly containing its own sub-path

    Returns:
        Normalized key
    """
    if not prefix or not prefix.strip():
        return normalize_key(name)
    prefix = prefix.strip().strip(DELIMITER)
    return normalize_key(f"{prefix}{DELIMITER}{name}")


def new_token() -> str:
    """Return a fresh 32-character random token."""
    return uuid.uuid4().hex


def synthesize_name(type_name: str, identifier: Optional[str] = None) -> str:
    """Build an object name such as ``note-3f2a....json``.

    Args:
        type_name: Record type name (lower-cased in the result)
        identifier: Identifier taken from the record; a random token if absent
    """
    if not identifier:
        identifier = new_token()
    return f"{type_name.lower()}-{identifier}.json"


def render_identifier(raw: Any) -> Optional[str]:
    """Render an identifier for use in a key, or None if it is empty or zero."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, uuid.UUID):
        return raw.hex if raw.int != 0 else None
    if isinstance(raw, str):
        return raw.strip() or None
    if isinstance(raw, (int, float)):
        return str(raw) if raw != 0 else None
    text = str(raw).strip()
    return text or None


def id_from_fields(*fields: str) -> IdExtractor:
    """Build an identifier extractor that tries attributes in order.

    The first attribute holding a usable value wins. ``None``, blank
    strings, the nil UUID and zero are skipped.

    Example:
        >>> extract = id_from_fields("id", "note_id")
        >>> extract(Note(id=None, note_id="abc"))
        'abc'
    """
    if not fields:
        raise ValueError("at least one field name is required")

    def extract(value: Any) -> Optional[str]:
        for field in fields:
            if isinstance(value, dict):
                raw = value.get(field)
            else:
                raw = getattr(value, field, None)
            identifier = render_identifier(raw)
            if identifier is not None:
                return identifier
        return None

    return extract

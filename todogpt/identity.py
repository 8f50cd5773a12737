"""
identity.py

Stable todo identity. Every todo gets a uuid4 at creation; the first eight
hex characters are the short id shown to people and to the LLM. Positions in
a list are only ever used for display.
"""

import re
import uuid

SHORT_ID_LENGTH = 8

_SHORT_ID_RE = re.compile(r"^[0-9a-f]{%d}[0-9a-f-]*$" % SHORT_ID_LENGTH)


def allocate() -> str:
    """Return a new globally unique todo id."""
    return str(uuid.uuid4())


def shorten(todo_id: str) -> str:
    """Deterministic short form of an id (its first 8 characters)."""
    return todo_id[:SHORT_ID_LENGTH].lower()


def normalize_short_id(text: str) -> str:
    """Accept the display form ``{a1b2c3d4}`` or ``#a1b2c3d4`` as well as the bare id."""
    cleaned = (text or "").strip()
    if cleaned.startswith("#"):
        cleaned = cleaned[1:]
    cleaned = cleaned.strip("{}").strip()
    return cleaned.lower()


def looks_like_short_id(token: str) -> bool:
    """True for 8+ hex characters, e.g. ``a1b2c3d4`` or ``{a1b2c3d4}``."""
    return bool(_SHORT_ID_RE.match(normalize_short_id(token)))
"""
resolver.py

Turns a Reference (short id and/or 1-based position, optionally with an
expected title fragment) into exactly one todo of a list, or raises a
ResolutionError that says precisely why not.

Short ids are always tried first: they keep pointing at the same todo no
matter how the list was reordered or edited since the id was shown. The
position path is kept for slash commands typed against a fresh listing.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from todogpt.errors import (
    AmbiguousShortId,
    ContentMismatch,
    MissingReference,
    NotFound,
    OutOfRange,
)
from todogpt.identity import normalize_short_id
from todogpt.schema import TodoItem


@dataclass(frozen=True)
class Reference:
    short_id: Optional[str] = None
    position: Optional[int] = None
    expected_title: Optional[str] = None


def find_matches(todos: Sequence[TodoItem], short_id: str) -> List[TodoItem]:
    """Every todo whose full id starts with ``short_id`` (case-insensitive)."""
    prefix = normalize_short_id(short_id)
    if not prefix:
        return []
    return [todo for todo in todos if todo.id.lower().startswith(prefix)]


def resolve(todos: Sequence[TodoItem], ref: Reference) -> TodoItem:
    """
    Resolve ``ref`` against ``todos``.

    Returns the live todo object from the sequence; the caller must use it
    within the same command and never cache it across turns.

    Raises:
        NotFound, AmbiguousShortId: short id matched zero / several todos.
        OutOfRange: position outside 1..len(todos).
        MissingReference: neither a short id nor a position was given.
        ContentMismatch: the todo found does not contain ``expected_title``.
    """
    short_id = normalize_short_id(ref.short_id) if ref.short_id else ""

    if short_id:
        matches = find_matches(todos, short_id)
        if not matches:
            raise NotFound(short_id)
        if len(matches) > 1:
            raise AmbiguousShortId(short_id, len(matches))
        candidate = matches[0]
    elif ref.position is not None:
        if ref.position < 1 or ref.position > len(todos):
            raise OutOfRange(ref.position, len(todos))
        candidate = todos[ref.position - 1]
    else:
        raise MissingReference()

    # Even a correctly matched id may come from a hallucinated intent.
    expected = (ref.expected_title or "").strip()
    if expected and expected.lower() not in candidate.title.lower():
        raise ContentMismatch(expected, candidate.title)

    return candidate

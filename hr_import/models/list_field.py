from __future__ import annotations

from collections.abc import Iterable
from typing import Any

"""ListField: free-text token set stored as a comma-joined string.

Tokens are trimmed and de-duplicated; blank tokens and the literal ``"0"``
are treated as absent. Equality ignores token order.
"""

__all__ = [
    "ListField",
    "ZERO_TOKEN",
]

ZERO_TOKEN = "0"
SEPARATOR = ", "


def _tokens(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, ListField):
        return list(value.tokens)
    if isinstance(value, (list, tuple, set, frozenset)):
        parts = [("" if v is None else str(v)) for v in value]
    elif isinstance(value, (int, float)):
        # spreadsheet cells holding 0 come through as numbers
        if value == 0:
            return []
        parts = [str(value)]
    else:
        parts = str(value).split(",")
    return [p.strip() for p in parts if p.strip() and p.strip() != ZERO_TOKEN]


class ListField:
    """De-duplicated, order-insensitive set of text tokens."""

    __slots__ = ("_tokens",)

    def __init__(self, tokens: Iterable[str] = ()) -> None:
        seen: dict[str, None] = {}
        for t in _tokens(list(tokens)):
            seen.setdefault(t, None)
        self._tokens: tuple[str, ...] = tuple(seen)

    @classmethod
    def parse(cls, value: Any) -> ListField:
        return cls(_tokens(value))

    @property
    def tokens(self) -> tuple[str, ...]:
        return self._tokens

    def union(self, other: ListField) -> ListField:
        return ListField(self._tokens + other.tokens)

    def is_empty(self) -> bool:
        return not self._tokens

    def render(self) -> str | None:
        """Storage form: comma-joined text, or None when empty."""
        if not self._tokens:
            return None
        return SEPARATOR.join(self._tokens)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ListField):
            return NotImplemented
        return frozenset(self._tokens) == frozenset(other.tokens)

    def __hash__(self) -> int:
        return hash(frozenset(self._tokens))

    def __len__(self) -> int:
        return len(self._tokens)

    def __repr__(self) -> str:
        return f"ListField({list(self._tokens)!r})"

"""Merging of header and query-parameter collections.

Headers and query parameters are both kept as tuples of ``(name, value)``
pairs.  :func:`merge_headers` combines two such collections so that the
incoming side wins on key collisions and any pair whose value is ``None``
disappears, which is how a caller deletes a header set by an earlier
builder step.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Optional, Union

Pair = tuple[str, str]
Pairs = tuple[Pair, ...]
PairsInput = Union[Mapping[str, Any], Iterable[tuple[str, Any]], None]


def _as_pairs(items: PairsInput) -> list[tuple[str, Optional[str]]]:
    if items is None:
        return []
    if isinstance(items, Mapping):
        items = items.items()
    pairs: list[tuple[str, Optional[str]]] = []
    for name, value in items:
        pairs.append((str(name), None if value is None else str(value)))
    return pairs


def merge_headers(
    base: PairsInput,
    incoming: PairsInput,
    case_insensitive: bool = True,
) -> Pairs:
    """Merge *incoming* pairs over *base* pairs.

    Entries from *incoming* take priority over *base* when their keys
    collide (compared case-insensitively unless *case_insensitive* is
    false).  Entries whose value is ``None`` are dropped from the result,
    even when only *base* carried them.  The result keeps first-seen
    order over ``incoming + base``.

    The function is pure and idempotent:
    ``merge_headers(merge_headers(a, b), b) == merge_headers(a, b)``.

    Args:
        base: Existing pairs, as a mapping or an iterable of pairs.
        incoming: Pairs to merge in.
        case_insensitive: Compare keys ignoring case (headers) or exactly
            (query parameters).

    Returns:
        A tuple of ``(name, value)`` string pairs without duplicate keys.
    """
    seen: set[str] = set()
    merged: list[Pair] = []
    for name, value in _as_pairs(incoming) + _as_pairs(base):
        key = name.lower() if case_insensitive else name
        if key in seen:
            continue
        seen.add(key)
        if value is not None:
            merged.append((name, value))
    return tuple(merged)


def merge_query(base: PairsInput, incoming: PairsInput) -> Pairs:
    """Merge query parameters; like :func:`merge_headers` with exact keys."""
    return merge_headers(base, incoming, case_insensitive=False)


def find_value(
    pairs: Iterable[tuple[str, Any]],
    name: str,
    default: Optional[str] = None,
    case_insensitive: bool = False,
) -> Optional[str]:
    """Return the value of the first pair named *name*, or *default*."""
    wanted = name.lower() if case_insensitive else name
    for key, value in pairs:
        if (key.lower() if case_insensitive else key) == wanted:
            return value
    return default


def without(pairs: Iterable[tuple[str, Any]], name: str) -> list[tuple[str, Any]]:
    """Return *pairs* minus any pair named *name* (case-insensitive)."""
    wanted = name.lower()
    return [(key, value) for key, value in pairs if key.lower() != wanted]

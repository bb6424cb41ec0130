"""Duplicate filtering applied before any batch is planned."""

from __future__ import annotations

from typing import Iterable, List, Set, Tuple

from django_rebac_batch.types.tuples import TupleKey, TupleKeys

_Identity = Tuple[str, str, str]


def filter_duplicates(
    writes: Iterable[TupleKey] | None,
    deletes: Iterable[TupleKey] | None,
) -> tuple[TupleKeys | None, TupleKeys | None]:
    """Return ``(writes, deletes)`` with redundant tuple keys removed.

    Within each side only the first occurrence of a ``(user, relation, object)``
    identity is kept, in first-seen order. A write whose identity is also being
    deleted is dropped, so the delete wins. Sides that end up empty come back as
    ``None``.
    """

    unique_deletes, delete_ids = _unique(deletes)
    unique_writes, _ = _unique(writes, exclude=delete_ids)
    return (
        TupleKeys(unique_writes) if unique_writes else None,
        TupleKeys(unique_deletes) if unique_deletes else None,
    )


def _unique(
    keys: Iterable[TupleKey] | None,
    *,
    exclude: Set[_Identity] = frozenset(),  # type: ignore[assignment]
) -> tuple[List[TupleKey], Set[_Identity]]:
    seen: Set[_Identity] = set()
    kept: List[TupleKey] = []
    for key in keys or ():
        identity = key.identity
        if identity in seen or identity in exclude:
            continue
        seen.add(identity)
        kept.append(key)
    return kept, seen

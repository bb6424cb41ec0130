"""Relationship tuple value types."""

from __future__ import annotations

from collections.abc import Sequence as SequenceABC
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, Mapping, Tuple, overload

from django_rebac_batch.exceptions import ValidationError


@dataclass(frozen=True)
class Condition:
    """Named condition (caveat) attached to a tuple write."""

    name: str
    context: Mapping[str, Any] | None = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name}
        if self.context:
            data["context"] = dict(self.context)
        return data


@dataclass(frozen=True)
class TupleKey:
    """A relationship fact ``user`` has ``relation`` on ``object``.

    ``user`` is ``type:id`` optionally followed by ``#relation`` for usersets,
    ``object`` is ``type:id``.
    """

    user: str
    relation: str
    object: str
    condition: Condition | None = None

    def __post_init__(self) -> None:
        for name in ("user", "relation", "object"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ValidationError(f"TupleKey {name} must be a non-empty string.")

    @property
    def identity(self) -> Tuple[str, str, str]:
        """Deduplication identity. The condition does not take part in it."""

        return (self.user, self.relation, self.object)

    def to_dict(self, *, include_condition: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "user": self.user,
            "relation": self.relation,
            "object": self.object,
        }
        if include_condition and self.condition is not None:
            data["condition"] = self.condition.to_dict()
        return data


class TupleKeys(SequenceABC):
    """Immutable, ordered collection of :class:`TupleKey`.

    Order is preserved exactly as given and duplicates are allowed; use
    :func:`django_rebac_batch.batch.filters.filter_duplicates` to remove them.
    """

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[TupleKey] = ()) -> None:
        collected = tuple(items)
        for item in collected:
            if not isinstance(item, TupleKey):
                raise TypeError(f"TupleKeys only holds TupleKey instances, got {type(item).__name__}")
        self._items: Tuple[TupleKey, ...] = collected

    @overload
    def __getitem__(self, index: int) -> TupleKey: ...

    @overload
    def __getitem__(self, index: slice) -> "TupleKeys": ...

    def __getitem__(self, index):
        if isinstance(index, slice):
            return TupleKeys(self._items[index])
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[TupleKey]:
        return iter(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, TupleKeys):
            return self._items == other._items
        if isinstance(other, (list, tuple)):
            return self._items == tuple(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"TupleKeys({list(self._items)!r})"

    def to_dict(self, *, include_condition: bool = True) -> Dict[str, Any]:
        return {
            "tuple_keys": [
                key.to_dict(include_condition=include_condition) for key in self._items
            ]
        }


def as_tuple_keys(value: Iterable[TupleKey] | None) -> TupleKeys | None:
    """Coerce ``value`` into :class:`TupleKeys`, keeping ``None`` as ``None``."""

    if value is None or isinstance(value, TupleKeys):
        return value
    return TupleKeys(value)

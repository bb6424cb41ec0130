"""Batch operation value object and the write-first chunker."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List

from django_rebac_batch.exceptions import ValidationError
from django_rebac_batch.types.tuples import TupleKey, TupleKeys, as_tuple_keys

MAX_TUPLES_PER_REQUEST = 100


def validate_chunk_size(size: int) -> None:
    if isinstance(size, bool) or not isinstance(size, int):
        raise ValidationError(f"Chunk size must be an integer, got {size!r}.")
    if size <= 0:
        raise ValidationError("Chunk size must be a positive integer.")
    if size > MAX_TUPLES_PER_REQUEST:
        raise ValidationError(
            f"Chunk size cannot exceed {MAX_TUPLES_PER_REQUEST} tuples per request."
        )


@dataclass(frozen=True, init=False)
class BatchOperation:
    """An optional set of writes plus an optional set of deletes."""

    writes: TupleKeys | None
    deletes: TupleKeys | None

    def __init__(
        self,
        writes: Iterable[TupleKey] | None = None,
        deletes: Iterable[TupleKey] | None = None,
    ) -> None:
        object.__setattr__(self, "writes", as_tuple_keys(writes))
        object.__setattr__(self, "deletes", as_tuple_keys(deletes))

    # --------------------------------------------------------------------- API
    @property
    def total_operations(self) -> int:
        return len(self.writes or ()) + len(self.deletes or ())

    def is_empty(self) -> bool:
        return self.total_operations == 0

    def requires_chunking(self, threshold: int = MAX_TUPLES_PER_REQUEST) -> bool:
        return self.total_operations > threshold

    def chunk(self, size: int = MAX_TUPLES_PER_REQUEST) -> List["BatchOperation"]:
        """Split into order-preserving chunks of at most ``size`` operations.

        Writes are consumed before deletes. When the writes run out part-way
        through a chunk the rest of that chunk is filled with deletes, so only
        the boundary chunk mixes both sides.
        """

        validate_chunk_size(size)
        if self.is_empty():
            return []

        writes = self.writes or TupleKeys()
        deletes = self.deletes or TupleKeys()
        write_pos = 0
        delete_pos = 0
        chunks: List[BatchOperation] = []

        while write_pos < len(writes) or delete_pos < len(deletes):
            write_end = min(write_pos + size, len(writes))
            room = size - (write_end - write_pos)
            delete_end = min(delete_pos + room, len(deletes))

            chunks.append(
                BatchOperation(
                    writes=writes[write_pos:write_end] if write_end > write_pos else None,
                    deletes=deletes[delete_pos:delete_end] if delete_end > delete_pos else None,
                )
            )
            write_pos = write_end
            delete_pos = delete_end

        return chunks

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.writes is not None:
            data["writes"] = self.writes.to_dict()
        if self.deletes is not None:
            data["deletes"] = self.deletes.to_dict(include_condition=False)
        return data

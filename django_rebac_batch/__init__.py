"""Core package for django-rebac-batch.

Batched relationship-tuple writes and deletes for a remote ReBAC service.
The engine and value types are re-exported here; adapters live in
:mod:`django_rebac_batch.adapters`.
"""

from .batch import BatchOperation, BatchResult, ExecutionOptions, filter_duplicates
from .batch.engine import (
    BatchEngine,
    delete_tuples,
    write_and_delete_tuples,
    write_tuples,
)
from .types import Condition, TupleKey, TupleKeys

__all__ = [
    "BatchEngine",
    "BatchOperation",
    "BatchResult",
    "Condition",
    "ExecutionOptions",
    "TupleKey",
    "TupleKeys",
    "delete_tuples",
    "filter_duplicates",
    "write_and_delete_tuples",
    "write_tuples",
]

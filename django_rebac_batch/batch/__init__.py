"""Batch planning, retry and result types."""

from .filters import filter_duplicates
from .operation import MAX_TUPLES_PER_REQUEST, BatchOperation
from .options import ExecutionOptions
from .result import BatchResult, ResultAggregator
from .retry import ChunkFailure, ChunkOutcome, ChunkSuccess, execute_with_retry

__all__ = [
    "MAX_TUPLES_PER_REQUEST",
    "BatchOperation",
    "BatchResult",
    "ChunkFailure",
    "ChunkOutcome",
    "ChunkSuccess",
    "ExecutionOptions",
    "ResultAggregator",
    "execute_with_retry",
    "filter_duplicates",
]

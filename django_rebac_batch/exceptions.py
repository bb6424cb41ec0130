"""Exception hierarchy for django-rebac-batch."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .batch.operation import BatchOperation


class RebacBatchError(Exception):
    """Base error for everything raised by this package."""


class ValidationError(RebacBatchError, ValueError):
    """Raised when a caller violates a contract (chunk size, limits, options).

    Validation errors are raised before any network call and are never retried.
    """


class ChunkTransportError(RebacBatchError):
    """A single chunk could not be sent or its response could not be decoded."""

    def __init__(
        self,
        message: str,
        *,
        chunk: Optional["BatchOperation"] = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(message)
        self.chunk = chunk
        self.attempts = attempts


class ResponseDecodeError(ChunkTransportError):
    """Raised when a raw transport response cannot be turned into a result."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
        chunk: Optional["BatchOperation"] = None,
    ) -> None:
        super().__init__(message, chunk=chunk)
        self.status_code = status_code
        self.code = code


class BatchFailure(RebacBatchError, RuntimeError):
    """Raised by ``BatchResult.throw_on_failure`` when no concrete error exists."""

    def __init__(self, failed_chunks: int, total_chunks: int) -> None:
        super().__init__(
            f"Batch operation failed: {failed_chunks} of {total_chunks} chunks failed"
        )
        self.failed_chunks = failed_chunks
        self.total_chunks = total_chunks


class BatchCancelled(RebacBatchError):
    """Recorded for a chunk whose retry loop was interrupted by cancellation."""

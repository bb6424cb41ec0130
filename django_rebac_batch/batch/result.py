"""Batch results and the thread-safe aggregator that builds them."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple

from django_rebac_batch.exceptions import BatchFailure

from .retry import ChunkFailure, ChunkOutcome, ChunkSuccess


@dataclass(frozen=True)
class BatchResult:
    """Outcome of one ``write`` / ``delete`` / ``write_and_delete`` call.

    Per-chunk failures are recorded here instead of being raised. Callers that
    want an exception call :meth:`throw_on_failure`.
    """

    total_operations: int
    total_chunks: int
    successful_chunks: int
    failed_chunks: int
    responses: Tuple[Any, ...] = field(default_factory=tuple)
    errors: Tuple[BaseException, ...] = field(default_factory=tuple)
    transactional: bool = False

    def success_rate(self) -> float:
        if self.total_chunks == 0:
            return 0.0
        return self.successful_chunks / self.total_chunks

    def is_complete_success(self) -> bool:
        return self.total_chunks > 0 and self.failed_chunks == 0

    def is_complete_failure(self) -> bool:
        return self.total_chunks > 0 and self.successful_chunks == 0

    def is_partial_success(self) -> bool:
        return self.successful_chunks > 0 and self.failed_chunks > 0

    def get_first_error(self) -> BaseException | None:
        return self.errors[0] if self.errors else None

    def throw_on_failure(self) -> None:
        """Raise the first recorded error if any chunk failed."""

        if self.failed_chunks == 0:
            return
        first_error = self.get_first_error()
        if first_error is not None:
            raise first_error
        raise BatchFailure(self.failed_chunks, self.total_chunks)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_operations": self.total_operations,
            "total_chunks": self.total_chunks,
            "successful_chunks": self.successful_chunks,
            "failed_chunks": self.failed_chunks,
            "success_rate": self.success_rate(),
            "is_complete_success": self.is_complete_success(),
            "is_complete_failure": self.is_complete_failure(),
            "is_partial_success": self.is_partial_success(),
        }

    @classmethod
    def empty(cls, *, transactional: bool = False) -> "BatchResult":
        return cls(0, 0, 0, 0, transactional=transactional)

    @classmethod
    def merge(cls, results: Iterable["BatchResult"]) -> "BatchResult":
        """Fold several results into one, keeping responses and errors in order."""

        results = list(results)
        return cls(
            total_operations=sum(r.total_operations for r in results),
            total_chunks=sum(r.total_chunks for r in results),
            successful_chunks=sum(r.successful_chunks for r in results),
            failed_chunks=sum(r.failed_chunks for r in results),
            responses=tuple(resp for r in results for resp in r.responses),
            errors=tuple(err for r in results for err in r.errors),
            transactional=bool(results) and all(r.transactional for r in results),
        )


class ResultAggregator:
    """Accumulates chunk outcomes; safe to call from concurrent workers."""

    def __init__(
        self,
        *,
        total_operations: int,
        total_chunks: int,
        transactional: bool = False,
    ) -> None:
        self._total_operations = total_operations
        self._total_chunks = total_chunks
        self._transactional = transactional
        self._lock = threading.Lock()
        self._successful = 0
        self._failed = 0
        self._responses: List[Any] = []
        self._errors: List[BaseException] = []

    def record(self, outcome: ChunkOutcome) -> None:
        if isinstance(outcome, ChunkSuccess):
            self.record_success(outcome.response)
        elif isinstance(outcome, ChunkFailure):
            self.record_failure(outcome.error)
        else:
            raise TypeError(f"Unexpected chunk outcome {outcome!r}")

    def record_success(self, response: Any) -> None:
        with self._lock:
            self._successful += 1
            self._responses.append(response)

    def record_failure(self, error: BaseException | None) -> None:
        with self._lock:
            self._failed += 1
            if error is not None:
                self._errors.append(error)

    def result(self) -> BatchResult:
        with self._lock:
            return BatchResult(
                total_operations=self._total_operations,
                total_chunks=self._total_chunks,
                successful_chunks=self._successful,
                failed_chunks=self._failed,
                responses=tuple(self._responses),
                errors=tuple(self._errors),
                transactional=self._transactional,
            )

"""Batch tuple mutation engine.

Turns a caller's write/delete intent into one or more calls on the configured
adapter:

* transactional mode sends the whole (deduplicated) operation as a single
  atomic call and refuses anything above ``MAX_TUPLES_PER_REQUEST``;
* non-transactional mode splits the operation into chunks, retries each chunk
  with exponential backoff and dispatches chunks sequentially or with bounded
  concurrency.

Chunk failures never propagate out of ``write``/``delete``/``write_and_delete``;
they are recorded on the returned :class:`BatchResult`.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Iterable, List, Mapping, Optional, Set, Union

import django_rebac_batch.conf as conf
from django_rebac_batch import signals
from django_rebac_batch.adapters import factory
from django_rebac_batch.adapters.base import RebacAdapter
from django_rebac_batch.exceptions import ValidationError
from django_rebac_batch.types.tuples import TupleKey

from .filters import filter_duplicates
from .operation import MAX_TUPLES_PER_REQUEST, BatchOperation
from .options import ExecutionOptions
from .result import BatchResult, ResultAggregator
from .retry import ChunkFailure, ChunkOutcome, execute_with_retry

logger = logging.getLogger(__name__)

OptionsArg = Union[ExecutionOptions, Mapping[str, Any], None]

MAX_TRANSACTIONAL_OPERATIONS = MAX_TUPLES_PER_REQUEST


class BatchEngine:
    """Executes batched tuple writes and deletes against a ``RebacAdapter``."""

    def __init__(
        self,
        adapter: RebacAdapter | None = None,
        *,
        options: OptionsArg = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self._adapter = adapter
        self._defaults = _coerce_options(options, conf.get_default_options())
        self._sleep = sleep

    @property
    def adapter(self) -> RebacAdapter:
        if self._adapter is None:
            self._adapter = factory.get_adapter()
        return self._adapter

    @property
    def default_options(self) -> ExecutionOptions:
        return self._defaults

    # --------------------------------------------------------------------- API
    def write(
        self,
        tuples: Iterable[TupleKey],
        *,
        transactional: bool = True,
        options: OptionsArg = None,
        cancel: threading.Event | None = None,
    ) -> BatchResult:
        return self.write_and_delete(
            tuples, None, transactional=transactional, options=options, cancel=cancel
        )

    def delete(
        self,
        tuples: Iterable[TupleKey],
        *,
        transactional: bool = True,
        options: OptionsArg = None,
        cancel: threading.Event | None = None,
    ) -> BatchResult:
        return self.write_and_delete(
            None, tuples, transactional=transactional, options=options, cancel=cancel
        )

    def write_and_delete(
        self,
        writes: Iterable[TupleKey] | None = None,
        deletes: Iterable[TupleKey] | None = None,
        *,
        transactional: bool = True,
        options: OptionsArg = None,
        cancel: threading.Event | None = None,
    ) -> BatchResult:
        """Apply ``writes`` and ``deletes`` and report how every chunk fared.

        Raises:
            ValidationError: invalid options, or a transactional operation with
                more than ``MAX_TRANSACTIONAL_OPERATIONS`` tuples after
                duplicate filtering.
            ImproperlyConfigured: no adapter was given and none is configured.
        """

        resolved = _coerce_options(options, self._defaults)
        filtered_writes, filtered_deletes = filter_duplicates(writes, deletes)
        operation = BatchOperation(writes=filtered_writes, deletes=filtered_deletes)

        if transactional and operation.total_operations > MAX_TRANSACTIONAL_OPERATIONS:
            raise ValidationError(
                f"Transactional operations are limited to {MAX_TRANSACTIONAL_OPERATIONS} "
                f"tuples; got {operation.total_operations}. Use transactional=False to "
                "split the batch into chunks."
            )

        if operation.is_empty():
            return BatchResult.empty(transactional=transactional)

        # Resolve before dispatch so configuration errors are not retried.
        self.adapter

        if transactional:
            result = self._execute_transactional(operation)
        else:
            result = self._execute_chunked(operation, resolved, cancel)

        logger.info(
            "Batch finished: %d operation(s), %d/%d chunk(s) succeeded (transactional=%s)",
            result.total_operations,
            result.successful_chunks,
            result.total_chunks,
            transactional,
        )
        signals.batch_completed.send(
            sender=self.__class__, result=result, transactional=transactional
        )
        return result

    # -------------------------------------------------------------- strategies
    def _execute_transactional(self, operation: BatchOperation) -> BatchResult:
        aggregator = ResultAggregator(
            total_operations=operation.total_operations,
            total_chunks=1,
            transactional=True,
        )
        outcome = execute_with_retry(operation, self._send, max_retries=0)
        self._record(aggregator, outcome)
        return aggregator.result()

    def _execute_chunked(
        self,
        operation: BatchOperation,
        options: ExecutionOptions,
        cancel: threading.Event | None,
    ) -> BatchResult:
        chunks = operation.chunk(options.max_tuples_per_chunk)
        logger.debug(
            "Split %d operation(s) into %d chunk(s) of at most %d",
            operation.total_operations,
            len(chunks),
            options.max_tuples_per_chunk,
        )
        aggregator = ResultAggregator(
            total_operations=operation.total_operations,
            total_chunks=len(chunks),
        )

        if options.stop_on_first_error:
            self._run_sequential(chunks, aggregator, options, cancel, stop_on_failure=True)
        elif options.max_parallel_requests > 1 and len(chunks) > 1:
            self._run_parallel(chunks, aggregator, options, cancel)
        else:
            self._run_sequential(chunks, aggregator, options, cancel, stop_on_failure=False)

        return aggregator.result()

    def _run_sequential(
        self,
        chunks: List[BatchOperation],
        aggregator: ResultAggregator,
        options: ExecutionOptions,
        cancel: threading.Event | None,
        *,
        stop_on_failure: bool,
    ) -> None:
        for index, chunk in enumerate(chunks):
            if cancel is not None and cancel.is_set():
                logger.debug("Cancelled; %d chunk(s) not dispatched", len(chunks) - index)
                return
            outcome = self._execute_chunk(chunk, options, cancel)
            self._record(aggregator, outcome)
            if stop_on_failure and isinstance(outcome, ChunkFailure):
                logger.debug(
                    "Stopping after failed chunk %d; %d chunk(s) not dispatched",
                    index,
                    len(chunks) - index - 1,
                )
                return

    def _run_parallel(
        self,
        chunks: List[BatchOperation],
        aggregator: ResultAggregator,
        options: ExecutionOptions,
        cancel: threading.Event | None,
    ) -> None:
        # At most max_parallel_requests chunks are submitted at any time, so
        # cancellation leaves the rest undispatched.
        pending = iter(chunks)
        in_flight: Set[Future] = set()

        with ThreadPoolExecutor(
            max_workers=options.max_parallel_requests,
            thread_name_prefix="rebac-batch",
        ) as pool:

            def _fill() -> None:
                while len(in_flight) < options.max_parallel_requests:
                    if cancel is not None and cancel.is_set():
                        return
                    chunk = next(pending, None)
                    if chunk is None:
                        return
                    in_flight.add(pool.submit(self._execute_chunk, chunk, options, cancel))

            _fill()
            while in_flight:
                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    in_flight.discard(future)
                    self._record(aggregator, future.result())
                _fill()

    # ---------------------------------------------------------------- helpers -
    def _execute_chunk(
        self,
        chunk: BatchOperation,
        options: ExecutionOptions,
        cancel: threading.Event | None,
    ) -> ChunkOutcome:
        return execute_with_retry(
            chunk,
            self._send,
            max_retries=options.max_retries,
            retry_delay_seconds=options.retry_delay_seconds,
            sleep=self._sleep,
            cancel=cancel,
        )

    def _send(self, chunk: BatchOperation) -> Any:
        adapter = self.adapter
        return adapter.decode(adapter.send(chunk))

    def _record(self, aggregator: ResultAggregator, outcome: ChunkOutcome) -> None:
        aggregator.record(outcome)
        if isinstance(outcome, ChunkFailure):
            signals.chunk_failed.send(
                sender=self.__class__,
                chunk=outcome.chunk,
                error=outcome.error,
                attempts=outcome.attempts,
            )


def _coerce_options(options: OptionsArg, base: ExecutionOptions) -> ExecutionOptions:
    if options is None:
        return base
    if isinstance(options, ExecutionOptions):
        return options
    if isinstance(options, Mapping):
        return ExecutionOptions.from_mapping(options, base=base)
    raise ValidationError(f"options must be ExecutionOptions or a mapping, got {type(options).__name__}.")


# ---------------------------------------------------------------------------
# Convenience wrappers


def write_tuples(
    tuples: Iterable[TupleKey],
    *,
    transactional: bool = True,
    adapter: RebacAdapter | None = None,
    options: OptionsArg = None,
    cancel: threading.Event | None = None,
) -> BatchResult:
    """Write ``tuples`` through a :class:`BatchEngine` on the configured adapter."""

    return BatchEngine(adapter).write(
        tuples, transactional=transactional, options=options, cancel=cancel
    )


def delete_tuples(
    tuples: Iterable[TupleKey],
    *,
    transactional: bool = True,
    adapter: RebacAdapter | None = None,
    options: OptionsArg = None,
    cancel: threading.Event | None = None,
) -> BatchResult:
    return BatchEngine(adapter).delete(
        tuples, transactional=transactional, options=options, cancel=cancel
    )


def write_and_delete_tuples(
    writes: Iterable[TupleKey] | None = None,
    deletes: Iterable[TupleKey] | None = None,
    *,
    transactional: bool = True,
    adapter: RebacAdapter | None = None,
    options: OptionsArg = None,
    cancel: threading.Event | None = None,
) -> BatchResult:
    return BatchEngine(adapter).write_and_delete(
        writes, deletes, transactional=transactional, options=options, cancel=cancel
    )

"""Per-chunk execution with exponential backoff retries."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_not_exception_type,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
)

from django_rebac_batch.exceptions import BatchCancelled, ChunkTransportError

from .operation import BatchOperation

logger = logging.getLogger(__name__)

SendFn = Callable[[BatchOperation], Any]
SleepFn = Callable[[float], None]


@dataclass(frozen=True)
class ChunkSuccess:
    chunk: BatchOperation
    response: Any
    attempts: int = 1

    ok = True


@dataclass(frozen=True)
class ChunkFailure:
    chunk: BatchOperation
    error: BaseException
    attempts: int = 1

    ok = False


ChunkOutcome = Union[ChunkSuccess, ChunkFailure]


def execute_with_retry(
    chunk: BatchOperation,
    send: SendFn,
    *,
    max_retries: int = 0,
    retry_delay_seconds: float = 1.0,
    sleep: Optional[SleepFn] = None,
    cancel: Optional[threading.Event] = None,
) -> ChunkOutcome:
    """Send ``chunk`` until it succeeds or ``max_retries`` retries are spent.

    Attempt ``n`` (counted from 0) that fails is followed by a pause of
    ``retry_delay_seconds * 2 ** n`` before the same chunk is sent again, so a
    chunk that keeps failing is sent ``max_retries + 1`` times. A zero delay
    never pauses. When ``cancel`` is set the loop stops before the next attempt
    and the chunk fails with :class:`BatchCancelled`, chained to the last
    send error if there was one.
    """

    attempts = 0
    last_error: Optional[Exception] = None

    def _attempt() -> Any:
        nonlocal attempts, last_error
        if cancel is not None and cancel.is_set():
            raise BatchCancelled(f"Cancelled before attempt {attempts + 1}.")
        attempts += 1
        logger.debug("Sending chunk of %d operation(s), attempt %d", chunk.total_operations, attempts)
        try:
            return send(chunk)
        except Exception as exc:
            last_error = exc
            raise

    stop = stop_after_attempt(max_retries + 1)
    if cancel is not None:
        stop = stop | stop_when_event_set(cancel)

    retryer = Retrying(
        stop=stop,
        wait=wait_exponential(multiplier=retry_delay_seconds, exp_base=2, min=0),
        retry=retry_if_not_exception_type(BatchCancelled),
        sleep=_pause(sleep, cancel),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )

    try:
        response = retryer(_attempt)
    except BatchCancelled as exc:
        if last_error is not None:
            exc.__cause__ = last_error
        return ChunkFailure(chunk=chunk, error=exc, attempts=attempts)
    except Exception as exc:
        if cancel is not None and cancel.is_set() and attempts < max_retries + 1:
            cancelled = BatchCancelled(f"Cancelled after {attempts} attempt(s).")
            cancelled.__cause__ = exc
            return ChunkFailure(chunk=chunk, error=cancelled, attempts=attempts)
        logger.warning(
            "Chunk of %d operation(s) failed after %d attempt(s): %s",
            chunk.total_operations,
            attempts,
            exc,
        )
        return ChunkFailure(chunk=chunk, error=_as_transport_error(exc, chunk, attempts), attempts=attempts)

    return ChunkSuccess(chunk=chunk, response=response, attempts=attempts)


def _pause(sleep: Optional[SleepFn], cancel: Optional[threading.Event]) -> SleepFn:
    def _sleep(seconds: float) -> None:
        if seconds <= 0:
            return
        if sleep is not None:
            sleep(seconds)
        elif cancel is not None:
            cancel.wait(seconds)
        else:
            time.sleep(seconds)

    return _sleep


def _as_transport_error(
    exc: Exception, chunk: BatchOperation, attempts: int
) -> ChunkTransportError:
    if isinstance(exc, ChunkTransportError):
        if exc.chunk is None:
            exc.chunk = chunk
        exc.attempts = attempts
        return exc
    error = ChunkTransportError(
        f"Chunk failed after {attempts} attempt(s): {exc}",
        chunk=chunk,
        attempts=attempts,
    )
    error.__cause__ = exc
    return error

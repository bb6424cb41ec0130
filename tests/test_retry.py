import threading

import pytest

from django_rebac_batch.batch.operation import BatchOperation
from django_rebac_batch.batch.retry import ChunkFailure, ChunkSuccess, execute_with_retry
from django_rebac_batch.exceptions import BatchCancelled, ChunkTransportError

from tests.conftest import RecordingAdapter, make_keys


@pytest.fixture
def chunk() -> BatchOperation:
    return BatchOperation(writes=make_keys(3))


@pytest.mark.parametrize("max_retries", [0, 1, 3])
def test_retry_exhaustion_makes_r_plus_one_attempts(chunk, sleeper, max_retries) -> None:
    adapter = RecordingAdapter(always_fail=True)

    outcome = execute_with_retry(
        chunk, adapter.send, max_retries=max_retries, retry_delay_seconds=0.5, sleep=sleeper
    )

    assert isinstance(outcome, ChunkFailure)
    assert not outcome.ok
    assert outcome.attempts == max_retries + 1
    assert len(adapter.calls) == max_retries + 1
    assert all(call is chunk for call in adapter.calls)


def test_success_returns_immediately(chunk, sleeper) -> None:
    adapter = RecordingAdapter()

    outcome = execute_with_retry(chunk, adapter.send, max_retries=5, sleep=sleeper)

    assert isinstance(outcome, ChunkSuccess)
    assert outcome.response == {"token": "token-1"}
    assert outcome.attempts == 1
    assert sleeper.calls == []


def test_recovers_after_transient_failures(chunk, sleeper) -> None:
    adapter = RecordingAdapter(fail_on={1, 2})

    outcome = execute_with_retry(
        chunk, adapter.send, max_retries=2, retry_delay_seconds=0.1, sleep=sleeper
    )

    assert isinstance(outcome, ChunkSuccess)
    assert outcome.attempts == 3


def test_backoff_doubles_each_attempt(chunk, sleeper) -> None:
    adapter = RecordingAdapter(always_fail=True)

    execute_with_retry(chunk, adapter.send, max_retries=3, retry_delay_seconds=0.25, sleep=sleeper)

    assert sleeper.calls == pytest.approx([0.25, 0.5, 1.0])


def test_zero_delay_never_sleeps(chunk, sleeper) -> None:
    adapter = RecordingAdapter(always_fail=True)

    execute_with_retry(chunk, adapter.send, max_retries=2, retry_delay_seconds=0, sleep=sleeper)

    assert len(adapter.calls) == 3
    assert sleeper.calls == []


def test_foreign_errors_are_wrapped(chunk, sleeper) -> None:
    def send(_):
        raise ConnectionResetError("peer went away")

    outcome = execute_with_retry(chunk, send, max_retries=1, retry_delay_seconds=0, sleep=sleeper)

    assert isinstance(outcome.error, ChunkTransportError)
    assert isinstance(outcome.error.__cause__, ConnectionResetError)
    assert outcome.error.chunk is chunk
    assert outcome.error.attempts == 2


def test_transport_errors_are_kept(chunk, sleeper) -> None:
    adapter = RecordingAdapter(always_fail=True)

    outcome = execute_with_retry(chunk, adapter.send, max_retries=0, sleep=sleeper)

    assert type(outcome.error) is ChunkTransportError
    assert str(outcome.error) == "boom on call 1"
    assert outcome.error.chunk is chunk


def test_cancel_before_first_attempt(chunk, sleeper) -> None:
    adapter = RecordingAdapter()
    cancel = threading.Event()
    cancel.set()

    outcome = execute_with_retry(chunk, adapter.send, max_retries=3, sleep=sleeper, cancel=cancel)

    assert isinstance(outcome, ChunkFailure)
    assert isinstance(outcome.error, BatchCancelled)
    assert adapter.calls == []


def test_cancel_during_backoff_stops_retrying(chunk) -> None:
    adapter = RecordingAdapter(always_fail=True)
    cancel = threading.Event()

    def sleep_and_cancel(_seconds: float) -> None:
        cancel.set()

    outcome = execute_with_retry(
        chunk,
        adapter.send,
        max_retries=5,
        retry_delay_seconds=1.0,
        sleep=sleep_and_cancel,
        cancel=cancel,
    )

    assert isinstance(outcome.error, BatchCancelled)
    assert len(adapter.calls) == 1
    assert isinstance(outcome.error.__cause__, ChunkTransportError)
    assert "boom on call 1" in str(outcome.error.__cause__)

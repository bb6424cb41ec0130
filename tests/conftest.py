import os
import subprocess
import threading
import time
from collections.abc import Iterator
from typing import Any, Callable

import grpc
import pytest

from django_rebac_batch.adapters import reset_adapter, set_adapter
from django_rebac_batch.adapters.base import WriteResponse
from django_rebac_batch.adapters.spicedb import SpiceDBAdapter
from django_rebac_batch.batch.operation import BatchOperation
from django_rebac_batch.exceptions import ChunkTransportError
from django_rebac_batch.types.tuples import TupleKey

SPICEDB_ENDPOINT = os.getenv("SPICEDB_ENDPOINT", "localhost:50051")
SPICEDB_TOKEN = os.getenv("SPICEDB_PRESHARED_KEY", "devkey")

_STACK_READY = False
_STACK_ERROR: str | None = None


def _ensure_stack() -> None:
    global _STACK_READY, _STACK_ERROR
    if _STACK_READY:
        return
    if _STACK_ERROR:
        raise RuntimeError(_STACK_ERROR)
    try:
        subprocess.run(
            ["docker", "compose", "up", "-d", "spicedb"],
            check=True,
            capture_output=True,
        )
    except (OSError, subprocess.CalledProcessError) as exc:  # pragma: no cover - environment specific
        stderr = getattr(exc, "stderr", None)
        _STACK_ERROR = stderr.decode() if stderr else str(exc)
        raise RuntimeError(_STACK_ERROR) from exc

    _wait_for_grpc(SPICEDB_ENDPOINT)
    _STACK_READY = True


def _wait_for_grpc(endpoint: str, timeout: float = 30.0) -> None:
    channel = grpc.insecure_channel(endpoint)
    deadline = time.time() + timeout
    while time.time() < deadline:
        try:
            grpc.channel_ready_future(channel).result(timeout=1.0)
            channel.close()
            return
        except grpc.FutureTimeoutError:
            time.sleep(0.5)
    channel.close()
    raise RuntimeError(f"SpiceDB at {endpoint} did not become ready in time.")


@pytest.fixture
def spicedb_adapter() -> Iterator[SpiceDBAdapter]:
    try:
        _ensure_stack()
    except RuntimeError as exc:
        pytest.skip(f"SpiceDB stack unavailable: {exc}")

    adapter = SpiceDBAdapter(endpoint=SPICEDB_ENDPOINT, token=SPICEDB_TOKEN, insecure=True)
    try:
        yield adapter
    finally:
        adapter.close()


class RecordingAdapter:
    """Adapter double that records calls and fails on demand.

    ``fail_on`` maps a 1-based call number to ``True`` for a failure;
    ``fail_chunk`` fails every send whose operation matches the predicate.
    ``delay`` keeps each send in flight for a while so concurrency can be
    observed through ``max_in_flight``.
    """

    def __init__(
        self,
        *,
        fail_on: set[int] | None = None,
        fail_chunk: Callable[[BatchOperation], bool] | None = None,
        always_fail: bool = False,
        delay: float = 0.0,
    ) -> None:
        self.calls: list[BatchOperation] = []
        self.fail_on = set(fail_on or ())
        self.fail_chunk = fail_chunk
        self.always_fail = always_fail
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def send(self, operation: BatchOperation) -> Any:
        with self._lock:
            self.calls.append(operation)
            call_number = len(self.calls)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if (
                self.always_fail
                or call_number in self.fail_on
                or (self.fail_chunk is not None and self.fail_chunk(operation))
            ):
                raise ChunkTransportError(f"boom on call {call_number}")
            return {"token": f"token-{call_number}"}
        finally:
            with self._lock:
                self.in_flight -= 1

    def decode(self, raw: Any) -> WriteResponse:
        return WriteResponse(token=raw["token"])


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_keys(count: int, *, prefix: str = "doc", relation: str = "viewer") -> list[TupleKey]:
    return [
        TupleKey(user=f"user:{i}", relation=relation, object=f"{prefix}:{i}")
        for i in range(count)
    ]


@pytest.fixture
def recording_adapter() -> Iterator[RecordingAdapter]:
    adapter = RecordingAdapter()
    set_adapter(adapter)
    yield adapter
    reset_adapter()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()

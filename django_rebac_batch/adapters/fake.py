"""In-memory adapter used for tests."""

from __future__ import annotations

import itertools
import threading
from typing import Any, Callable, List, Set, Tuple

from django_rebac_batch.batch.operation import BatchOperation
from django_rebac_batch.exceptions import ChunkTransportError
from django_rebac_batch.types.tuples import TupleKey

from .base import RebacAdapter, WriteResponse


class FakeAdapter(RebacAdapter):
    """Recording adapter that mimics an authorization store for tests.

    ``fail_when`` decides per call whether the operation fails; it receives the
    operation and the 1-based call number.
    """

    def __init__(
        self,
        *,
        fail_when: Callable[[BatchOperation, int], bool] | None = None,
    ) -> None:
        self.sent: List[BatchOperation] = []
        self.written_tuples: List[TupleKey] = []
        self.deleted_tuples: List[TupleKey] = []
        self._store: Set[Tuple[str, str, str]] = set()
        self._fail_when = fail_when
        self._lock = threading.Lock()
        self._tokens = itertools.count(1)

    def send(self, operation: BatchOperation) -> Any:
        with self._lock:
            self.sent.append(operation)
            call_number = len(self.sent)
            if self._fail_when is not None and self._fail_when(operation, call_number):
                raise ChunkTransportError(f"Fake failure on call {call_number}", chunk=operation)

            for key in operation.writes or ():
                self._store.add(key.identity)
                self.written_tuples.append(key)
            for key in operation.deletes or ():
                self._store.discard(key.identity)
                self.deleted_tuples.append(key)
            return {"token": f"fake-token-{next(self._tokens)}"}

    def decode(self, raw: Any) -> WriteResponse:
        return WriteResponse(token=raw["token"])

    def contains(self, key: TupleKey) -> bool:
        return key.identity in self._store

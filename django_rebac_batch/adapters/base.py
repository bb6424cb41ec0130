"""Base adapter definitions for django-rebac-batch."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from django_rebac_batch.batch.operation import BatchOperation


@dataclass(frozen=True)
class WriteResponse:
    """Typed result of one successful write/delete call."""

    token: str | None = None


class RebacAdapter(Protocol):
    """Protocol describing the transport used by the batch engine."""

    def send(self, operation: BatchOperation) -> Any:
        """Apply ``operation`` atomically and return the raw response.

        Transport failures should be raised as ``ChunkTransportError``.
        """

    def decode(self, raw: Any) -> WriteResponse:
        """Turn a raw response into a :class:`WriteResponse` or raise."""

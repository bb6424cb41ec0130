"""Per-call execution options for batch tuple mutations."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Mapping

from django_rebac_batch.exceptions import ValidationError

from .operation import MAX_TUPLES_PER_REQUEST, validate_chunk_size


@dataclass(frozen=True)
class ExecutionOptions:
    """How a non-transactional batch is split, retried and dispatched."""

    max_parallel_requests: int = 1
    max_tuples_per_chunk: int = MAX_TUPLES_PER_REQUEST
    max_retries: int = 0
    retry_delay_seconds: float = 1.0
    stop_on_first_error: bool = False

    def __post_init__(self) -> None:
        if not _is_int(self.max_parallel_requests) or self.max_parallel_requests < 1:
            raise ValidationError("max_parallel_requests must be an integer >= 1.")
        validate_chunk_size(self.max_tuples_per_chunk)
        if not _is_int(self.max_retries) or self.max_retries < 0:
            raise ValidationError("max_retries must be an integer >= 0.")
        if (
            isinstance(self.retry_delay_seconds, bool)
            or not isinstance(self.retry_delay_seconds, (int, float))
            or self.retry_delay_seconds < 0
        ):
            raise ValidationError("retry_delay_seconds must be a number >= 0.")
        if not isinstance(self.stop_on_first_error, bool):
            raise ValidationError("stop_on_first_error must be a boolean.")
        object.__setattr__(self, "retry_delay_seconds", float(self.retry_delay_seconds))

    @classmethod
    def from_mapping(
        cls,
        values: Mapping[str, Any] | None,
        *,
        base: "ExecutionOptions | None" = None,
    ) -> "ExecutionOptions":
        """Build options from ``values``, layered over ``base`` when given."""

        values = dict(values or {})
        known = {field.name for field in dataclasses.fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValidationError(f"Unknown execution option(s): {', '.join(unknown)}.")
        if base is None:
            return cls(**values)
        return dataclasses.replace(base, **values)

    def replace(self, **changes: Any) -> "ExecutionOptions":
        return dataclasses.replace(self, **changes)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)

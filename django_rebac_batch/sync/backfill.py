"""Backfill helpers for streaming large tuple sets through the engine."""

from __future__ import annotations

import logging
from typing import Iterable, List

from django_rebac_batch.batch.engine import BatchEngine, OptionsArg
from django_rebac_batch.batch.result import BatchResult
from django_rebac_batch.exceptions import ValidationError
from django_rebac_batch.types.tuples import TupleKey

logger = logging.getLogger(__name__)


def backfill_tuples(
    tuples: Iterable[TupleKey],
    *,
    engine: BatchEngine | None = None,
    batch_size: int = 1000,
    options: OptionsArg = None,
) -> BatchResult:
    """Write ``tuples`` non-transactionally, ``batch_size`` at a time.

    The iterable is consumed lazily so querysets or generators of any size can
    be backfilled. Results of every window are merged into one ``BatchResult``.
    """

    if batch_size < 1:
        raise ValidationError("batch_size must be a positive integer.")

    active = engine or BatchEngine()
    results: List[BatchResult] = []
    buffer: List[TupleKey] = []

    for key in tuples:
        buffer.append(key)
        if len(buffer) >= batch_size:
            results.append(active.write(buffer, transactional=False, options=options))
            buffer = []

    if buffer:
        results.append(active.write(buffer, transactional=False, options=options))

    merged = BatchResult.merge(results)
    logger.info(
        "Backfill wrote %d operation(s) in %d window(s); %d chunk(s) failed",
        merged.total_operations,
        len(results),
        merged.failed_chunks,
    )
    return merged

"""Signals emitted while batches execute.

``chunk_failed`` is sent with ``chunk``, ``error`` and ``attempts`` once a chunk
has exhausted its retries. ``batch_completed`` is sent with ``result`` and
``transactional`` when a write/delete call finishes.
"""

from django.dispatch import Signal

chunk_failed = Signal()
batch_completed = Signal()

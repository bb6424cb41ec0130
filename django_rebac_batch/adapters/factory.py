"""Adapter factory and override hooks."""

from __future__ import annotations

import threading
from typing import Any, Mapping, Optional

from django.core.exceptions import ImproperlyConfigured

import django_rebac_batch.conf as conf

from .base import RebacAdapter

_adapter: Optional[RebacAdapter] = None
_adapter_lock = threading.Lock()


def get_adapter() -> RebacAdapter:
    global _adapter
    if _adapter is not None:
        return _adapter

    with _adapter_lock:
        if _adapter is None:
            _adapter = build_adapter(conf.get_adapter_settings())
    return _adapter


def build_adapter(config: Mapping[str, Any]) -> RebacAdapter:
    backend = config.get("backend", "spicedb")

    if backend == "spicedb":
        endpoint = config.get("endpoint")
        token = config.get("token")
        if not endpoint or not token:
            raise ImproperlyConfigured(
                "REBAC_BATCH spicedb adapter configuration requires 'endpoint' and 'token'."
            )
        from .spicedb import SpiceDBAdapter

        return SpiceDBAdapter(
            endpoint=endpoint,
            token=token,
            insecure=config.get("insecure", True),
            grpc_options=tuple(config.get("grpc_options", ())),
            timeout=config.get("timeout"),
        )

    if backend == "http":
        api_url = config.get("api_url")
        store_id = config.get("store_id")
        if not api_url or not store_id:
            raise ImproperlyConfigured(
                "REBAC_BATCH http adapter configuration requires 'api_url' and 'store_id'."
            )
        from .http import HttpAdapter

        return HttpAdapter(
            api_url=api_url,
            store_id=store_id,
            authorization_model_id=config.get("authorization_model_id"),
            token=config.get("token"),
            timeout=config.get("timeout", 10.0),
        )

    raise ImproperlyConfigured(f"Unknown REBAC_BATCH adapter backend {backend!r}.")


def set_adapter(adapter: RebacAdapter | None) -> None:
    global _adapter
    _adapter = adapter


def reset_adapter() -> None:
    global _adapter
    adapter, _adapter = _adapter, None
    close = getattr(adapter, "close", None)
    if callable(close):
        close()

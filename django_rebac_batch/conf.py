"""Configuration helpers for django-rebac-batch."""

from __future__ import annotations

from typing import Any, Mapping

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .batch.options import ExecutionOptions
from .exceptions import ValidationError


def get_batch_settings() -> Mapping[str, Any]:
    """Return ``settings.REBAC_BATCH``, or an empty mapping when undefined."""

    value = getattr(settings, "REBAC_BATCH", None)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ImproperlyConfigured("settings.REBAC_BATCH must be a mapping.")
    return value


def get_default_options() -> ExecutionOptions:
    """
    Return the project-wide :class:`ExecutionOptions`.

    Configure via ``REBAC_BATCH['options'] = {'max_retries': 2, ...}``; missing
    keys keep their built-in defaults.
    """

    options = get_batch_settings().get("options") or {}
    if not isinstance(options, Mapping):
        raise ImproperlyConfigured("settings.REBAC_BATCH['options'] must be a mapping.")
    try:
        return ExecutionOptions.from_mapping(options)
    except ValidationError as exc:
        raise ImproperlyConfigured(f"Invalid REBAC_BATCH['options']: {exc}") from exc


def get_adapter_settings() -> Mapping[str, Any]:
    config = get_batch_settings().get("adapter")
    if not isinstance(config, Mapping):
        raise ImproperlyConfigured("settings.REBAC_BATCH['adapter'] must be configured.")
    return config

"""Adapter interfaces for sending tuple mutations to an authorization service."""

from .base import RebacAdapter, WriteResponse
from .factory import build_adapter, get_adapter, reset_adapter, set_adapter

__all__ = [
    "RebacAdapter",
    "WriteResponse",
    "build_adapter",
    "get_adapter",
    "set_adapter",
    "reset_adapter",
]

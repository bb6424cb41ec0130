"""HTTP adapter for OpenFGA-style ``/stores/{id}/write`` endpoints."""

from __future__ import annotations

from typing import Any, Dict

import httpx

from django_rebac_batch.batch.operation import BatchOperation
from django_rebac_batch.exceptions import ChunkTransportError, ResponseDecodeError

from .base import RebacAdapter, WriteResponse


class HttpAdapter(RebacAdapter):
    """Adapter that posts tuple writes and deletes as JSON over HTTP.

    Args:
        api_url: Base URL of the authorization service, e.g. ``http://localhost:8080``
        store_id: Store the tuples belong to
        authorization_model_id: Optional model id sent with every write
        token: Optional bearer token
        timeout: Request timeout in seconds
        client: Pre-built ``httpx.Client``; mainly for tests
    """

    def __init__(
        self,
        *,
        api_url: str,
        store_id: str,
        authorization_model_id: str | None = None,
        token: str | None = None,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=api_url, timeout=timeout)
        self._client.headers.update(headers)
        self._path = f"/stores/{store_id}/write"
        self._authorization_model_id = authorization_model_id

    def build_payload(self, operation: BatchOperation) -> Dict[str, Any]:
        payload = operation.to_dict()
        if self._authorization_model_id:
            payload["authorization_model_id"] = self._authorization_model_id
        return payload

    def send(self, operation: BatchOperation) -> httpx.Response:
        try:
            return self._client.post(self._path, json=self.build_payload(operation))
        except httpx.HTTPError as exc:
            raise ChunkTransportError(
                f"POST {self._path} failed: {exc}",
                chunk=operation,
            ) from exc

    def decode(self, raw: httpx.Response) -> WriteResponse:
        if raw.is_success:
            return WriteResponse()

        code = None
        message = raw.text
        try:
            body = raw.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            code = body.get("code")
            message = body.get("message") or message

        raise ResponseDecodeError(
            f"POST {self._path} returned {raw.status_code}: {message}",
            status_code=raw.status_code,
            code=code,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

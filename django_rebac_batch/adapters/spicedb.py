"""SpiceDB gRPC adapter implementation."""

from __future__ import annotations

import grpc
from typing import Any, Sequence

from authzed.api.v1 import (
    core_pb2 as core_pb,
    permission_service_pb2 as perm_pb,
    permission_service_pb2_grpc as perm_grpc,
)

from django_rebac_batch.batch.operation import BatchOperation
from django_rebac_batch.exceptions import ChunkTransportError, ResponseDecodeError
from django_rebac_batch.types.tuples import TupleKey

from .base import RebacAdapter, WriteResponse


class SpiceDBAdapter(RebacAdapter):
    """Adapter that talks to SpiceDB over gRPC."""

    def __init__(
        self,
        *,
        endpoint: str,
        token: str,
        insecure: bool = True,
        grpc_options: Sequence[tuple[str, str]] = (),
        timeout: float | None = None,
    ) -> None:
        if insecure:
            self._channel = grpc.insecure_channel(endpoint, options=grpc_options)
        else:
            self._channel = grpc.secure_channel(
                endpoint,
                grpc.ssl_channel_credentials(),
                options=grpc_options,
            )

        self._endpoint = endpoint
        self._timeout = timeout
        self._metadata = (("authorization", f"Bearer {token}"),)
        self._permission_client = perm_grpc.PermissionsServiceStub(self._channel)

    # ---------------------------------------------------------------- tuples --
    def send(self, operation: BatchOperation) -> Any:
        updates = [
            _build_update(key, core_pb.RelationshipUpdate.Operation.OPERATION_TOUCH)
            for key in operation.writes or ()
        ]
        updates.extend(
            _build_update(key, core_pb.RelationshipUpdate.Operation.OPERATION_DELETE)
            for key in operation.deletes or ()
        )
        try:
            return self._permission_client.WriteRelationships(
                perm_pb.WriteRelationshipsRequest(updates=updates),
                metadata=self._metadata,
                timeout=self._timeout,
            )
        except grpc.RpcError as exc:
            raise ChunkTransportError(
                f"WriteRelationships to {self._endpoint} failed: {_rpc_details(exc)}",
                chunk=operation,
            ) from exc

    def decode(self, raw: Any) -> WriteResponse:
        written_at = getattr(raw, "written_at", None)
        if written_at is None:
            raise ResponseDecodeError("WriteRelationships response carried no ZedToken.")
        return WriteResponse(token=written_at.token or None)

    # ---------------------------------------------------------------- cleanup -
    def close(self) -> None:
        self._channel.close()


def _build_update(key: TupleKey, operation: int) -> core_pb.RelationshipUpdate:
    resource_type, resource_id = _parse_object(key.object)
    relationship = core_pb.Relationship(
        resource=_build_object(resource_type, resource_id),
        relation=key.relation,
        subject=_build_subject(key.user),
    )

    if key.condition is not None and operation != core_pb.RelationshipUpdate.Operation.OPERATION_DELETE:
        caveat = core_pb.ContextualizedCaveat(caveat_name=key.condition.name)
        if key.condition.context:
            caveat.context.update(dict(key.condition.context))  # type: ignore[arg-type]
        relationship.optional_caveat.CopyFrom(caveat)

    return core_pb.RelationshipUpdate(operation=operation, relationship=relationship)


def _parse_object(value: str) -> tuple[str, str]:
    try:
        object_type, object_id = value.split(":", 1)
    except ValueError as exc:
        raise ValueError(f"Invalid object reference {value!r}") from exc
    return object_type, object_id


def _parse_subject(value: str) -> tuple[str, str, str]:
    if "#" in value:
        object_part, relation = value.split("#", 1)
    else:
        object_part, relation = value, ""
    object_type, object_id = _parse_object(object_part)
    return object_type, object_id, relation


def _build_object(object_type: str, object_id: str) -> core_pb.ObjectReference:
    return core_pb.ObjectReference(object_type=object_type, object_id=object_id)


def _build_subject(value: str) -> core_pb.SubjectReference:
    subject_type, subject_id, relation = _parse_subject(value)
    subject_ref = core_pb.SubjectReference(object=_build_object(subject_type, subject_id))
    if relation:
        subject_ref.optional_relation = relation
    return subject_ref


def _rpc_details(exc: grpc.RpcError) -> str:
    code = getattr(exc, "code", None)
    details = getattr(exc, "details", None)
    if callable(code) and callable(details):
        return f"{code().name}: {details()}"
    return str(exc)

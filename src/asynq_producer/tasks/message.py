from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError

from asynq_producer.errors import EncodingError

from .options import INT64_MAX, TaskOptions

_F = descriptor_pb2.FieldDescriptorProto

# asynq TaskMessage (asynq.proto). Field numbers are the wire contract with consumers.
_TASK_MESSAGE_FIELDS = (
    ("type", 1, _F.TYPE_STRING),
    ("payload", 2, _F.TYPE_BYTES),
    ("id", 3, _F.TYPE_STRING),
    ("queue", 4, _F.TYPE_STRING),
    ("retry", 5, _F.TYPE_INT32),
    ("retried", 6, _F.TYPE_INT32),
    ("error_msg", 7, _F.TYPE_STRING),
    ("timeout", 8, _F.TYPE_INT64),
    ("deadline", 9, _F.TYPE_INT64),
    ("unique_key", 10, _F.TYPE_STRING),
    ("last_failed_at", 11, _F.TYPE_INT64),
    ("group_key", 14, _F.TYPE_STRING),
    ("retention", 15, _F.TYPE_INT64),
    ("completed_at", 16, _F.TYPE_INT64),
)


@lru_cache(maxsize=1)
def _proto_class() -> type:
    fdp = descriptor_pb2.FileDescriptorProto(
        name="asynq_producer/asynq.proto",
        package="asynq",
        syntax="proto3",
    )
    msg = fdp.message_type.add(name="TaskMessage")
    for name, number, ftype in _TASK_MESSAGE_FIELDS:
        msg.field.add(name=name, number=number, type=ftype, label=_F.LABEL_OPTIONAL)
    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(fdp.SerializeToString())
    return message_factory.GetMessageClass(pool.FindMessageTypeByName("asynq.TaskMessage"))


def new_task_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True, slots=True)
class TaskMessage:
    type: str
    payload: bytes
    id: str
    queue: str
    retry: int
    retried: int
    timeout: int
    deadline: int  # absolute epoch seconds
    retention: int
    unique_key: str
    group_key: str


def encode_payload(payload: Any) -> bytes:
    """
    JSON-encode a payload without escaping non-ASCII or "/".

    Raw bytes are taken as already encoded.
    """
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)
    try:
        text = json.dumps(payload, ensure_ascii=False, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError, RecursionError) as ex:
        raise EncodingError(f"payload is not JSON-encodable: {ex}") from ex
    return text.encode("utf-8")


def build_message(
    *,
    type: str,
    payload: bytes,
    task_id: str,
    queue: str,
    options: TaskOptions,
    process_at: int,
) -> TaskMessage:
    """`deadline` becomes absolute: scheduled start plus the resolved deadline offset."""
    return TaskMessage(
        type=type,
        payload=payload,
        id=task_id,
        queue=queue,
        retry=options.retry,
        retried=0,
        timeout=options.timeout,
        deadline=min(INT64_MAX, int(process_at) + options.deadline),
        retention=options.retention,
        unique_key=options.unique_key,
        group_key=options.group_key,
    )


def serialize_message(msg: TaskMessage) -> bytes:
    try:
        pb = _proto_class()(
            type=msg.type,
            payload=msg.payload,
            id=msg.id,
            queue=msg.queue,
            retry=msg.retry,
            retried=msg.retried,
            timeout=msg.timeout,
            deadline=msg.deadline,
            retention=msg.retention,
            unique_key=msg.unique_key,
            group_key=msg.group_key,
        )
        return pb.SerializeToString(deterministic=True)
    except (TypeError, ValueError) as ex:
        raise EncodingError(f"task message cannot be encoded: {ex}") from ex


def parse_message(data: bytes) -> TaskMessage:
    pb = _proto_class()()
    try:
        pb.ParseFromString(bytes(data))
    except DecodeError as ex:
        raise EncodingError(f"task message cannot be decoded: {ex}") from ex
    return TaskMessage(
        type=pb.type,
        payload=bytes(pb.payload),
        id=pb.id,
        queue=pb.queue,
        retry=int(pb.retry),
        retried=int(pb.retried),
        timeout=int(pb.timeout),
        deadline=int(pb.deadline),
        retention=int(pb.retention),
        unique_key=pb.unique_key,
        group_key=pb.group_key,
    )

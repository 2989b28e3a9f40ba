"""Conversions between Raft messages and what goes on the wire."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence


@dataclass(frozen=True)
class MessageBase:
    """The header every Raft message carries."""

    term: int
    src: int
    dest: int
    type: int


def from_base_request(base: Any) -> MessageBase:
    """Header from any object with ``term``, ``src``, ``dst`` and ``type`` attributes."""
    return MessageBase(term=base.term, src=base.src, dest=base.dst, type=base.type)


def serialize_blobs(blobs: Iterable[bytes]) -> tuple[bytes, ...]:
    """One wire slice per blob, in order."""
    return tuple(bytes(blob) for blob in blobs)


def deserialize_blob(chunks: Sequence[bytes]) -> bytes:
    """The payload of a buffer made of exactly one slice."""
    if len(chunks) != 1:
        raise ValueError("Buffer isn't a single uncompressed slice.")
    return bytes(chunks[0])


def generic_method_name(request_name: str, group_id: str) -> str:
    """Name under which a request handler for one group is registered."""
    return f"{request_name}|{group_id}"
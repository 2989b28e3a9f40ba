"""An in-memory Raft log store keyed by log index."""

from __future__ import annotations

import struct
import threading
from dataclasses import dataclass, replace

APP_LOG = 1

_TERM_AND_TYPE = struct.Struct("<QB")
_INT32 = struct.Struct("<i")


@dataclass
class LogEntry:
    """A single Raft log entry: the term it was written in and its payload."""

    term: int
    data: bytes = b""
    val_type: int = APP_LOG
    timestamp: int = 0

    def serialize(self) -> bytes:
        """Encode as little-endian term, one byte of value type, then the payload."""
        return _TERM_AND_TYPE.pack(self.term, self.val_type) + bytes(self.data)

    @classmethod
    def deserialize(cls, data: bytes) -> "LogEntry":
        """Decode an entry produced by :meth:`serialize`."""
        data = bytes(data)
        if len(data) < _TERM_AND_TYPE.size:
            raise ValueError(f"log entry needs at least {_TERM_AND_TYPE.size} bytes, got {len(data)}")
        term, val_type = _TERM_AND_TYPE.unpack_from(data)
        return cls(term=term, data=data[_TERM_AND_TYPE.size:], val_type=val_type)

    def clone(self) -> "LogEntry":
        """Return an independent copy of this entry."""
        return replace(self, data=bytes(self.data))


class InMemoryLogStore:
    """Thread-safe log store holding every entry in a dictionary.

    Index 0 always holds a dummy entry that stands in for missing indexes.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._logs: dict[int, LogEntry] = {0: LogEntry(term=0, data=bytes(8))}
        self._start_idx = 1
        self._closed = False

    def _next_slot_locked(self) -> int:
        # The dummy entry is not counted.
        return self._start_idx + len(self._logs) - 1

    def _find_or_dummy(self, index: int) -> LogEntry:
        entry = self._logs.get(index)
        return entry if entry is not None else self._logs[0]

    @property
    def closed(self) -> bool:
        """Whether :meth:`close` has been called."""
        return self._closed

    def next_slot(self) -> int:
        """Index the next appended entry will receive."""
        with self._lock:
            return self._next_slot_locked()

    def start_index(self) -> int:
        """Index of the first entry kept in the store."""
        return self._start_idx

    def last_entry(self) -> LogEntry:
        """Copy of the last entry, or of the dummy entry if there is none."""
        with self._lock:
            return self._find_or_dummy(self._next_slot_locked() - 1).clone()

    def append(self, entry: LogEntry) -> int:
        """Store a copy of ``entry`` at the next slot and return its index."""
        clone = entry.clone()
        with self._lock:
            idx = self._next_slot_locked()
            self._logs[idx] = clone
            return idx

    def write_at(self, index: int, entry: LogEntry) -> None:
        """Drop every entry at ``index`` or above, then store ``entry`` there."""
        clone = entry.clone()
        with self._lock:
            for key in [k for k in self._logs if k >= index]:
                del self._logs[key]
            self._logs[index] = clone

    def _stored(self, index: int) -> LogEntry:
        with self._lock:
            entry = self._logs.get(index)
        if entry is None:
            raise IndexError(f"no log entry at index {index}")
        return entry

    def entries(self, start: int, end: int) -> list[LogEntry]:
        """Copies of the entries in ``[start, end)``."""
        return [self._stored(ii).clone() for ii in range(start, end)]

    def entries_ext(self, start: int, end: int, batch_size_hint: int = 0) -> list[LogEntry]:
        """Copies of entries in ``[start, end)``, stopping once ``batch_size_hint`` bytes are gathered.

        A hint of zero means no limit; a negative hint returns nothing.
        """
        result: list[LogEntry] = []
        if batch_size_hint < 0:
            return result
        accum_size = 0
        for ii in range(start, end):
            src = self._stored(ii)
            result.append(src.clone())
            accum_size += len(src.data)
            if batch_size_hint and accum_size >= batch_size_hint:
                break
        return result

    def entry_at(self, index: int) -> LogEntry:
        """Copy of the entry at ``index``, or of the dummy entry if it is missing."""
        with self._lock:
            return self._find_or_dummy(index).clone()

    def term_at(self, index: int) -> int:
        """Term of the entry at ``index``, or of the dummy entry if it is missing."""
        with self._lock:
            return self._find_or_dummy(index).term

    def pack(self, index: int, count: int) -> bytes:
        """Serialize ``count`` entries starting at ``index`` into one buffer."""
        parts = [_INT32.pack(count)]
        for ii in range(index, index + count):
            raw = self._stored(ii).serialize()
            parts.append(_INT32.pack(len(raw)))
            parts.append(raw)
        return b"".join(parts)

    def apply_pack(self, index: int, data: bytes) -> None:
        """Load entries produced by :meth:`pack`, placing the first at ``index``."""
        view = memoryview(bytes(data))
        try:
            (num_logs,) = _INT32.unpack_from(view, 0)
            offset = _INT32.size
            decoded = []
            for ii in range(num_logs):
                (buf_size,) = _INT32.unpack_from(view, offset)
                offset += _INT32.size
                if buf_size < 0 or offset + buf_size > len(view):
                    raise ValueError("log pack is truncated")
                decoded.append((index + ii, LogEntry.deserialize(view[offset:offset + buf_size])))
                offset += buf_size
        except struct.error as exc:
            raise ValueError("log pack is truncated") from exc

        with self._lock:
            for cur_idx, entry in decoded:
                self._logs[cur_idx] = entry
            real_keys = [k for k in self._logs if k > 0]
            self._start_idx = min(real_keys) if real_keys else 1

    def compact(self, last_log_index: int) -> bool:
        """Drop entries up to and including ``last_log_index``."""
        with self._lock:
            for key in [k for k in self._logs if self._start_idx <= k <= last_log_index]:
                del self._logs[key]
            # The start moves forward even when nothing was erased.
            if self._start_idx <= last_log_index:
                self._start_idx = last_log_index + 1
            return True

    def flush(self) -> bool:
        """Nothing to persist; always succeeds."""
        return True

    def close(self) -> None:
        """Mark the store as closed; its entries stay readable."""
        with self._lock:
            self._closed = True

    def last_durable_index(self) -> int:
        """Every stored entry counts as durable."""
        return self.next_slot() - 1
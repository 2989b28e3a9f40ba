"""A file-backed Raft state manager with an echoing state machine."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from raftmesg.logstore import InMemoryLogStore

_log = logging.getLogger(__name__)

UUIDS = (
    "f0d3ec17-9075-429b-afa7-68d7542f7403",
    "aa2018b3-2556-4d8e-a575-0a90d360b0bb",
    "d22e63a2-4993-4f0e-b19d-bfa5ace64e87",
    "d68a6947-b976-4e78-9cf0-8cc6520ea266",
    "2da54edb-8e1d-4fc6-9ac3-4eade3aac0b4",
)

BASE_PORT = 9000


def lookup_endpoint(client: str) -> str:
    """Map a known server uuid to its local address; return anything else unchanged."""
    for offset, uuid in enumerate(UUIDS):
        if uuid == client:
            return f"127.0.0.1:{BASE_PORT + offset}"
    return client


@dataclass
class ServerConfig:
    """One member of a Raft cluster."""

    id: int
    endpoint: str
    dc_id: int = 0
    aux: str = ""
    learner: bool = False
    priority: int = 1

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form of this member."""
        return {
            "id": self.id,
            "dc_id": self.dc_id,
            "endpoint": self.endpoint,
            "aux": self.aux,
            "learner": self.learner,
            "priority": self.priority,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServerConfig":
        """Build a member from the form written by :meth:`to_dict`."""
        return cls(
            id=int(data["id"]),
            dc_id=int(data["dc_id"]),
            endpoint=data["endpoint"],
            aux=data["aux"],
            learner=bool(data["learner"]),
            priority=int(data["priority"]),
        )


@dataclass
class ClusterConfig:
    """Membership of a Raft cluster at a given log index."""

    log_idx: int = 0
    prev_log_idx: int = 0
    eventual_consistency: bool = False
    user_ctx: str = ""
    servers: list[ServerConfig] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form of this configuration."""
        return {
            "log_idx": self.log_idx,
            "prev_log_idx": self.prev_log_idx,
            "eventual_consistency": self.eventual_consistency,
            "user_ctx": self.user_ctx,
            "servers": [server.to_dict() for server in self.servers],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClusterConfig":
        """Build a configuration from the form written by :meth:`to_dict`."""
        return cls(
            log_idx=int(data["log_idx"]),
            prev_log_idx=int(data["prev_log_idx"]),
            eventual_consistency=bool(data["eventual_consistency"]),
            user_ctx=data.get("user_ctx", ""),
            servers=[ServerConfig.from_dict(server) for server in data["servers"]],
        )


@dataclass
class ServerState:
    """Persistent Raft server state: current term and the vote cast in it."""

    term: int = 0
    voted_for: int = -1


def _as_text(data: bytes) -> str:
    return bytes(data).split(b"\0", 1)[0].decode("utf-8", errors="replace")


class EchoStateMachine:
    """State machine that only logs what it is given and tracks the commit index."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_commit_idx = 0
        self._snapshot: Any = None

    def commit(self, log_idx: int, data: bytes) -> None:
        """Log the committed message and remember its index."""
        with self._lock:
            _log.info("Commit message [%s] : %s", log_idx, _as_text(data))
            self._last_commit_idx = log_idx
        return None

    def pre_commit(self, log_idx: int, data: bytes) -> None:
        """Log a message about to be committed."""
        with self._lock:
            _log.info("Pre-Commit message [%s] : %s", log_idx, _as_text(data))
        return None

    def rollback(self, log_idx: int, data: bytes) -> None:
        """Log a message that was rolled back."""
        with self._lock:
            _log.info("Rollback[%s] : %s", log_idx, _as_text(data))

    def apply_snapshot(self, snapshot: Any) -> bool:
        """Remember the applied snapshot; always accepted."""
        with self._lock:
            self._snapshot = snapshot
        return True

    def last_snapshot(self) -> Any:
        """The most recently applied snapshot, or None if there is none."""
        with self._lock:
            return self._snapshot

    def last_commit_index(self) -> int:
        """Index of the last committed message."""
        return self._last_commit_idx


class SimpleStateManager:
    """Keeps a server's cluster config and state as JSON files on disk."""

    def __init__(self, server_id: int, server_addr: str, group_id: str, base_dir: str | Path | None = None) -> None:
        self._server_id = server_id
        self._server_addr = server_addr
        self._group_id = group_id
        self._dir = Path(base_dir if base_dir is not None else ".") / f"{group_id}_s{server_id}"
        self._left = False

    @property
    def config_path(self) -> Path:
        return self._dir / "config.json"

    @property
    def state_path(self) -> Path:
        return self._dir / "state.json"

    @property
    def has_left(self) -> bool:
        """Whether :meth:`leave` has been called."""
        return self._left

    def _load_object(self, path: Path) -> dict[str, Any] | None:
        try:
            with path.open("rb") as stream:
                obj = json.load(stream)
        except FileNotFoundError:
            return None
        if not isinstance(obj, dict):
            _log.error("Could not parse file: %s", path)
            return None
        return obj

    def _write_object(self, path: Path, obj: dict[str, Any]) -> None:
        try:
            with path.open("w", encoding="utf-8") as stream:
                json.dump(obj, stream)
        except OSError as exc:
            _log.error("Failed to write config values: %s", exc)

    def load_config(self) -> ClusterConfig:
        """Saved cluster config, or one holding only this server."""
        _log.debug("Loading config for [%s]", self._group_id)
        obj = self._load_object(self.config_path)
        if obj is not None:
            return ClusterConfig.from_dict(obj)
        return ClusterConfig(servers=[ServerConfig(id=self._server_id, endpoint=self._server_addr)])

    def save_config(self, config: ClusterConfig) -> None:
        """Write the cluster config; failures are logged, not raised."""
        self._write_object(self.config_path, config.to_dict())

    def read_state(self) -> ServerState:
        """Saved server state, or a fresh one."""
        _log.debug("Loading state for server: %s", self._server_id)
        state = ServerState()
        obj = self._load_object(self.state_path)
        if obj is not None:
            try:
                state.term = int(obj["term"])
                state.voted_for = int(obj["voted_for"])
            except KeyError:
                _log.warning("State file was not in the expected format!")
        return state

    def save_state(self, state: ServerState) -> None:
        """Write the server state; failures are logged, not raised."""
        self._write_object(self.state_path, {"term": state.term, "voted_for": state.voted_for})

    def load_log_store(self) -> InMemoryLogStore:
        """A new, empty in-memory log store."""
        return InMemoryLogStore()

    def server_id(self) -> int:
        return self._server_id

    def state_machine(self) -> EchoStateMachine:
        """A new echo state machine."""
        return EchoStateMachine()

    def logstore_id(self) -> int:
        return 0

    def leave(self) -> None:
        """Record that this server has left its group."""
        _log.info("Server %s leaving group [%s]", self._server_id, self._group_id)
        self._left = True

    def permanent_destroy(self) -> None:
        """Remove the saved config and state files, and their directory if left empty."""
        for path in (self.config_path, self.state_path):
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as exc:
                _log.error("Failed to remove %s: %s", path, exc)
        try:
            self._dir.rmdir()
        except OSError:
            pass

    def system_exit(self, exit_code: int) -> None:
        """Log the requested exit; the process keeps running."""
        _log.info("System exiting with code [%s]", exit_code)
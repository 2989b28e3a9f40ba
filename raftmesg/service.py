"""Routes Raft group messages arriving over RPC to the Raft servers they belong to."""

from __future__ import annotations

import abc
import enum
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from raftmesg.wire import MessageBase

_log = logging.getLogger("nuraft_mesg")

JOIN_CLUSTER_REQUEST = 12
RAFT_STEP_RPC = "RaftStep"


class ResultCode(enum.IntEnum):
    """Outcome of a Raft command."""

    OK = 0
    CANCELLED = -1
    TIMEOUT = -2
    NOT_LEADER = -3
    BAD_REQUEST = -4
    SERVER_ALREADY_EXISTS = -5
    CONFIG_CHANGING = -6
    SERVER_IS_JOINING = -7
    SERVER_NOT_FOUND = -8
    CANNOT_REMOVE_LEADER = -9
    SERVER_IS_LEAVING = -10
    TERM_MISMATCH = -11
    RESULT_NOT_EXIST_YET = -10000
    FAILED = -32768


class StatusCode(enum.IntEnum):
    """RPC status codes."""

    OK = 0
    CANCELLED = 1
    UNKNOWN = 2
    INVALID_ARGUMENT = 3
    DEADLINE_EXCEEDED = 4
    NOT_FOUND = 5
    ALREADY_EXISTS = 6
    PERMISSION_DENIED = 7
    RESOURCE_EXHAUSTED = 8
    FAILED_PRECONDITION = 9
    ABORTED = 10
    OUT_OF_RANGE = 11
    UNIMPLEMENTED = 12
    INTERNAL = 13
    UNAVAILABLE = 14
    DATA_LOSS = 15
    UNAUTHENTICATED = 16


@dataclass(frozen=True)
class Status:
    """Status attached to an RPC response."""

    code: StatusCode = StatusCode.OK
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.code == StatusCode.OK


class GroupMetrics:
    """Message counters for one Raft group."""

    COUNTERS = ("group_steps", "group_sends")

    def __init__(self, group_name: str) -> None:
        self.group_name = group_name
        self.counters: dict[str, int] = dict.fromkeys(self.COUNTERS, 0)
        self._lock = threading.Lock()

    def increment(self, counter: str, amount: int = 1) -> None:
        """Add ``amount`` to a named counter."""
        with self._lock:
            if counter not in self.counters:
                raise KeyError(f"unknown counter: {counter}")
            self.counters[counter] += amount


@dataclass
class RaftGroupMsg:
    """A Raft message addressed to one group on one service."""

    group_name: str = ""
    intended_addr: str = ""
    group_type: str = ""
    base: Optional[MessageBase] = None
    payload: Any = None


class DataService(abc.ABC):
    """Channel carrying application data alongside Raft traffic."""

    def __init__(self) -> None:
        self.grpc_server: Any = None

    @abc.abstractmethod
    def associate(self) -> None:
        """Start the data service channel."""

    @abc.abstractmethod
    def bind(self, request_name: str, group_id: str, handler: Callable[..., Any]) -> bool:
        """Register a handler for one request of one group."""

    @abc.abstractmethod
    def bind_all(self) -> None:
        """Register every handler known so far."""


@dataclass
class _GroupEntry:
    server: Any = None
    metrics: Optional[GroupMetrics] = None


class _GroupListener:
    """Listener handed to a group's Raft server; releasing it removes the group."""

    def __init__(self, service: "MessagingService", group_name: str) -> None:
        self._service = service
        self.group_name = group_name
        self.handler: Any = None
        self.listening = False
        self.is_shut_down = False
        self._released = False

    def listen(self, handler: Any = None) -> None:
        """Remember the message handler and mark the listener as active."""
        _log.info("Begin listening on %s", self.group_name)
        self.handler = handler
        self.listening = True

    def stop(self) -> None:
        """Mark the listener as no longer active."""
        _log.info("Stop %s", self.group_name)
        self.listening = False

    def shutdown(self) -> None:
        """Deactivate the listener and drop its handler."""
        _log.info("Shutdown %s", self.group_name)
        self.listening = False
        self.is_shut_down = True
        self.handler = None

    def release(self) -> None:
        if not self._released:
            self._released = True
            self._service.shutdown_for(self.group_name)


GetServerCtx = Callable[[int, str, str, Optional[GroupMetrics], _GroupListener], Any]
ProcessOffload = Callable[[str], Optional[Callable[[Callable[[], None]], None]]]


class MessagingService:
    """Holds the Raft servers of every joined group and dispatches messages to them."""

    def __init__(
        self,
        get_server_ctx: GetServerCtx,
        process_offload: Optional[ProcessOffload],
        service_address: str,
        enable_data_service: bool = False,
        data_service: Optional[DataService] = None,
        metrics_enabled: bool = False,
    ) -> None:
        if enable_data_service and data_service is None:
            raise ValueError("data service enabled but none given")
        self._get_server_ctx = get_server_ctx
        self._process_offload = process_offload
        self._service_address = service_address
        self._data_service_enabled = enable_data_service
        self._data_service = data_service
        self._metrics_enabled = metrics_enabled
        self._lock = threading.RLock()
        self._groups_changed = threading.Condition(self._lock)
        self._groups: dict[str, _GroupEntry] = {}
        self._default_group_type = ""

    def _server_for(self, group_name: str) -> Any:
        with self._lock:
            entry = self._groups.get(group_name)
            return entry.server if entry is not None else None

    def add_server(self, group_name: str, config: Any) -> ResultCode:
        """Add a member to a group's cluster."""
        server = self._server_for(group_name)
        if server is not None:
            try:
                return server.add_srv(config)
            except RuntimeError as exc:
                _log.error("Caught exception during add_srv(): %s", exc)
        return ResultCode.SERVER_NOT_FOUND

    def remove_server(self, group_name: str, member_id: int) -> ResultCode:
        """Remove a member from a group's cluster."""
        server = self._server_for(group_name)
        if server is not None:
            try:
                return server.rem_srv(member_id)
            except RuntimeError as exc:
                _log.error("Caught exception during rm_srv(): %s", exc)
        return ResultCode.SERVER_NOT_FOUND

    def request_leadership(self, group_name: str) -> bool:
        """Ask this server to become leader of a group."""
        server = self._server_for(group_name)
        if server is not None:
            try:
                return bool(server.request_leadership())
            except RuntimeError as exc:
                _log.error("Caught exception during request_leadership(): %s", exc)
        return False

    def server_configs(self, group_name: str) -> list[Any]:
        """Configurations of every member of a group; empty if unknown."""
        server = self._server_for(group_name)
        if server is not None:
            try:
                return list(server.get_srv_config_all())
            except RuntimeError as exc:
                _log.error("Caught exception during get_srv_config_all(): %s", exc)
        return []

    def append_entries(self, group_name: str, logs: Sequence[bytes]) -> ResultCode:
        """Replicate log payloads through a group."""
        server = self._server_for(group_name)
        if server is not None:
            try:
                return server.append_entries(list(logs))
            except RuntimeError as exc:
                _log.error("Caught exception during append_entries(): %s", exc)
        return ResultCode.SERVER_NOT_FOUND

    def associate(self, server: Any) -> None:
        """Register the messaging service with an RPC server."""
        if server is None:
            raise ValueError("NULL server!")
        if not server.register_async_service():
            _log.error("Could not register RaftSvc with gRPC!")
            raise RuntimeError("could not register Raft service")
        if self._data_service_enabled:
            self._data_service.grpc_server = server
            self._data_service.associate()

    def bind(self, server: Any) -> None:
        """Bind the Raft step RPC to :meth:`raft_step`."""
        if server is None:
            raise ValueError("NULL server!")
        if not server.register_rpc(RAFT_STEP_RPC, self.raft_step):
            _log.error("Could not bind gRPC ::RaftStep to routine!")
            raise RuntimeError("could not bind RaftStep")
        if self._data_service_enabled:
            self._data_service.bind_all()

    def bind_data_service_request(self, request_name: str, group_id: str, handler: Callable[..., Any]) -> bool:
        """Register a data service handler; False when the data service is off."""
        if not self._data_service_enabled:
            _log.error("Could not register data service method %s; data service is null", request_name)
            return False
        return self._data_service.bind(request_name, group_id, handler)

    def set_default_group_type(self, group_type: str) -> None:
        """Type used for join requests that name none."""
        with self._lock:
            self._default_group_type = group_type

    def _step(self, server: Any, call: Any) -> Status:
        status, reply = server.step(call.request)
        if reply is not None:
            call.response.base = reply.base
            call.response.payload = reply.payload
        return status

    def raft_step(self, call: Any) -> bool:
        """Handle one incoming Raft message.

        Returns True when the response is complete, False when it was offloaded
        and will be sent later.
        """
        request = call.request
        group_name = request.group_name
        base = request.base
        msg_type = base.type if base is not None else None

        if request.intended_addr != self._service_address:
            _log.warning(
                "Recieved mesg for %s intended for %s, we are %s",
                msg_type, request.intended_addr, self._service_address,
            )
            call.set_status(Status(
                StatusCode.INVALID_ARGUMENT,
                f"intended addr: [{request.intended_addr}], our addr: [{self._service_address}]",
            ))
            return True

        if base is not None:
            _log.debug("Received [%s] from: [%s] to: [%s] Group: [%s]", base.type, base.src, base.dest, group_name)
            if base.type == JOIN_CLUSTER_REQUEST:
                try:
                    self.join_group(base.dest, group_name, request.group_type)
                except Exception:  # already logged by join_group
                    pass

        server = None
        with self._lock:
            entry = self._groups.get(group_name)
            if entry is not None:
                if entry.metrics is not None:
                    entry.metrics.increment("group_steps")
                server = entry.server

        call.response = RaftGroupMsg(group_name=group_name)
        if server is not None:
            offload = self._process_offload(request.group_type) if self._process_offload else None
            if offload is not None:
                def _run() -> None:
                    call.set_status(self._step(server, call))
                    call.send_response()

                offload(_run)
                return False
            try:
                call.set_status(self._step(server, call))
                return True
            except RuntimeError as exc:
                _log.error("Caught exception during step(): %s", exc)
        else:
            _log.debug("Missing RAFT group: %s", group_name)
        call.set_status(Status(StatusCode.NOT_FOUND, "Missing RAFT group"))
        return True

    def create_group(self, server_id: int, group_name: str, group_type: str) -> None:
        """Create a group with this server as its first member."""
        self.join_group(server_id, group_name, group_type)

    def join_group(self, server_id: int, group_name: str, group_type: str) -> None:
        """Start a Raft server for a group unless one is already running."""
        _log.info("Joining RAFT group: %s, type: %s", group_name, group_type)
        with self._lock:
            if group_name in self._groups:
                return
            g_type = group_type or self._default_group_type
            metrics = GroupMetrics(group_name) if self._metrics_enabled else None
            entry = _GroupEntry(metrics=metrics)
            self._groups[group_name] = entry
            listener = _GroupListener(self, group_name)
            try:
                server = self._get_server_ctx(server_id, group_name, g_type, metrics, listener)
            except Exception as exc:
                del self._groups[group_name]
                _log.error("Error during RAFT server creation on group %s: %s", group_name, exc)
                raise
            entry.server = server
            if self._data_service_enabled:
                state_mgr = getattr(server, "state_mgr", None)
                if state_mgr is not None:
                    state_mgr.make_repl_ctx(server, getattr(server, "client_factory", None))

    def part_group(self, group_name: str) -> None:
        """Stop and shut down this server's Raft server for a group."""
        with self._lock:
            entry = self._groups.get(group_name)
            if entry is None:
                _log.warning("Unknown RAFT group: %s cannot part.", group_name)
                return
            server = entry.server
        raft_server = getattr(server, "raft_server", None)
        if raft_server is not None:
            _log.info("Parting RAFT group: %s", group_name)
            raft_server.stop_server()
            raft_server.shutdown()

    def shutdown_for(self, group_name: str) -> None:
        """Forget a group whose Raft server has gone away."""
        with self._lock:
            _log.debug("Shutting down RAFT group: %s", group_name)
            if self._groups.pop(group_name, None) is None:
                _log.warning("Unknown RAFT group: %s cannot shutdown.", group_name)
                return
            self._groups_changed.notify_all()

    def shutdown(self) -> None:
        """Shut down every group and wait until all of them are gone."""
        _log.info("MessagingService shutdown started.")
        with self._lock:
            servers = [entry.server for entry in self._groups.values()]
        for server in servers:
            raft_server = getattr(server, "raft_server", None)
            if raft_server is not None:
                raft_server.stop_server()
                raft_server.shutdown()
        with self._groups_changed:
            self._groups_changed.wait_for(lambda: not self._groups)
        _log.info("MessagingService shutdown complete.")
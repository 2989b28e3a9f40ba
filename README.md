# raftmesg

Building blocks for running Raft consensus groups over RPC:

- a service that routes incoming Raft messages to the group they belong to,
  creates a group when a join request for it arrives, and manages membership;
- an in-memory Raft log store;
- a state manager that keeps cluster configuration and server state as JSON
  files, together with a state machine that logs what it commits;
- a bridge from Raft log levels to Python `logging`.

The package has no dependencies outside the standard library.

## Installation

```
pip install .
```

To run the tests, install the `test` extra:

```
pip install ".[test]"
pytest
```

## Modules

### `raftmesg.logstore`

`LogEntry` is a dataclass with the fields `term`, `data`, `val_type` and
`timestamp`. `serialize()` encodes the entry as a little-endian 8-byte term,
then one byte for the value type, then the payload. `LogEntry.deserialize(data)`
reverses this and raises `ValueError` if fewer than 9 bytes are given.
`clone()` returns an independent copy.

`InMemoryLogStore` is a thread-safe log indexed by position. Index 0 always
holds a dummy entry. When a requested index is missing, `last_entry`,
`entry_at` and `term_at` return the dummy entry instead.

- `append(entry)` stores a copy at `next_slot()` and returns that index.
- `write_at(index, entry)` drops every entry at `index` or above and then
  stores the new entry at `index`.
- `entries(start, end)` returns copies of the entries in `[start, end)`. It
  raises `IndexError` if any of them is missing.
- `entries_ext(start, end, batch_size_hint)` also reads a range, but stops as
  soon as the payloads read so far add up to at least `batch_size_hint` bytes.
  A hint of `0` means no limit. A negative hint returns an empty list.
- `pack(index, count)` packs entries into one buffer. The buffer starts with
  an int32 count, followed by an int32 length and the serialized entry for
  each entry. `apply_pack(index, data)` loads such a buffer, placing the
  first entry at `index`, and resets `start_index()` to the lowest stored
  index. A truncated buffer raises `ValueError`.
- `compact(last_log_index)` drops entries up to and including
  `last_log_index` and moves `start_index()` forward. It always returns
  `True`.
- `flush()` always returns `True`. `close()` sets the `closed` flag.
  `last_durable_index()` is `next_slot() - 1`.

### `raftmesg.raftlog`

`RaftLogger(group_id, logger=None)` writes to the given logger, or to the
`"nuraft"` logger when none is given.

- `put_details(level, source_file, func_name, line_number, log_line)` emits
  `[vol=<group>] <file>:<func>#<line> : <text>`. Raft levels 1 and 2 become
  `ERROR`, 3 becomes `WARNING`, 4 `INFO`, 5 `DEBUG`, and any other level
  becomes a trace level with the value 5.
- `set_level(level)` sets the logger's threshold from a Raft level, where 1
  is fatal and 6 is trace.

### `raftmesg.statemgr`

- `lookup_endpoint(client)` maps one of five fixed server uuids to
  `127.0.0.1:9000` through `127.0.0.1:9004`. Any other string is returned
  unchanged.
- `ServerConfig` and `ClusterConfig` are dataclasses. Each has `to_dict()`
  and `from_dict()`, and together they describe cluster membership.
  `ServerState` holds `term` and `voted_for`.
- `EchoStateMachine` logs each `commit`, `pre_commit` and `rollback`. It
  tracks `last_commit_index()` and remembers the last snapshot passed to
  `apply_snapshot`, which `last_snapshot()` returns.
- `SimpleStateManager(server_id, server_addr, group_id, base_dir=None)`
  stores files in `<base_dir>/<group_id>_s<server_id>/config.json` and
  `state.json`; `base_dir` defaults to the current directory.
  - `load_config()` returns the saved configuration. If there is none, it
    returns a configuration that contains only this server.
  - `read_state()` returns the saved state, or a fresh `ServerState`.
  - `save_config` and `save_state` log write failures instead of raising
    them. They do not create the directory.
  - `load_log_store()` returns a new `InMemoryLogStore`.
  - `state_machine()` returns a new `EchoStateMachine`.
  - `leave()` sets `has_left`.
  - `permanent_destroy()` deletes both files, and deletes the directory if it
    is then empty.
  - `system_exit(code)` only logs.

### `raftmesg.wire`

- `MessageBase` is a frozen dataclass with the fields `term`, `src`, `dest`
  and `type`.
- `from_base_request(obj)` builds a `MessageBase` from any object that has
  the attributes `term`, `src`, `dst` and `type`.
- `serialize_blobs(blobs)` returns a tuple of byte slices.
- `deserialize_blob(chunks)` returns the single slice, and raises
  `ValueError` unless there is exactly one.
- `generic_method_name(request_name, group_id)` returns
  `"<request_name>|<group_id>"`.

### `raftmesg.service`

`MessagingService(get_server_ctx, process_offload, service_address,
enable_data_service=False, data_service=None, metrics_enabled=False)` keeps
one Raft server object for each joined group.

- `join_group(server_id, group_name, group_type)` and `create_group(...)`
  do nothing if the group already exists. Otherwise they call
  `get_server_ctx(server_id, group_name, group_type, metrics, listener)`. An
  empty `group_type` is replaced by the one given to
  `set_default_group_type`. Any exception from `get_server_ctx` is logged and
  raised again, and the group is not kept.
- `raft_step(call)` handles one incoming message. `call` must provide
  `request` (a `RaftGroupMsg`), `response`, `set_status(Status)` and
  `send_response()`.
  - A message meant for a different address gets `INVALID_ARGUMENT`.
  - A join-cluster request (type 12) joins the group first.
  - An unknown group gets `NOT_FOUND`.
  - Otherwise the message goes to `server.step(request)`, which must return
    `(status, reply)`.
  - If `process_offload(group_type)` returns a callable, the step runs
    through that callable and `raft_step` returns `False`. In every other
    case it returns `True`.
- `add_server`, `remove_server` and `append_entries` return the server's
  `ResultCode`, or `ResultCode.SERVER_NOT_FOUND` if the group is unknown.
  `request_leadership` returns `False` for an unknown group, and
  `server_configs` returns `[]`.
- `associate(rpc_server)` calls `rpc_server.register_async_service()`.
  `bind(rpc_server)` calls `rpc_server.register_rpc("RaftStep",
  self.raft_step)`. Both raise `RuntimeError` if registration fails. When the
  data service is enabled, these two methods also call the `DataService`
  methods `associate()` and `bind_all()`.
- `bind_data_service_request(...)` forwards to `DataService.bind`. It returns
  `False` when the data service is disabled.
- `part_group(name)` calls `stop_server()` and `shutdown()` on the group's
  `server.raft_server`, if that attribute exists. `shutdown()` does the same
  for every group, then blocks until all groups have been removed.
- A group is removed by `shutdown_for(name)`, or when the listener handed to
  `get_server_ctx` is `release()`d.

`DataService` is an abstract base class with the methods `associate`, `bind`
and `bind_all`. `GroupMetrics` counts `group_steps` and `group_sends`. When
metrics are enabled, `raft_step` increments `group_steps`.

## Example

```python
from raftmesg.logstore import InMemoryLogStore, LogEntry

store = InMemoryLogStore()
store.append(LogEntry(term=1, data=b"hello"))
assert store.next_slot() == 2
assert store.term_at(1) == 1

packed = store.pack(1, 1)
replica = InMemoryLogStore()
replica.apply_pack(1, packed)
assert replica.entry_at(1).data == b"hello"
```

```python
import tempfile
from raftmesg.statemgr import SimpleStateManager, ServerState

base = tempfile.mkdtemp()
mgr = SimpleStateManager(1, "127.0.0.1:9001", "group", base_dir=base)
mgr.state_path.parent.mkdir(parents=True, exist_ok=True)
mgr.save_state(ServerState(term=3, voted_for=1))
assert mgr.read_state() == ServerState(term=3, voted_for=1)
```

## What this package does not do

- It contains no Raft consensus engine. The object returned by
  `get_server_ctx` has to provide elections, replication and `step()`.
- It contains no network transport. `MessagingService.associate` and
  `bind` only register with an RPC server object that you supply.
- It includes no concrete `DataService`.
- It has no command-line programs. There is nothing to start a server or a
  client from a shell.
- Log entries are held only in memory.
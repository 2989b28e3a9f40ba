"""Message routing, in-memory log storage and JSON-backed state management for Raft groups."""

__version__ = "0.1.0"
__all__ = ["logstore", "raftlog", "statemgr", "wire", "service"]
"""Routes Raft library log lines into Python logging, tagged with their group."""

from __future__ import annotations

import logging

TRACE = 5

# Raft levels run from 1 (fatal) to 6 (trace); index by abs(level - 6).
_SEVERITY_LEVELS = (
    TRACE,
    logging.DEBUG,
    logging.INFO,
    logging.WARNING,
    logging.ERROR,
    logging.CRITICAL,
    logging.CRITICAL + 10,
)


def _file_name(path: str) -> str:
    return path.replace("\\", "/").rsplit("/", 1)[-1]


class RaftLogger:
    """Logger for one Raft group."""

    def __init__(self, group_id: str, logger: logging.Logger | None = None) -> None:
        self.group_id = group_id
        self.logger = logger if logger is not None else logging.getLogger("nuraft")

    def set_level(self, level: int) -> None:
        """Set the threshold from a Raft level (1 fatal .. 6 trace)."""
        severity = min(abs(level - 6), len(_SEVERITY_LEVELS) - 1)
        self.logger.debug("Updating level to: %s", level)
        self.logger.setLevel(_SEVERITY_LEVELS[severity])

    def put_details(self, level: int, source_file: str, func_name: str, line_number: int, log_line: str) -> None:
        """Emit one line at the Python level matching the Raft ``level``."""
        mesg = f"[vol={self.group_id}] {_file_name(source_file)}:{func_name}#{line_number} : {log_line}"
        if level in (1, 2):
            self.logger.error("ERROR %s", mesg)
        elif level == 3:
            self.logger.warning("WARNING %s", mesg)
        elif level == 4:
            self.logger.info("INFO %s", mesg)
        elif level == 5:
            self.logger.debug("DEBUG %s", mesg)
        else:
            self.logger.log(TRACE, "TRACE %s", mesg)
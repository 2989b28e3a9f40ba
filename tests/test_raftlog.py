import logging

import pytest

from raftmesg.raftlog import TRACE, RaftLogger


@pytest.fixture
def named_logger():
    logger = logging.getLogger("raftmesg.test.raftlog")
    logger.setLevel(1)
    return logger


@pytest.mark.parametrize(
    "raft_level, expected",
    [(1, logging.CRITICAL), (2, logging.ERROR), (3, logging.WARNING), (4, logging.INFO), (5, logging.DEBUG), (6, TRACE)],
)
def test_set_level_maps_levels(named_logger, raft_level, expected):
    RaftLogger("g1", named_logger).set_level(raft_level)
    assert named_logger.level == expected


@pytest.mark.parametrize(
    "raft_level, py_level, prefix",
    [
        (1, logging.ERROR, "ERROR"),
        (2, logging.ERROR, "ERROR"),
        (3, logging.WARNING, "WARNING"),
        (4, logging.INFO, "INFO"),
        (5, logging.DEBUG, "DEBUG"),
        (6, TRACE, "TRACE"),
        (9, TRACE, "TRACE"),
    ],
)
def test_put_details_levels(named_logger, caplog, raft_level, py_level, prefix):
    caplog.set_level(1, logger=named_logger.name)
    RaftLogger("g1", named_logger).put_details(raft_level, "src/lib/raft.cxx", "step", 42, "hello")
    assert len(caplog.records) == 1
    record = caplog.records[0]
    assert record.levelno == py_level
    assert record.getMessage().startswith(prefix + " ")


def test_put_details_message_format(named_logger, caplog):
    caplog.set_level(1, logger=named_logger.name)
    RaftLogger("vol7", named_logger).put_details(4, "a/b/handler.cxx", "commit", 12, "done")
    assert caplog.records[0].getMessage() == "INFO [vol=vol7] handler.cxx:commit#12 : done"


def test_level_filters_lower_messages(named_logger, caplog):
    caplog.set_level(1, logger=named_logger.name)
    raft_logger = RaftLogger("g2", named_logger)
    raft_logger.set_level(3)
    raft_logger.put_details(5, "x.cxx", "f", 1, "hidden")
    raft_logger.put_details(2, "x.cxx", "f", 2, "shown")
    messages = [r.getMessage() for r in caplog.records if r.name == named_logger.name]
    assert any("shown" in m for m in messages)
    assert not any("hidden" in m for m in messages)


def test_default_logger_name():
    assert RaftLogger("g3").logger.name == "nuraft"
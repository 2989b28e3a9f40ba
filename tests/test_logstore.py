import pytest

from raftmesg.logstore import APP_LOG, InMemoryLogStore, LogEntry


def make_store(terms):
    store = InMemoryLogStore()
    for i, term in enumerate(terms):
        store.append(LogEntry(term=term, data=f"entry-{i}".encode()))
    return store


def test_new_store_is_empty():
    store = InMemoryLogStore()
    assert store.next_slot() == 1
    assert store.start_index() == 1
    assert store.last_durable_index() == 0
    assert store.last_entry().term == 0


def test_append_returns_consecutive_indexes():
    store = InMemoryLogStore()
    assert store.append(LogEntry(term=1, data=b"a")) == 1
    assert store.append(LogEntry(term=2, data=b"b")) == 2
    assert store.next_slot() == 3
    assert store.last_entry().data == b"b"
    assert store.term_at(1) == 1


def test_append_stores_a_copy():
    store = InMemoryLogStore()
    entry = LogEntry(term=3, data=b"x")
    store.append(entry)
    entry.term = 99
    assert store.entry_at(1).term == 3


def test_missing_index_falls_back_to_dummy():
    store = make_store([1])
    assert store.term_at(50) == 0
    assert store.entry_at(50).term == 0


def test_write_at_truncates_later_entries():
    store = make_store([1, 1, 2, 2])
    store.write_at(2, LogEntry(term=5, data=b"new"))
    assert store.next_slot() == 3
    assert store.entry_at(2).data == b"new"
    assert store.term_at(3) == 0


def test_entries_range():
    store = make_store([1, 2, 3])
    got = store.entries(1, 4)
    assert [e.term for e in got] == [1, 2, 3]
    assert store.entries(2, 2) == []


def test_entries_missing_raises():
    store = make_store([1])
    with pytest.raises(IndexError):
        store.entries(1, 3)


def test_entries_ext_respects_hint():
    store = InMemoryLogStore()
    for _ in range(5):
        store.append(LogEntry(term=1, data=b"abcd"))
    assert len(store.entries_ext(1, 6, 0)) == 5
    assert len(store.entries_ext(1, 6, 8)) == 2
    assert store.entries_ext(1, 6, -1) == []


def test_serialize_round_trip():
    entry = LogEntry(term=7, data=b"payload", val_type=APP_LOG)
    back = LogEntry.deserialize(entry.serialize())
    assert back.term == 7
    assert back.data == b"payload"
    assert back.val_type == APP_LOG


def test_serialize_layout():
    assert LogEntry(term=1, data=b"ab").serialize() == b"\x01\x00\x00\x00\x00\x00\x00\x00\x01ab"


def test_deserialize_short_buffer():
    with pytest.raises(ValueError):
        LogEntry.deserialize(b"\x01\x02")


def test_pack_and_apply_pack_round_trip():
    source = make_store([1, 2, 3])
    packed = source.pack(1, 3)
    target = InMemoryLogStore()
    target.apply_pack(1, packed)
    assert target.start_index() == 1
    assert [e.term for e in target.entries(1, 4)] == [1, 2, 3]
    assert [e.data for e in target.entries(1, 4)] == [e.data for e in source.entries(1, 4)]


def test_apply_pack_sets_start_index():
    source = make_store([4, 5])
    target = InMemoryLogStore()
    target.apply_pack(10, source.pack(1, 2))
    assert target.start_index() == 10
    assert target.term_at(11) == 5


def test_apply_pack_truncated():
    packed = make_store([1, 2]).pack(1, 2)
    with pytest.raises(ValueError):
        InMemoryLogStore().apply_pack(1, packed[:-3])


def test_pack_missing_raises():
    with pytest.raises(IndexError):
        make_store([1]).pack(1, 2)


def test_compact_moves_start_index():
    store = make_store([1, 2, 3, 4])
    assert store.compact(2) is True
    assert store.start_index() == 3
    assert store.next_slot() == 5
    assert store.term_at(1) == 0
    assert store.term_at(3) == 3


def test_compact_beyond_end():
    store = make_store([1, 2])
    store.compact(10)
    assert store.start_index() == 11
    assert store.next_slot() == 11


def test_flush_and_close():
    store = make_store([1])
    assert store.flush() is True
    store.close()
    assert store.last_durable_index() == 1
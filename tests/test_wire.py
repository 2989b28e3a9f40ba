from types import SimpleNamespace

import pytest

from raftmesg.wire import (
    MessageBase,
    deserialize_blob,
    from_base_request,
    generic_method_name,
    serialize_blobs,
)


def test_from_base_request_maps_dst_to_dest():
    base = SimpleNamespace(term=3, src=1, dst=2, type=7)
    assert from_base_request(base) == MessageBase(term=3, src=1, dest=2, type=7)


def test_serialize_keeps_order_and_content():
    blobs = [b"ab", bytearray(b"cd"), memoryview(b"e")]
    assert serialize_blobs(blobs) == (b"ab", b"cd", b"e")


def test_single_slice_round_trip():
    assert deserialize_blob(serialize_blobs([b"payload"])) == b"payload"


@pytest.mark.parametrize("chunks", [(), (b"a", b"b")])
def test_deserialize_rejects_non_single(chunks):
    with pytest.raises(ValueError):
        deserialize_blob(chunks)


def test_generic_method_name():
    assert generic_method_name("append", "grp") == "append|grp"
    assert generic_method_name("a", "b").split("|") == ["a", "b"]
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from rdbkit.memprofiler import (
    RedisMeta,
    get_jemalloc_size,
    next_power,
    size_of_object,
    size_of_string,
    zset_random_level,
)
from rdbkit.model import (
    HASH_ENCODING,
    INTSET_ENCODING,
    LIST_ENCODING,
    LISTPACK_ENCODING,
    QUICKLIST2_ENCODING,
    QUICKLIST_ENCODING,
    SET_ENCODING,
    ZIPLIST_ENCODING,
    ZSET_ENCODING,
    AuxObject,
    HashObject,
    IntsetDetail,
    ListObject,
    ListpackDetail,
    Quicklist2Detail,
    QuicklistDetail,
    SetObject,
    StreamConsumer,
    StreamEntry,
    StreamGroup,
    StreamId,
    StreamNAck,
    StreamObject,
    StringObject,
    ZiplistDetail,
    ZSetEntry,
    ZSetObject,
)

LARGEST_CLASS = 8070450532247928832


@pytest.mark.parametrize(
    "request_size, expected",
    [(1, 8), (8, 8), (9, 16), (64, 64), (65, 80), (1025, 1280), (LARGEST_CLASS, LARGEST_CLASS)],
)
def test_jemalloc_size_classes(request_size, expected):
    assert get_jemalloc_size(request_size) == expected


def test_jemalloc_size_beyond_largest_class():
    with pytest.raises(ValueError):
        get_jemalloc_size(LARGEST_CLASS + 1)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("123", 0),
        ("-5", 0),
        ("+7", 0),
        ("hello", 8),
        (b"hello", 8),
        ("", 8),
        ("1_000", 8),
        ("9223372036854775808", 24),
        ("x" * 40, 48),
        ("x" * 300, 320),
        ("x" * 30000, 32768),
    ],
)
def test_size_of_string(value, expected):
    assert size_of_string(value) == expected


@pytest.mark.parametrize("size, expected", [(0, 1), (1, 2), (5, 8), (8, 16)])
def test_next_power(size, expected):
    assert next_power(size) == expected


def test_random_level_mean_matches_expectation():
    size = 100000
    levels = [zset_random_level() for _ in range(size)]
    assert all(1 <= level <= 32 for level in levels)
    assert abs(sum(levels) / size - 1.33) < 0.05


def test_random_level_is_capped():
    with patch("random.randrange", return_value=0):
        assert zset_random_level() == 32


def test_redis_meta_fields():
    meta = RedisMeta(version="7.0.0", bits=32)
    assert (meta.version, meta.bits) == ("7.0.0", 32)


def test_string_object_size():
    obj = StringObject(key="hello", value=b"world")
    assert size_of_object(obj) == 56


def test_string_object_with_expiration():
    obj = StringObject(
        key="hello", value=b"world", expiration=datetime(2030, 1, 1, tzinfo=timezone.utc)
    )
    assert size_of_object(obj) == 88


def test_integer_string_object_size():
    assert size_of_object(StringObject(key="1", value=b"2")) == 40


def test_aux_object_only_top_level():
    assert size_of_object(AuxObject(key="redis-ver", value="7.0.0")) == 56


def test_linked_list_size():
    obj = ListObject(key="list", encoding=LIST_ENCODING, values=[b"a", b"bb"])
    assert size_of_object(obj) == 160


def test_ziplist_list_size():
    obj = ListObject(key="zl", encoding=ZIPLIST_ENCODING, values=[b"abc", b"12"])
    assert size_of_object(obj) == 75


def test_quicklist_size():
    detail = QuicklistDetail(ziplist_struct=[[b"a"], [b"1"]])
    obj = ListObject(key="q", encoding=QUICKLIST_ENCODING, values=[b"a", b"1"], extra=detail)
    assert size_of_object(obj) == 211


def test_quicklist2_size():
    detail = Quicklist2Detail(node_encodings=[1, 2], list_pack_entry_size=[[], [3, 4]])
    obj = ListObject(
        key="q2", encoding=QUICKLIST2_ENCODING, values=[b"hello", b"x"], extra=detail
    )
    assert size_of_object(obj) == 182


def test_list_with_unknown_encoding_counts_only_key():
    obj = ListObject(key="x", encoding="mystery", values=[b"a"])
    assert size_of_object(obj) == 48


def test_hash_ziplist_uses_raw_size():
    obj = HashObject(key="h", encoding=ZIPLIST_ENCODING, extra=ZiplistDetail(raw_string_size=100))
    assert size_of_object(obj) == 148


def test_hash_listpack_uses_raw_size():
    obj = HashObject(key="h", encoding=LISTPACK_ENCODING, extra=ListpackDetail(raw_string_size=10))
    assert size_of_object(obj) == 58


def test_hash_table_size():
    obj = HashObject(key="h", encoding=HASH_ENCODING, hash={"a": b"1"})
    assert size_of_object(obj) == 196


def test_set_intset_uses_raw_size():
    obj = SetObject(key="s", encoding=INTSET_ENCODING, extra=IntsetDetail(raw_string_size=50))
    assert size_of_object(obj) == 98


def test_set_listpack_uses_raw_size():
    obj = SetObject(key="s", encoding=LISTPACK_ENCODING, extra=ListpackDetail(raw_string_size=30))
    assert size_of_object(obj) == 78


def test_set_hash_table_size():
    obj = SetObject(key="s", encoding=SET_ENCODING, members=[b"x", b"10"])
    assert size_of_object(obj) == 244


def test_zset_skiplist_size():
    obj = ZSetObject(key="z", encoding=ZSET_ENCODING, entries=[ZSetEntry(member="m", score=1.0)])
    assert size_of_object(obj) == 297


def test_zset_ziplist_uses_raw_size():
    obj = ZSetObject(key="z", encoding=ZIPLIST_ENCODING, extra=ZiplistDetail(raw_string_size=40))
    assert size_of_object(obj) == 88


def test_empty_stream_sizes_by_version():
    assert size_of_object(StreamObject(key="st", version=1)) == 112
    assert size_of_object(StreamObject(key="st", version=2)) == 152


def test_stream_with_entry():
    entry = StreamEntry(first_msg_id=StreamId(1, 0))
    obj = StreamObject(key="st", version=1, entries=[entry])
    assert size_of_object(obj) == 616


def test_stream_with_group():
    group = StreamGroup(
        name="g",
        last_id=StreamId(1, 1),
        pending=[StreamNAck(id=StreamId(1, 1))],
        consumers=[StreamConsumer(name="c")],
    )
    obj = StreamObject(key="st", version=2, groups=[group])
    assert size_of_object(obj) == 752


def test_more_members_never_shrink_set_estimate():
    small = SetObject(key="s", encoding=SET_ENCODING, members=[b"a"])
    large = SetObject(key="s", encoding=SET_ENCODING, members=[b"a", b"b", b"c"])
    assert size_of_object(large) > size_of_object(small)
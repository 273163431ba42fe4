"""Estimates of the memory a Redis server spends on each decoded object."""

from __future__ import annotations

import math
import random
import re
from bisect import bisect_left
from dataclasses import dataclass

from .model import (
    INTSET_ENCODING,
    LIST_ENCODING,
    LISTPACK_ENCODING,
    QUICKLIST2_ENCODING,
    QUICKLIST_ENCODING,
    QUICKLIST_NODE_CONTAINER_PLAIN,
    ZIPLIST_ENCODING,
    BaseObject,
    HashObject,
    ListObject,
    SetObject,
    StreamObject,
    StringObject,
    ZSetObject,
)

MATH_EXPECTATION_OF_RANDOM_LEVEL = 1.33
"""Expected value of zset_random_level(), used to keep estimates stable."""

_POINTER_SIZE = 8
_LONG_SIZE = 8
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_INTEGER = re.compile(rb"[+-]?[0-9]+")


def _build_jemalloc_classes() -> tuple[int, ...]:
    classes = list(range(8, 65, 8))
    base = 64
    while True:
        step = base // 4
        for i in range(1, 5):
            size = base + step * i
            if size > _INT64_MAX:
                return tuple(classes)
            classes.append(size)
        base *= 2


_JEMALLOC_CLASSES = _build_jemalloc_classes()


@dataclass
class RedisMeta:
    """Redis version and architecture of the server that wrote a dump."""

    version: str = ""
    bits: int = 64


def _as_bytes(value: str | bytes | bytearray) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def _parse_int64(raw: bytes) -> int | None:
    """Return the decimal int64 spelled by ``raw``, or None."""
    if not _INTEGER.fullmatch(raw):
        return None
    number = int(raw)
    if not _INT64_MIN <= number <= _INT64_MAX:
        return None
    return number


def get_jemalloc_size(request: int) -> int:
    """Return the smallest jemalloc size class that holds ``request`` bytes."""
    index = bisect_left(_JEMALLOC_CLASSES, request)
    if index == len(_JEMALLOC_CLASSES):
        raise ValueError(f"allocation of {request} bytes exceeds every size class")
    return _JEMALLOC_CLASSES[index]


def size_of_string(value: str | bytes | bytearray) -> int:
    """Estimate the memory of an sds string; shared integers cost nothing."""
    raw = _as_bytes(value)
    if _parse_int64(raw) is not None:
        return 0
    size = len(raw)
    if size < 32:
        return get_jemalloc_size(size + 1 + 1)
    if size < 256:
        return get_jemalloc_size(size + 2 + 1)
    if size < 25536:
        return get_jemalloc_size(size + 1 + 4 + 1)
    if size < 4294967296:
        return get_jemalloc_size(size + 1 + 8 + 1)
    return get_jemalloc_size(size + 1 + 16 + 1)


def next_power(size: int) -> int:
    """Return the smallest power of two strictly greater than ``size``."""
    power = 1
    while power <= size:
        power <<= 1
    return power


def _redis_obj_overhead() -> int:
    return _POINTER_SIZE + 8


def _hash_table_entry_overhead() -> int:
    # A dict entry holds two pointers and an int64.
    return 2 * _POINTER_SIZE + 8


def _expiry_overhead() -> int:
    # Expirations live in their own hash table as int64 timestamps.
    return _hash_table_entry_overhead() + 8


def _top_level_object_overhead(key: str, has_ttl: bool) -> int:
    size = _hash_table_entry_overhead() + size_of_string(key) + _redis_obj_overhead()
    return size + _expiry_overhead() if has_ttl else size


def _hashtable_overhead(size: int) -> int:
    # Two dictht structs plus the bucket table; rehashing may allocate a second
    # table during loading, so the table cost is weighted by 1.5.
    return (
        4
        + 7 * _LONG_SIZE
        + 4 * _POINTER_SIZE
        + next_power(size) * _POINTER_SIZE * 3 // 2
    )


def _size_of_hash_object(obj: HashObject) -> int:
    if obj.encoding in (ZIPLIST_ENCODING, LISTPACK_ENCODING):
        return obj.extra.raw_string_size
    size = _hashtable_overhead(len(obj.hash))
    for field_name, value in obj.hash.items():
        size += _hash_table_entry_overhead()
        size += size_of_string(field_name)
        size += size_of_string(value)
    return size


def _size_of_set_object(obj: SetObject) -> int:
    if obj.encoding in (INTSET_ENCODING, LISTPACK_ENCODING):
        return obj.extra.raw_string_size
    size = _hashtable_overhead(len(obj.members))
    for member in obj.members:
        size += _hash_table_entry_overhead() + size_of_string(member)
    return size


def _ziplist_int_entry_overhead(value: int) -> int:
    if value < 12:
        size = 0
    elif value < 1 << 8:
        size = 1
    elif value < 1 << 16:
        size = 2
    elif value < 1 << 24:
        size = 3
    elif value < 1 << 32:
        size = 4
    else:
        size = 8
    prev_len = 5 if size < 254 else 1
    return prev_len + 1 + size


def _ziplist_str_entry_overhead(length: int) -> int:
    header = 1 if length <= 63 else 5
    prev_len = 5 if length < 254 else 1
    return prev_len + header + length


def _size_of_ziplist(values: list[bytes]) -> int:
    # <zlbytes><zltail><zllen><entry>...<zlend>
    size = 4 + 4 + 2 + 1
    for value in values:
        raw = _as_bytes(value)
        number = _parse_int64(raw)
        if number is None:
            size += _ziplist_str_entry_overhead(len(raw))
        else:
            size += _ziplist_int_entry_overhead(number)
    return size


def _size_of_quicklist(detail) -> int:
    size = 2 * _POINTER_SIZE + _LONG_SIZE + 2 * 4
    node_overhead = 4 * _POINTER_SIZE + _LONG_SIZE + 2 * 4
    size += len(detail.ziplist_struct) * node_overhead
    return size + sum(_size_of_ziplist(ziplist) for ziplist in detail.ziplist_struct)


def _size_of_quicklist2(values: list[bytes], detail) -> int:
    size = 2 * _POINTER_SIZE + 2 * _LONG_SIZE + 2 * 4
    node_overhead = 3 * _POINTER_SIZE + _LONG_SIZE + 4
    size += node_overhead * len(detail.node_encodings)
    for index, container in enumerate(detail.node_encodings):
        if container == QUICKLIST_NODE_CONTAINER_PLAIN:
            size += size_of_string(values[index])
        else:
            # listpack: <total_bytes><size>...<end>
            size += 4 + 2 + 1
            size += sum(detail.list_pack_entry_size[index])
    return size


def _size_of_linked_list(values: list[bytes]) -> int:
    # The list header has 5 pointers and an unsigned long; each node 3 pointers.
    size = 5 * _POINTER_SIZE + _LONG_SIZE
    size += len(values) * 3 * _POINTER_SIZE
    return size + sum(size_of_string(value) for value in values)


def _size_of_list_object(obj: ListObject) -> int:
    encoding = obj.encoding
    if encoding == QUICKLIST_ENCODING:
        return _size_of_quicklist(obj.extra)
    if encoding == LIST_ENCODING:
        return _size_of_linked_list(obj.values)
    if encoding == ZIPLIST_ENCODING:
        return _size_of_ziplist(obj.values)
    if encoding == QUICKLIST2_ENCODING:
        return _size_of_quicklist2(obj.values, obj.extra)
    return 0


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _skip_list_overhead(size: int) -> int:
    return 2 * _POINTER_SIZE + _hashtable_overhead(size) + (2 * _POINTER_SIZE + 16)


def _skip_list_entry_overhead() -> int:
    levels = _round_half_away((_POINTER_SIZE + 8) * MATH_EXPECTATION_OF_RANDOM_LEVEL)
    return _hash_table_entry_overhead() + 2 * _POINTER_SIZE + 8 + levels


def zset_random_level() -> int:
    """Draw a skip-list level the way Redis does: p=0.25, at most 32."""
    max_level = 32
    level = 1
    draw = random.randrange(0xFFFF)
    while draw < 0xFFFF // 4:
        level += 1
        draw = random.randrange(0xFFFF)
        if level >= max_level:
            return max_level
    return level


def _size_of_zset_object(obj: ZSetObject) -> int:
    if obj.encoding in (ZIPLIST_ENCODING, LISTPACK_ENCODING):
        return obj.extra.raw_string_size
    size = _skip_list_overhead(len(obj.entries))
    entry_overhead = _skip_list_entry_overhead()
    for entry in obj.entries:
        # the score is a double of 8 bytes
        size += size_of_string(entry.member) + 8 + entry_overhead
    return size


def _size_of_stream_rax_tree(element_count: int) -> int:
    # Rough estimate: about 2.5 radix nodes per element, using the formula of
    # Redis's own stream memory estimate.
    node_count = int(element_count * 2.5)
    return 16 * element_count + 4 * node_count + 30 * _LONG_SIZE * node_count


def _size_of_stream_object(obj: StreamObject) -> int:
    size = (
        _POINTER_SIZE * 2 + 8 + 16  # stream struct
        + _POINTER_SIZE + 8 * 2  # rax struct
        + _size_of_stream_rax_tree(len(obj.entries))
    )
    if obj.version >= 2:
        size += 16 * 2 + 8  # two extra stream IDs and a counter
    for group in obj.groups:
        size += _POINTER_SIZE * 2 + 16  # streamCG
        if obj.version >= 2:
            size += 8  # entries_read
        pending_count = len(group.pending)
        size += _size_of_stream_rax_tree(pending_count) + pending_count * (_POINTER_SIZE + 8 * 2)
        for consumer in group.consumers:
            size += (
                _POINTER_SIZE * 2 + 8
                + size_of_string(consumer.name)
                + _size_of_stream_rax_tree(len(consumer.pending))
            )
    return size


def size_of_object(obj: BaseObject) -> int:
    """Estimate the memory the server uses for ``obj``, key and expiry included."""
    size = _top_level_object_overhead(obj.key, obj.expiration is not None)
    if isinstance(obj, StringObject):
        size += size_of_string(obj.value)
    elif isinstance(obj, ListObject):
        size += _size_of_list_object(obj)
    elif isinstance(obj, SetObject):
        size += _size_of_set_object(obj)
    elif isinstance(obj, HashObject):
        size += _size_of_hash_object(obj)
    elif isinstance(obj, ZSetObject):
        size += _size_of_zset_object(obj)
    elif isinstance(obj, StreamObject):
        size += _size_of_stream_object(obj)
    return size
"""Objects produced when decoding an RDB file, with JSON output."""

from __future__ import annotations

import base64
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar

STRING_TYPE = "string"
LIST_TYPE = "list"
SET_TYPE = "set"
HASH_TYPE = "hash"
ZSET_TYPE = "zset"
AUX_TYPE = "aux"
DB_SIZE_TYPE = "dbsize"
STREAM_TYPE = "stream"

STRING_ENCODING = "string"
LIST_ENCODING = "list"
SET_ENCODING = "set"
ZSET_ENCODING = "zset"
HASH_ENCODING = "hash"
ZSET2_ENCODING = "zset2"
ZIPMAP_ENCODING = "zipmap"
ZIPLIST_ENCODING = "ziplist"
INTSET_ENCODING = "intset"
QUICKLIST_ENCODING = "quicklist"
LISTPACK_ENCODING = "listpack"
QUICKLIST2_ENCODING = "quicklist2"

QUICKLIST_NODE_CONTAINER_PLAIN = 1
QUICKLIST_NODE_CONTAINER_PACKED = 2

_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _text(value: bytes | bytearray | str) -> str:
    if isinstance(value, str):
        return value
    return bytes(value).decode("utf-8", errors="replace")


def _format_time(moment: datetime) -> str:
    """Format a datetime as RFC 3339 with trimmed fractional seconds."""
    if moment.tzinfo is None:
        moment = moment.astimezone()
    text = (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )
    if moment.microsecond:
        text += "." + f"{moment.microsecond:06d}".rstrip("0")
    offset = moment.utcoffset()
    seconds = int(offset.total_seconds()) if offset is not None else 0
    if seconds == 0:
        return text + "Z"
    sign = "+" if seconds > 0 else "-"
    hours, minutes = divmod(abs(seconds) // 60, 60)
    return f"{text}{sign}{hours:02d}:{minutes:02d}"


def _format_float(value: float) -> str:
    if math.isnan(value) or math.isinf(value):
        raise ValueError(f"unsupported float value: {value!r}")
    magnitude = abs(value)
    if magnitude != 0 and (magnitude < 1e-6 or magnitude >= 1e21):
        text = repr(value)
        if len(text) >= 4 and text[-4] == "e" and text[-3] == "-" and text[-2] == "0":
            text = text[:-2] + text[-1]
        return text
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _encode_str(value: str) -> str:
    out = []
    for ch in value:
        if ch in _HTML_ESCAPES:
            out.append(_HTML_ESCAPES[ch])
        elif ch == '"':
            out.append('\\"')
        elif ch == "\\":
            out.append("\\\\")
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\r":
            out.append("\\r")
        elif ch == "\t":
            out.append("\\t")
        elif ord(ch) < 0x20:
            out.append(f"\\u{ord(ch):04x}")
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'


def _encode(value: Any) -> str:
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, str):
        return _encode_str(value)
    if isinstance(value, (bytes, bytearray)):
        return _encode_str(base64.b64encode(bytes(value)).decode("ascii"))
    if isinstance(value, datetime):
        return _encode_str(_format_time(value))
    if isinstance(value, StreamId):
        return _encode_str(str(value))
    if isinstance(value, Mapping):
        items = (f"{_encode_str(str(k))}:{_encode(v)}" for k, v in value.items())
        return "{" + ",".join(items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_encode(item) for item in value) + "]"
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return _encode(to_dict())
    raise TypeError(f"cannot encode {type(value).__name__} as JSON")


@dataclass
class QuicklistDetail:
    """Every ziplist inside a quicklist."""

    ziplist_struct: list[list[bytes]] = field(default_factory=list)


@dataclass
class Quicklist2Detail:
    """Node containers of a quicklist of listpacks and their entry sizes."""

    node_encodings: list[int] = field(default_factory=list)
    list_pack_entry_size: list[list[int]] = field(default_factory=list)


@dataclass
class IntsetDetail:
    """Raw size of an intset blob."""

    raw_string_size: int = 0


@dataclass
class ZiplistDetail:
    """Raw size of a ziplist blob."""

    raw_string_size: int = 0


@dataclass
class ListpackDetail:
    """Raw size of a listpack blob."""

    raw_string_size: int = 0


@dataclass(kw_only=True)
class BaseObject:
    """Fields shared by every decoded object."""

    _type: ClassVar[str] = ""

    db: int = 0
    key: str = ""
    expiration: datetime | None = None
    size: int = 0
    encoding: str = ""
    extra: Any = None

    @property
    def type(self) -> str:
        """Redis type of the object."""
        return self._type

    @property
    def elem_count(self) -> int:
        """Number of elements held by the object."""
        return 0

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready fields of the object."""
        result: dict[str, Any] = {"db": self.db, "key": self.key}
        if self.expiration is not None:
            result["expiration"] = _format_time(self.expiration)
        result["size"] = self.size
        result["type"] = self.type
        result["encoding"] = self.encoding
        return result

    def to_json(self) -> str:
        """Return the object as compact JSON."""
        return _encode(self.to_dict())


@dataclass(kw_only=True)
class StringObject(BaseObject):
    """A string value."""

    _type: ClassVar[str] = STRING_TYPE

    value: bytes = b""

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "value": _text(self.value)}


@dataclass(kw_only=True)
class ListObject(BaseObject):
    """A list value."""

    _type: ClassVar[str] = LIST_TYPE

    values: list[bytes] = field(default_factory=list)

    @property
    def elem_count(self) -> int:
        return len(self.values)

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "values": [_text(v) for v in self.values]}


@dataclass(kw_only=True)
class HashObject(BaseObject):
    """A hash value."""

    _type: ClassVar[str] = HASH_TYPE

    hash: dict[str, bytes] = field(default_factory=dict)

    @property
    def elem_count(self) -> int:
        return len(self.hash)

    def to_dict(self) -> dict[str, Any]:
        fields = {k: _text(self.hash[k]) for k in sorted(self.hash)}
        return {**super().to_dict(), "hash": fields}


@dataclass(kw_only=True)
class SetObject(BaseObject):
    """A set value."""

    _type: ClassVar[str] = SET_TYPE

    members: list[bytes] = field(default_factory=list)

    @property
    def elem_count(self) -> int:
        return len(self.members)

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "members": [_text(m) for m in self.members]}


@dataclass
class ZSetEntry:
    """A member of a sorted set with its score."""

    member: str = ""
    score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"member": self.member, "score": float(self.score)}


@dataclass(kw_only=True)
class ZSetObject(BaseObject):
    """A sorted set value."""

    _type: ClassVar[str] = ZSET_TYPE

    entries: list[ZSetEntry] = field(default_factory=list)

    @property
    def elem_count(self) -> int:
        return len(self.entries)

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "entries": [e.to_dict() for e in self.entries]}


@dataclass(kw_only=True)
class AuxObject(BaseObject):
    """A metadata key-value pair."""

    _type: ClassVar[str] = AUX_TYPE

    value: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "value": self.value}


@dataclass(kw_only=True)
class DBSizeObject(BaseObject):
    """Size hints of a database."""

    _type: ClassVar[str] = DB_SIZE_TYPE

    key_count: int = 0
    ttl_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "KeyCount": self.key_count, "TTLCount": self.ttl_count}


@dataclass(kw_only=True)
class ModuleTypeObject(BaseObject):
    """A module value parsed by a custom handler."""

    module_type: str = ""
    value: Any = None

    @property
    def type(self) -> str:
        return self.module_type

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "moduleType": self.module_type, "value": self.value}


@dataclass(frozen=True)
class StreamId:
    """A stream ID made of a millisecond time and a sequence number."""

    ms: int = 0
    sequence: int = 0

    def __str__(self) -> str:
        return f"{self.ms}-{self.sequence}"

    def to_dict(self) -> dict[str, Any]:
        return {"ms": self.ms, "sequence": self.sequence}


def _id_text(stream_id: StreamId | None) -> str | None:
    return None if stream_id is None else str(stream_id)


@dataclass
class StreamMessage:
    """A message in a stream."""

    id: StreamId | None = None
    fields: dict[str, str] = field(default_factory=dict)
    deleted: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": _id_text(self.id),
            "fields": {k: self.fields[k] for k in sorted(self.fields)},
            "deleted": self.deleted,
        }


@dataclass
class StreamEntry:
    """A listpack node of the stream radix tree holding several messages."""

    first_msg_id: StreamId | None = None
    fields: list[str] = field(default_factory=list)
    msgs: list[StreamMessage] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "firstMsgId": _id_text(self.first_msg_id),
            "fields": list(self.fields),
            "msgs": [m.to_dict() for m in self.msgs],
        }


@dataclass
class StreamNAck:
    """A pending message of a consumer group."""

    id: StreamId | None = None
    delivery_time: int = 0
    delivery_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": _id_text(self.id),
            "deliveryTime": self.delivery_time,
            "deliveryCount": self.delivery_count,
        }


@dataclass
class StreamConsumer:
    """A consumer within a consumer group."""

    name: str = ""
    seen_time: int = 0
    pending: list[StreamId] = field(default_factory=list)
    active_time: int = 0

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "seenTime": self.seen_time}
        if self.pending:
            result["pending"] = [str(p) for p in self.pending]
        result["activeTime"] = self.active_time
        return result


@dataclass
class StreamGroup:
    """A consumer group of a stream."""

    name: str = ""
    last_id: StreamId | None = None
    pending: list[StreamNAck] = field(default_factory=list)
    consumers: list[StreamConsumer] = field(default_factory=list)
    entries_read: int = 0

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "lastId": _id_text(self.last_id)}
        if self.pending:
            result["pending"] = [p.to_dict() for p in self.pending]
        if self.consumers:
            result["consumers"] = [c.to_dict() for c in self.consumers]
        if self.entries_read:
            result["entriesRead"] = self.entries_read
        return result


@dataclass(kw_only=True)
class StreamObject(BaseObject):
    """A stream value."""

    _type: ClassVar[str] = STREAM_TYPE

    version: int = 0
    entries: list[StreamEntry] = field(default_factory=list)
    groups: list[StreamGroup] = field(default_factory=list)
    length: int = 0
    last_id: StreamId | None = None
    first_id: StreamId | None = None
    max_deleted_id: StreamId | None = None
    added_entries_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.version:
            result["version"] = self.version
        if self.entries:
            result["entries"] = [e.to_dict() for e in self.entries]
        if self.groups:
            result["groups"] = [g.to_dict() for g in self.groups]
        result["len"] = self.length
        result["lastId"] = _id_text(self.last_id)
        if self.first_id is not None:
            result["firstId"] = str(self.first_id)
        if self.max_deleted_id is not None:
            result["maxDeletedId"] = str(self.max_deleted_id)
        if self.added_entries_count:
            result["addedEntriesCount"] = self.added_entries_count
        return result
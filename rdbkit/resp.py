"""Conversion of decoded objects into Redis commands and RESP bytes."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence

from .model import (
    HASH_TYPE,
    LIST_TYPE,
    SET_TYPE,
    STREAM_TYPE,
    STRING_TYPE,
    ZSET_TYPE,
    BaseObject,
)

CRLF = b"\r\n"

CmdLine = list  # a command line: list of bytes arguments, None meaning a nil bulk

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class LexOrder:
    """Option: emit hash fields in lexical order instead of stored order."""


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def make_multi_bulk_resp(args: Sequence[Optional[bytes]]) -> bytes:
    """Encode one command line as a RESP multi-bulk reply."""
    parts = [b"*%d\r\n" % len(args)]
    for arg in args:
        if arg is None:
            parts.append(b"$-1\r\n")
        else:
            raw = _to_bytes(arg)
            parts.append(b"$%d\r\n%s\r\n" % (len(raw), raw))
    return b"".join(parts)


def _format_score(score: float) -> str:
    """Shortest decimal form of a float, never in exponent notation."""
    score = float(score)
    if math.isnan(score):
        return "NaN"
    if math.isinf(score):
        return "+Inf" if score > 0 else "-Inf"
    text = format(Decimal(repr(score)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _unix_millis(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.astimezone()
    micros = (moment - _EPOCH) // timedelta(microseconds=1)
    millis = abs(micros) // 1000
    return millis if micros >= 0 else -millis


def _string_cmd(obj: Any) -> list[bytes]:
    return [b"SET", _to_bytes(obj.key), _to_bytes(obj.value)]


def _list_cmd(obj: Any) -> list[bytes]:
    return [b"RPUSH", _to_bytes(obj.key), *(_to_bytes(v) for v in obj.values)]


def _set_cmd(obj: Any) -> list[bytes]:
    return [b"SADD", _to_bytes(obj.key), *(_to_bytes(m) for m in obj.members)]


def _hash_cmd(obj: Any, lex_order: bool) -> list[bytes]:
    fields = sorted(obj.hash) if lex_order else list(obj.hash)
    cmd = [b"HMSET", _to_bytes(obj.key)]
    for name in fields:
        cmd.append(_to_bytes(name))
        cmd.append(_to_bytes(obj.hash[name]))
    return cmd


def _zset_cmd(obj: Any) -> list[bytes]:
    cmd = [b"ZADD", _to_bytes(obj.key)]
    for entry in obj.entries:
        cmd.append(_format_score(entry.score).encode("ascii"))
        cmd.append(_to_bytes(entry.member))
    return cmd


def _stream_cmds(obj: Any) -> list[list[bytes]]:
    key = _to_bytes(obj.key)
    commands = []
    for entry in obj.entries:
        for message in entry.msgs:
            cmd = [b"XADD", key, str(message.id).encode("ascii")]
            for name, value in message.fields.items():
                cmd.append(_to_bytes(name))
                cmd.append(_to_bytes(value))
            commands.append(cmd)
    return commands


def _expire_cmd(obj: BaseObject) -> list[bytes]:
    millis = _unix_millis(obj.expiration)
    return [b"PEXPIREAT", _to_bytes(obj.key), str(millis).encode("ascii")]


def object_to_cmd(obj: Optional[BaseObject], *args: Any) -> list[list[bytes]]:
    """Return the command lines that recreate ``obj``.

    Pass a LexOrder instance among ``args`` to order hash fields lexically.
    Objects of other types produce only their expiration command, if any.
    """
    if obj is None:
        return []
    lex_order = any(isinstance(opt, LexOrder) for opt in args)
    kind = obj.type
    commands: list[list[bytes]] = []
    if kind == STRING_TYPE:
        commands.append(_string_cmd(obj))
    elif kind == LIST_TYPE:
        commands.append(_list_cmd(obj))
    elif kind == HASH_TYPE:
        commands.append(_hash_cmd(obj, lex_order))
    elif kind == SET_TYPE:
        commands.append(_set_cmd(obj))
    elif kind == ZSET_TYPE:
        commands.append(_zset_cmd(obj))
    elif kind == STREAM_TYPE:
        commands.extend(_stream_cmds(obj))
    if obj.expiration is not None:
        commands.append(_expire_cmd(obj))
    return commands


def cmd_lines_to_resp(cmds: Iterable[Sequence[Optional[bytes]]]) -> bytes:
    """Encode several command lines as consecutive RESP replies."""
    return b"".join(make_multi_bulk_resp(cmd) for cmd in cmds)


def write_object_to_resp(writer: Any, obj: Optional[BaseObject]) -> None:
    """Write the commands recreating ``obj`` to a binary stream, piece by piece."""
    for cmd in object_to_cmd(obj):
        writer.write(b"*%d\r\n" % len(cmd))
        for arg in cmd:
            if arg is None:
                writer.write(b"$-1\r\n")
                continue
            writer.write(b"$%d\r\n" % len(arg))
            # the argument may be a large value, so it is written unjoined
            writer.write(arg)
            writer.write(CRLF)
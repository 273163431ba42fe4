"""Decoder wrappers that filter objects by key pattern and expiration."""

from __future__ import annotations

import math
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

from .model import BaseObject

MAX_TIMESTAMP = (1 << 63) - 1

Callback = Callable[[BaseObject], bool]

_INT64 = re.compile(r"[+-]?[0-9]+\Z")
_LOOKAROUNDS = ("(?=", "(?!", "(?<=", "(?<!", "(?P=")


class _Decoder(Protocol):
    def parse(self, callback: Callback) -> Any: ...


@dataclass(frozen=True)
class RegexOption:
    """Keep only objects whose key matches the expression."""

    expr: str


@dataclass(frozen=True)
class NoExpiredOption:
    """Drop objects whose expiration has passed."""

    enabled: bool = True


@dataclass(frozen=True)
class ExpirationOption:
    """Select objects by expiration: "noexpire", "anyexpire" or "begin~end"."""

    expr: str


def with_regex_option(expr: str) -> RegexOption:
    """Build a key filter option."""
    return RegexOption(expr)


def with_no_expired_option() -> NoExpiredOption:
    """Build an option that drops expired keys."""
    return NoExpiredOption(True)


def with_expiration_option(expr: str) -> ExpirationOption:
    """Build an expiration range option."""
    return ExpirationOption(expr)


def _reject_unsupported(expr: str) -> None:
    """Refuse backreferences and lookarounds, which the pattern syntax lacks."""
    i = 0
    while i < len(expr):
        if expr[i] == "\\" and i + 1 < len(expr):
            nxt = expr[i + 1]
            if nxt in "89" or (
                nxt in "1234567" and not (i + 2 < len(expr) and expr[i + 2].isdigit())
            ):
                raise ValueError(f"illegal regex expression: {expr}")
            i += 2
            continue
        if expr.startswith(_LOOKAROUNDS, i):
            raise ValueError(f"illegal regex expression: {expr}")
        i += 1


def _compile(expr: str) -> re.Pattern[str]:
    _reject_unsupported(expr)
    try:
        return re.compile(expr)
    except re.error as exc:
        raise ValueError(f"illegal regex expression: {expr}") from exc


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo is not None else moment.astimezone()


def _unix(moment: datetime) -> int:
    return math.floor(_aware(moment).timestamp())


class RegexDecoder:
    """Passes on only objects whose key matches a pattern."""

    def __init__(self, decoder: _Decoder, expr: str) -> None:
        self.decoder = decoder
        self.pattern = _compile(expr)

    def parse(self, callback: Callback) -> Any:
        pattern = self.pattern

        def filtered(obj: BaseObject) -> bool:
            return callback(obj) if pattern.search(obj.key) else True

        return self.decoder.parse(filtered)


class NoExpiredDecoder:
    """Passes on objects that are persistent or not yet expired."""

    def __init__(self, decoder: _Decoder) -> None:
        self.decoder = decoder

    def parse(self, callback: Callback) -> Any:
        now = datetime.now(timezone.utc)

        def filtered(obj: BaseObject) -> bool:
            if obj.expiration is None or _aware(obj.expiration) > now:
                return callback(obj)
            return True

        return self.decoder.parse(filtered)


class ExpirationDecoder:
    """Passes on objects whose expiration lies in an inclusive range of Unix seconds."""

    def __init__(self, decoder: _Decoder, low: int, high: int) -> None:
        self.decoder = decoder
        self.low = low
        self.high = high

    def parse(self, callback: Callback) -> Any:
        def filtered(obj: BaseObject) -> bool:
            if obj.expiration is not None and self.low <= _unix(obj.expiration) <= self.high:
                return callback(obj)
            return True

        return self.decoder.parse(filtered)


class NoExpirationDecoder:
    """Passes on only objects without expiration."""

    def __init__(self, decoder: _Decoder) -> None:
        self.decoder = decoder

    def parse(self, callback: Callback) -> Any:
        def filtered(obj: BaseObject) -> bool:
            return callback(obj) if obj.expiration is None else True

        return self.decoder.parse(filtered)


def _parse_bound(text: str) -> int:
    if text == "now":
        return int(time.time())
    if text == "inf":
        return MAX_TIMESTAMP
    if not _INT64.match(text):
        raise ValueError(text)
    value = int(text)
    if not -(1 << 63) <= value <= MAX_TIMESTAMP:
        raise ValueError(text)
    return value


def parse_expire_expr(expr: str) -> tuple[int, int]:
    """Parse "begin~end", where each side is a Unix time, "now" or "inf"."""
    parts = expr.split("~")
    if len(parts) != 2:
        raise ValueError("illegal expr, should be timestamp1~timestamp2")
    try:
        low = _parse_bound(parts[0])
    except ValueError:
        raise ValueError("illegal range begin") from None
    try:
        high = _parse_bound(parts[1])
    except ValueError:
        raise ValueError("illegal range end") from None
    return low, high


def wrap_decoder(decoder: _Decoder, *args: Any) -> _Decoder:
    """Wrap ``decoder`` with the filters named by the options in ``args``.

    Options of other kinds are ignored; for each kind the last one given wins.
    """
    regex_opt: RegexOption | None = None
    no_expired_opt: NoExpiredOption | None = None
    expiration_opt: ExpirationOption | None = None
    for opt in args:
        if isinstance(opt, RegexOption):
            regex_opt = opt
        elif isinstance(opt, NoExpiredOption):
            no_expired_opt = opt
        elif isinstance(opt, ExpirationOption):
            expiration_opt = opt

    if regex_opt is not None:
        decoder = RegexDecoder(decoder, regex_opt.expr)
    if no_expired_opt is not None and no_expired_opt.enabled:
        decoder = NoExpiredDecoder(decoder)
    if expiration_opt is not None and expiration_opt.expr:
        expr = expiration_opt.expr
        if expr == "noexpire":
            decoder = NoExpirationDecoder(decoder)
        elif expr == "anyexpire":
            decoder = ExpirationDecoder(decoder, 0, MAX_TIMESTAMP)
        else:
            low, high = parse_expire_expr(expr)
            decoder = ExpirationDecoder(decoder, low, high)
    return decoder
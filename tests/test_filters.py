import time
from datetime import datetime, timedelta, timezone

import pytest

from rdbkit.filters import (
    ExpirationDecoder,
    NoExpirationDecoder,
    NoExpiredDecoder,
    RegexDecoder,
    parse_expire_expr,
    with_expiration_option,
    with_no_expired_option,
    with_regex_option,
    wrap_decoder,
)
from rdbkit.model import StringObject


class ListDecoder:
    def __init__(self, objects):
        self.objects = objects

    def parse(self, callback):
        for obj in self.objects:
            if not callback(obj):
                break


def collect(decoder):
    seen = []
    decoder.parse(lambda obj: seen.append(obj.key) or True)
    return seen


def at(ts):
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def expiration_source():
    return ListDecoder([
        StringObject(key="expiring", expiration=at(1751800000)),
        StringObject(key="persistent"),
    ])


def test_regex_filter():
    source = ListDecoder([StringObject(key=k) for k in ("list", "hash", "large")])
    assert collect(wrap_decoder(source, with_regex_option("^l.*"))) == ["list", "large"]


def test_regex_is_unanchored():
    source = ListDecoder([StringObject(key="abc"), StringObject(key="xyz")])
    assert collect(RegexDecoder(source, "b")) == ["abc"]


@pytest.mark.parametrize("expr", ["(", r"(i)\1", r"(1)\2", "a(?=b)"])
def test_illegal_regex(expr):
    with pytest.raises(ValueError, match="illegal regex expression"):
        wrap_decoder(ListDecoder([]), with_regex_option(expr))


def test_last_regex_option_wins():
    source = ListDecoder([StringObject(key="apple"), StringObject(key="berry")])
    dec = wrap_decoder(source, with_regex_option("^a"), with_regex_option("^b"))
    assert collect(dec) == ["berry"]


def test_no_options_returns_same_decoder():
    source = ListDecoder([])
    assert wrap_decoder(source, object(), 5) is source


def test_no_expired_filter():
    now = datetime.now(timezone.utc)
    source = ListDecoder([
        StringObject(key="past", expiration=now - timedelta(hours=1)),
        StringObject(key="future", expiration=now + timedelta(hours=1)),
        StringObject(key="forever"),
    ])
    assert collect(wrap_decoder(source, with_no_expired_option())) == ["future", "forever"]
    assert collect(NoExpiredDecoder(source)) == ["future", "forever"]


@pytest.mark.parametrize(
    "expr, expected",
    [
        ("0~1751817600", 1),
        ("1751817600~inf", 0),
        ("1751731200~1751817600", 1),
        ("1751817600~now", 0),
        ("noexpire", 1),
        ("anyexpire", 1),
    ],
)
def test_expiration_option(expr, expected):
    dec = wrap_decoder(expiration_source(), with_expiration_option(expr))
    assert len(collect(dec)) == expected


def test_noexpire_keeps_persistent_only():
    assert collect(NoExpirationDecoder(expiration_source())) == ["persistent"]


def test_expiration_range_is_inclusive():
    assert collect(ExpirationDecoder(expiration_source(), 1751800000, 1751800000)) == ["expiring"]


def test_parse_expire_expr_numbers():
    assert parse_expire_expr("0~1751817600") == (0, 1751817600)


def test_parse_expire_expr_inf_and_now():
    low, high = parse_expire_expr("now~inf")
    assert abs(low - int(time.time())) <= 2
    assert high == 2**63 - 1


@pytest.mark.parametrize(
    "expr, message",
    [
        ("12", "illegal expr"),
        ("1~2~3", "illegal expr"),
        ("x~1", "illegal range begin"),
        ("1~y", "illegal range end"),
        ("1_0~5", "illegal range begin"),
    ],
)
def test_parse_expire_expr_errors(expr, message):
    with pytest.raises(ValueError, match=message):
        parse_expire_expr(expr)


def test_bad_expiration_expr_in_wrap():
    with pytest.raises(ValueError, match="illegal range end"):
        wrap_decoder(ListDecoder([]), with_expiration_option("1~bad"))


def test_callback_stop_propagates():
    source = ListDecoder([StringObject(key=k) for k in ("a1", "a2", "a3")])
    dec = wrap_decoder(source, with_regex_option("a"))
    seen = []

    def stop_after_first(obj):
        seen.append(obj.key)
        return False

    dec.parse(stop_after_first)
    assert isinstance(dec, RegexDecoder)
    assert seen == ["a1"]
    assert collect(dec) == ["a1", "a2", "a3"]


def test_filters_compose():
    now = datetime.now(timezone.utc)
    source = ListDecoder([
        StringObject(key="la", expiration=now - timedelta(days=1)),
        StringObject(key="lb"),
        StringObject(key="xb"),
    ])
    dec = wrap_decoder(source, with_regex_option("^l"), with_no_expired_option())
    assert collect(dec) == ["lb"]
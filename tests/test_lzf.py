import random
import string

import pytest

from rdbkit.lzf import (
    DataCorruptionError,
    InsufficientBufferError,
    LzfError,
    compress,
    decompress,
)

LETTERS = string.ascii_letters + string.digits


def _rand_string(rng, n):
    return "".join(rng.choice(LETTERS) for _ in range(n))


@pytest.mark.parametrize("seed", range(10))
def test_round_trip_repeated_random_string(seed):
    rng = random.Random(seed)
    text = _rand_string(rng, 128) * 10
    packed = compress(text.encode())
    assert len(packed) < len(text)
    assert decompress(packed, len(text)) == text.encode()


def test_round_trip_long_runs():
    data = b"a" * 5000 + b"bc" * 700 + bytes(range(200)) * 3
    packed = compress(data)
    assert decompress(packed, len(data)) == data


def test_empty_input():
    assert compress(b"") == b""
    assert decompress(b"", 10) == b""


def test_incompressible_input_raises():
    with pytest.raises(InsufficientBufferError):
        compress(b"abcdefgh")


def test_single_byte_raises_insufficient_buffer():
    with pytest.raises(InsufficientBufferError):
        compress(b"x")


def test_decompress_literal_run():
    assert decompress(b"\x02abc", 3) == b"abc"


def test_decompress_overlapping_back_reference():
    assert decompress(b"\x00a\x40\x00", 5) == b"aaaaa"


def test_decompress_output_too_small_for_literal():
    with pytest.raises(InsufficientBufferError):
        decompress(b"\x02abc", 2)


def test_decompress_truncated_literal():
    with pytest.raises(DataCorruptionError):
        decompress(b"\x05ab", 10)


def test_decompress_reference_before_start():
    with pytest.raises(DataCorruptionError):
        decompress(b"\x20\x00", 10)


def test_decompress_reference_overflows_output():
    with pytest.raises(DataCorruptionError):
        decompress(b"\x00a\x40\x00", 4)


def test_errors_share_base_class():
    with pytest.raises(LzfError):
        decompress(b"\x20", 10)
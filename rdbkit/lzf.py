"""LZF compression and decompression as used for compressed RDB strings."""

from __future__ import annotations

_HTAB_LOG = 14
_HTAB_SIZE = 1 << _HTAB_LOG
_MAX_LIT = 1 << 5
_MAX_OFF = 1 << 13
_MAX_REF = (1 << 8) + (1 << 3)
_MASK32 = 0xFFFFFFFF


class LzfError(ValueError):
    """Base error for LZF failures."""


class InsufficientBufferError(LzfError):
    """The output would not fit in the available buffer."""

    def __init__(self, message: str = "insufficient buffer") -> None:
        super().__init__(message)


class DataCorruptionError(LzfError):
    """The compressed input is malformed."""

    def __init__(self, message: str = "data corruption") -> None:
        super().__init__(message)


def decompress(data: bytes | bytearray | memoryview, out_len: int) -> bytes:
    """Decompress ``data`` whose uncompressed size is at most ``out_len``."""
    src = bytes(data)
    if not src:
        return b""
    out = bytearray(out_len)
    in_len = len(src)
    ip = 0
    op = 0
    while ip < in_len:
        ctrl = src[ip]
        ip += 1
        if ctrl < _MAX_LIT:
            run = ctrl + 1
            if op + run > out_len:
                raise InsufficientBufferError()
            if ip + run > in_len:
                raise DataCorruptionError()
            out[op:op + run] = src[ip:ip + run]
            ip += run
            op += run
            continue

        length = ctrl >> 5
        ref = op - ((ctrl & 0x1F) << 8) - 1
        if ip >= in_len:
            raise DataCorruptionError()
        if length == 7:
            length += src[ip]
            ip += 1
            if ip >= in_len:
                raise DataCorruptionError()
        ref -= src[ip]
        ip += 1
        count = length + 2
        if op + count > out_len:
            raise DataCorruptionError()
        if ref < 0:
            raise DataCorruptionError()
        if ref + count <= op:
            out[op:op + count] = out[ref:ref + count]
        else:
            # Overlapping reference: bytes must be copied one at a time.
            for offset in range(count):
                out[op + offset] = out[ref + offset]
        op += count
    return bytes(out[:op])


def _slot(hval: int) -> int:
    return ((hval >> (3 * 8 - _HTAB_LOG)) - hval * 5) & (_HTAB_SIZE - 1)


def compress(data: bytes | bytearray | memoryview) -> bytes:
    """Compress ``data``; the result must be shorter than the input.

    Raises InsufficientBufferError when the data does not compress.
    """
    src = bytes(data)
    in_len = len(src)
    if in_len == 0:
        return b""
    out_len = in_len
    out = bytearray(out_len)
    htab = [0] * _HTAB_SIZE

    lit = 0
    op = 1
    ip = 0
    hval = (src[0] << 8) | src[1] if in_len >= 2 else 0

    while ip < in_len - 2:
        hval = ((hval << 8) | src[ip + 2]) & _MASK32
        hslot = _slot(hval)
        ref = htab[hslot]
        htab[hslot] = ip
        off = (ip - ref - 1) & _MASK32

        if (
            off < _MAX_OFF
            and ref > 0
            and src[ref] == src[ip]
            and src[ref + 1] == src[ip + 1]
            and src[ref + 2] == src[ip + 2]
        ):
            length = 2
            max_len = min(in_len - ip - length, _MAX_REF)

            if op + 3 + 1 >= out_len:
                nlit = 1 if lit == 0 else 0
                if op - nlit + 3 + 1 >= out_len:
                    raise InsufficientBufferError()

            out[op - lit - 1] = (lit - 1) & 0xFF
            if lit == 0:
                op -= 1

            while True:
                length += 1
                if length >= max_len or src[ref + length] != src[ip + length]:
                    break

            length -= 2
            ip += 1

            if length < 7:
                out[op] = ((off >> 8) + (length << 5)) & 0xFF
                op += 1
            else:
                out[op] = ((off >> 8) + (7 << 5)) & 0xFF
                out[op + 1] = (length - 7) & 0xFF
                op += 2

            out[op] = off & 0xFF
            op += 2
            lit = 0

            ip += length + 1
            if ip >= in_len - 2:
                break

            ip -= 2
            hval = (src[ip] << 8) | src[ip + 1]
            hval = ((hval << 8) | src[ip + 2]) & _MASK32
            htab[_slot(hval)] = ip
            ip += 1

            hval = ((hval << 8) | src[ip + 2]) & _MASK32
            htab[_slot(hval)] = ip
            ip += 1
        else:
            if op >= out_len:
                raise InsufficientBufferError()
            lit += 1
            out[op] = src[ip]
            op += 1
            ip += 1
            if lit == _MAX_LIT:
                out[op - lit - 1] = lit - 1
                lit = 0
                op += 1

    if op + 3 >= out_len:
        raise InsufficientBufferError()

    while ip < in_len:
        lit += 1
        out[op] = src[ip]
        op += 1
        ip += 1
        if lit == _MAX_LIT:
            out[op - lit - 1] = lit - 1
            lit = 0
            op += 1

    out[op - lit - 1] = (lit - 1) & 0xFF
    if lit == 0:
        op -= 1
    return bytes(out[:op])
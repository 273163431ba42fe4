"""CRC-64 checksum in the Jones flavour used by Redis RDB files.

Parameters: width 64, polynomial 0xad93d23594c935a9, reflected input and
output, initial value 0, no final xor.  check("123456789") == 0xe9c6d914c4b8d9ca.
"""

from __future__ import annotations

JONES = 0xAD93D23594C935A9

_MASK64 = 0xFFFFFFFFFFFFFFFF


def _reflect(poly: int) -> int:
    """Reverse the bit order of a 64-bit polynomial."""
    return int(f"{poly & _MASK64:064b}"[::-1], 2)


def _make_table(poly: int) -> tuple[int, ...]:
    table = []
    for value in range(256):
        crc = value
        for _ in range(8):
            crc = (crc >> 1) ^ poly if crc & 1 else crc >> 1
        table.append(crc)
    return tuple(table)


_TABLE = _make_table(_reflect(JONES))


def update(crc: int, data: bytes | bytearray | memoryview) -> int:
    """Return the checksum ``crc`` extended with the bytes of ``data``."""
    crc &= _MASK64
    table = _TABLE
    for byte in bytes(data):
        crc = table[(crc ^ byte) & 0xFF] ^ (crc >> 8)
    return crc


def checksum(data: bytes | bytearray | memoryview) -> int:
    """Return the CRC-64 Jones checksum of ``data``."""
    return update(0, data)


class Crc64Jones:
    """Incremental CRC-64 Jones hasher with a hashlib-like interface."""

    name = "crc64-jones"
    digest_size = 8
    block_size = 1

    def __init__(self, data: bytes | bytearray | memoryview = b"") -> None:
        self._crc = 0
        if data:
            self.update(data)

    def update(self, data: bytes | bytearray | memoryview) -> None:
        """Feed more bytes into the checksum."""
        self._crc = update(self._crc, data)

    def sum64(self) -> int:
        """Return the current checksum as an unsigned 64-bit integer."""
        return self._crc

    def digest(self) -> bytes:
        """Return the checksum as 8 bytes in little-endian order."""
        return self._crc.to_bytes(8, "little")

    def reset(self) -> None:
        """Start over from an empty input."""
        self._crc = 0
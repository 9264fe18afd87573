"""CompactSize integers and little-endian fixed-width fields.

CompactSize is the variable-length integer used by Bitcoin for counts and
length prefixes:

    value < 0xfd           1 byte
    value <= 0xffff        0xfd + 2 bytes LE
    value <= 0xffffffff    0xfe + 4 bytes LE
    otherwise              0xff + 8 bytes LE

Only the shortest form of a value is accepted when decoding.
"""

import struct
from typing import Tuple

from omni_transaction.errors import MalformedInput

MAX_COMPACT_SIZE = 0xFFFFFFFFFFFFFFFF


def encode_compact_size(value: int) -> bytes:
    """Encode an integer as a CompactSize."""
    if value < 0 or value > MAX_COMPACT_SIZE:
        raise ValueError(f"CompactSize out of range: {value}")
    if value < 0xFD:
        return bytes([value])
    if value <= 0xFFFF:
        return b"\xfd" + struct.pack("<H", value)
    if value <= 0xFFFFFFFF:
        return b"\xfe" + struct.pack("<I", value)
    return b"\xff" + struct.pack("<Q", value)


def decode_compact_size(data: bytes, offset: int = 0) -> Tuple[int, int]:
    """Decode a CompactSize at offset.

    Returns the value and the offset just past it.
    """
    reader = ByteReader(data, offset)
    value = reader.read_compact_size()
    return value, reader.offset


def encode_var_bytes(value: bytes) -> bytes:
    """Encode a byte string with a CompactSize length prefix."""
    return encode_compact_size(len(value)) + bytes(value)


def int32_le(value: int) -> bytes:
    return struct.pack("<i", value)


def uint32_le(value: int) -> bytes:
    return struct.pack("<I", value)


def uint64_le(value: int) -> bytes:
    return struct.pack("<Q", value)


class ByteReader:
    """Sequential reader over an immutable byte buffer."""

    def __init__(self, data: bytes, offset: int = 0):
        """Initialize the reader."""
        self.data = bytes(data)
        self.offset = offset

    @property
    def remaining(self) -> int:
        """Number of unread bytes."""
        return len(self.data) - self.offset

    def at_end(self) -> bool:
        """Check whether the whole buffer was consumed."""
        return self.offset >= len(self.data)

    def expect_end(self):
        """Raise if unread bytes remain."""
        if not self.at_end():
            raise MalformedInput(f"{self.remaining} trailing bytes after value")

    def peek(self, length: int = 1) -> bytes:
        """Return the next bytes without consuming them."""
        if length > self.remaining:
            raise MalformedInput(
                f"Buffer too short: need {length} bytes, have {self.remaining}"
            )
        return self.data[self.offset : self.offset + length]

    def read(self, length: int) -> bytes:
        """Consume and return length bytes."""
        value = self.peek(length)
        self.offset += length
        return value

    def _unpack(self, fmt: str) -> int:
        return struct.unpack(fmt, self.read(struct.calcsize(fmt)))[0]

    def read_u8(self) -> int:
        return self._unpack("<B")

    def read_u16_le(self) -> int:
        return self._unpack("<H")

    def read_i32_le(self) -> int:
        return self._unpack("<i")

    def read_u32_le(self) -> int:
        return self._unpack("<I")

    def read_u64_le(self) -> int:
        return self._unpack("<Q")

    def read_compact_size(self) -> int:
        """Read a minimally encoded CompactSize."""
        prefix = self.read_u8()
        if prefix < 0xFD:
            return prefix
        if prefix == 0xFD:
            value, minimum = self.read_u16_le(), 0xFD
        elif prefix == 0xFE:
            value, minimum = self.read_u32_le(), 0x10000
        else:
            value, minimum = self.read_u64_le(), 0x100000000
        if value < minimum:
            raise MalformedInput(f"Non-canonical CompactSize encoding of {value}")
        return value

    def read_var_bytes(self) -> bytes:
        """Read a CompactSize length prefixed byte string."""
        length = self.read_compact_size()
        if length > self.remaining:
            raise MalformedInput(
                f"Length prefix {length} exceeds remaining {self.remaining} bytes"
            )
        return self.read(length)

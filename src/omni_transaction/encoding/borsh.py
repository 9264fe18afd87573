"""Borsh binary object serialization primitives.

Integers are little-endian and fixed width, dynamic sequences carry a u32
element count, strings are UTF-8 with a u32 byte length, options are a single
0/1 discriminant byte followed by the value when present, and enums are a u8
variant tag followed by the variant's fields.
"""

import struct
from typing import Callable, List, Optional, Sequence, TypeVar

from omni_transaction.errors import MalformedInput

from .varint import ByteReader

T = TypeVar("T")

U128_MAX = (1 << 128) - 1


class BorshWriter:
    """Accumulate Borsh encoded values."""

    def __init__(self):
        """Initialize the writer."""
        self._parts: List[bytes] = []

    def getvalue(self) -> bytes:
        """Return everything written so far."""
        return b"".join(self._parts)

    def write_u8(self, value: int) -> "BorshWriter":
        self._parts.append(struct.pack("<B", value))
        return self

    def write_u32(self, value: int) -> "BorshWriter":
        self._parts.append(struct.pack("<I", value))
        return self

    def write_u64(self, value: int) -> "BorshWriter":
        self._parts.append(struct.pack("<Q", value))
        return self

    def write_u128(self, value: int) -> "BorshWriter":
        if value < 0 or value > U128_MAX:
            raise ValueError(f"u128 out of range: {value}")
        self._parts.append(value.to_bytes(16, "little"))
        return self

    def write_fixed(self, value: bytes) -> "BorshWriter":
        """Write a fixed-size array; the length is implied by the type."""
        self._parts.append(bytes(value))
        return self

    def write_bytes(self, value: bytes) -> "BorshWriter":
        """Write a Vec<u8>."""
        self.write_u32(len(value))
        self._parts.append(bytes(value))
        return self

    def write_string(self, value: str) -> "BorshWriter":
        return self.write_bytes(value.encode("utf-8"))

    def write_option(
        self, value: Optional[T], write: Callable[["BorshWriter", T], object]
    ) -> "BorshWriter":
        if value is None:
            return self.write_u8(0)
        self.write_u8(1)
        write(self, value)
        return self

    def write_vec(
        self, values: Sequence[T], write: Callable[["BorshWriter", T], object]
    ) -> "BorshWriter":
        self.write_u32(len(values))
        for value in values:
            write(self, value)
        return self


class BorshReader(ByteReader):
    """Read Borsh encoded values from a buffer."""

    def read_u32(self) -> int:
        return self.read_u32_le()

    def read_u64(self) -> int:
        return self.read_u64_le()

    def read_u128(self) -> int:
        return int.from_bytes(self.read(16), "little")

    def read_fixed(self, length: int) -> bytes:
        return self.read(length)

    def read_bytes(self) -> bytes:
        length = self.read_u32()
        if length > self.remaining:
            raise MalformedInput(
                f"Length prefix {length} exceeds remaining {self.remaining} bytes"
            )
        return self.read(length)

    def read_string(self) -> str:
        raw = self.read_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as err:
            raise MalformedInput("String is not valid UTF-8") from err

    def read_option(self, read: Callable[["BorshReader"], T]) -> Optional[T]:
        flag = self.read_u8()
        if flag == 0:
            return None
        if flag != 1:
            raise MalformedInput(f"Invalid option discriminant: {flag}")
        return read(self)

    def read_vec(self, read: Callable[["BorshReader"], T]) -> List[T]:
        count = self.read_u32()
        # every element takes at least one byte
        if count > self.remaining:
            raise MalformedInput(
                f"Sequence length {count} exceeds remaining {self.remaining} bytes"
            )
        return [read(self) for _ in range(count)]

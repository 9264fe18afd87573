"""Recursive length prefix helpers for EVM transactions.

Thin wrappers around the ``rlp`` library that pin down the canonical rules the
transaction codec relies on and translate library errors into MalformedInput.
"""

from typing import Any, List, Sequence, Union

import rlp
from rlp.codec import length_prefix
from rlp.exceptions import DecodingError, DeserializationError, SerializationError
from rlp.sedes import big_endian_int

from omni_transaction.errors import MalformedInput

RLPItem = Union[bytes, List["RLPItem"]]

SHORT_STRING_OFFSET = 0x80
SHORT_LIST_OFFSET = 0xC0


def encode_uint(value: int) -> bytes:
    """Minimal big-endian representation of a non-negative integer.

    Zero encodes as the empty byte string.
    """
    try:
        return big_endian_int.serialize(value)
    except SerializationError as err:
        raise ValueError(f"Cannot encode {value!r} as an unsigned integer") from err


def decode_uint(value: Any, name: str = "integer") -> int:
    """Decode a minimal big-endian integer, rejecting leading zero bytes."""
    if not isinstance(value, bytes):
        raise MalformedInput(f"Expected {name} to be a byte string, got a list")
    try:
        return big_endian_int.deserialize(value)
    except DeserializationError as err:
        raise MalformedInput(f"Non-canonical encoding of {name}") from err


def rlp_encode(item: Union[bytes, Sequence[Any]]) -> bytes:
    """RLP-encode a byte string or a (nested) sequence of byte strings."""
    return rlp.encode(item)


def rlp_decode(data: bytes) -> RLPItem:
    """Strictly decode a single RLP item spanning the whole buffer."""
    try:
        return rlp.decode(bytes(data), strict=True)
    except DecodingError as err:
        raise MalformedInput(f"Invalid RLP encoding: {err}") from err


def string_length_prefix(length: int) -> bytes:
    """Prefix written before a byte string payload of the given length."""
    return length_prefix(length, SHORT_STRING_OFFSET)


def list_length_prefix(length: int) -> bytes:
    """Prefix written before a list payload of the given total length."""
    return length_prefix(length, SHORT_LIST_OFFSET)

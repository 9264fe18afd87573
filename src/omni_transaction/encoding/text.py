"""Text encodings for byte strings at the API boundary."""

import binascii

import base58

from omni_transaction.errors import MalformedInput


def to_hex(value: bytes, prefix: bool = False) -> str:
    """Encode bytes as lowercase hex, optionally with a 0x prefix."""
    encoded = bytes(value).hex()
    return f"0x{encoded}" if prefix else encoded


def from_hex(value: str) -> bytes:
    """Decode a hex string, with or without a 0x prefix."""
    text = value.strip()
    if text[:2] in ("0x", "0X"):
        text = text[2:]
    try:
        return binascii.unhexlify(text)
    except (binascii.Error, ValueError) as err:
        raise MalformedInput(f"Invalid hex string: {value!r}") from err


def b58encode(value: bytes) -> str:
    """Encode bytes as base58 text."""
    return base58.b58encode(bytes(value)).decode()


def b58decode(value: str) -> bytes:
    """Decode base58 text."""
    try:
        return base58.b58decode(value)
    except ValueError as err:
        raise MalformedInput(f"Invalid base58 string: {value!r}") from err


def b58encode_check(value: bytes) -> str:
    """Encode bytes as base58check text (4-byte double-SHA256 checksum)."""
    return base58.b58encode_check(bytes(value)).decode()


def b58decode_check(value: str) -> bytes:
    """Decode base58check text, verifying the checksum."""
    try:
        return base58.b58decode_check(value)
    except ValueError as err:
        raise MalformedInput(f"Invalid base58check string: {value!r}") from err

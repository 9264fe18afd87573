"""Chain-agnostic primitive codecs."""

from .borsh import BorshReader, BorshWriter
from .rlp_codec import (
    decode_uint,
    encode_uint,
    list_length_prefix,
    rlp_decode,
    rlp_encode,
    string_length_prefix,
)
from .text import b58decode, b58decode_check, b58encode, b58encode_check, from_hex, to_hex
from .varint import (
    ByteReader,
    decode_compact_size,
    encode_compact_size,
    encode_var_bytes,
)

__all__ = [
    # Borsh
    "BorshReader",
    "BorshWriter",
    # RLP
    "decode_uint",
    "encode_uint",
    "list_length_prefix",
    "rlp_decode",
    "rlp_encode",
    "string_length_prefix",
    # Text
    "b58decode",
    "b58decode_check",
    "b58encode",
    "b58encode_check",
    "from_hex",
    "to_hex",
    # CompactSize
    "ByteReader",
    "decode_compact_size",
    "encode_compact_size",
    "encode_var_bytes",
]

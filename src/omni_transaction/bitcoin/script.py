"""Standard script templates.

Only the templates needed to pay to and spend from standard outputs are
provided; scripts are never executed.
"""

import struct
from typing import Tuple

OP_0 = 0x00
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
OP_DUP = 0x76
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_HASH160 = 0xA9
OP_CHECKSIG = 0xAC

P2PKH = "p2pkh"
P2SH = "p2sh"
P2WPKH = "p2wpkh"
P2WSH = "p2wsh"
NONSTANDARD = "nonstandard"


def push_data(data: bytes) -> bytes:
    """Smallest push operation for data."""
    length = len(data)
    if length < OP_PUSHDATA1:
        return bytes([length]) + data
    if length <= 0xFF:
        return bytes([OP_PUSHDATA1, length]) + data
    if length <= 0xFFFF:
        return bytes([OP_PUSHDATA2]) + struct.pack("<H", length) + data
    return bytes([OP_PUSHDATA4]) + struct.pack("<I", length) + data


def _expect_length(value: bytes, length: int, name: str):
    if len(value) != length:
        raise ValueError(f"{name} must be {length} bytes, got {len(value)}")


def p2pkh_script(pubkey_hash: bytes) -> bytes:
    """OP_DUP OP_HASH160 <20 bytes> OP_EQUALVERIFY OP_CHECKSIG."""
    _expect_length(pubkey_hash, 20, "pubkey hash")
    return (
        bytes([OP_DUP, OP_HASH160])
        + push_data(pubkey_hash)
        + bytes([OP_EQUALVERIFY, OP_CHECKSIG])
    )


def p2sh_script(script_hash: bytes) -> bytes:
    """OP_HASH160 <20 bytes> OP_EQUAL."""
    _expect_length(script_hash, 20, "script hash")
    return bytes([OP_HASH160]) + push_data(script_hash) + bytes([OP_EQUAL])


def p2wpkh_script(pubkey_hash: bytes) -> bytes:
    """OP_0 <20 bytes>."""
    _expect_length(pubkey_hash, 20, "pubkey hash")
    return bytes([OP_0]) + push_data(pubkey_hash)


def p2wsh_script(script_hash: bytes) -> bytes:
    """OP_0 <32 bytes>."""
    _expect_length(script_hash, 32, "script hash")
    return bytes([OP_0]) + push_data(script_hash)


def p2wpkh_script_code(pubkey_hash: bytes) -> bytes:
    """BIP143 script code for spending a P2WPKH output."""
    return p2pkh_script(pubkey_hash)


def p2pkh_script_sig(signature: bytes, public_key: bytes) -> bytes:
    """<signature+hashtype> <public key>."""
    return push_data(signature) + push_data(public_key)


def classify(script_pubkey: bytes) -> Tuple[str, bytes]:
    """Identify a standard output script and return its hash payload."""
    script = bytes(script_pubkey)
    if (
        len(script) == 25
        and script[:3] == bytes([OP_DUP, OP_HASH160, 20])
        and script[23:] == bytes([OP_EQUALVERIFY, OP_CHECKSIG])
    ):
        return P2PKH, script[3:23]
    if len(script) == 23 and script[:2] == bytes([OP_HASH160, 20]) and script[22] == OP_EQUAL:
        return P2SH, script[2:22]
    if len(script) == 22 and script[:2] == bytes([OP_0, 20]):
        return P2WPKH, script[2:]
    if len(script) == 34 and script[:2] == bytes([OP_0, 32]):
        return P2WSH, script[2:]
    return NONSTANDARD, b""

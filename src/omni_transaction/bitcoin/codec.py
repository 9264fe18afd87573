"""Bitcoin transaction wire format."""

import logging
from hashlib import sha256
from typing import Iterable, List, Sequence

from omni_transaction.encoding.text import to_hex
from omni_transaction.encoding.varint import (
    ByteReader,
    encode_compact_size,
    encode_var_bytes,
    int32_le,
    uint32_le,
    uint64_le,
)
from omni_transaction.errors import InvalidSignature, MalformedInput
from omni_transaction.models import freeze

from . import script
from .types import (
    SIGHASH_ALL,
    SIGHASH_ANYONECANPAY,
    SIGHASH_NONE,
    SIGHASH_SINGLE,
    BitcoinSignature,
    BitcoinTransaction,
    TxIn,
    TxOut,
)

LOGGER = logging.getLogger(__name__)

SEGWIT_MARKER = 0x00
SEGWIT_FLAG = 0x01

VALID_SIGHASH_TYPES = {
    base | anyone
    for base in (SIGHASH_ALL, SIGHASH_NONE, SIGHASH_SINGLE)
    for anyone in (0, SIGHASH_ANYONECANPAY)
}


def double_sha256(data: bytes) -> bytes:
    """SHA256(SHA256(data))."""
    return sha256(sha256(data).digest()).digest()


def build(
    inputs: Iterable[TxIn | dict],
    outputs: Iterable[TxOut | dict],
    locktime: int,
    version: int,
) -> BitcoinTransaction:
    """Build an immutable transaction from its parts."""
    return freeze(
        BitcoinTransaction,
        {
            "version": version,
            "inputs": tuple(inputs),
            "outputs": tuple(outputs),
            "locktime": locktime,
        },
    )


def serialize_input(txin: TxIn) -> bytes:
    """Outpoint, script-sig and sequence of an input."""
    return (
        serialize_outpoint(txin)
        + encode_var_bytes(txin.script_sig)
        + uint32_le(txin.sequence)
    )


def serialize_outpoint(txin: TxIn) -> bytes:
    """Previous txid (wire order) and output index."""
    return txin.txid[::-1] + uint32_le(txin.vout)


def serialize_output(txout: TxOut) -> bytes:
    return uint64_le(txout.value) + encode_var_bytes(txout.script_pubkey)


def serialize_witness(stack: Sequence[bytes]) -> bytes:
    return encode_compact_size(len(stack)) + b"".join(
        encode_var_bytes(item) for item in stack
    )


def serialize(tx: BitcoinTransaction, include_witness: bool = True) -> bytes:
    """Serialize to the wire format.

    The segwit marker and flag and the witness section are written only when
    include_witness is set and at least one input carries witness data.
    """
    segwit = include_witness and tx.has_witness
    parts: List[bytes] = [int32_le(tx.version)]
    if segwit:
        parts.append(bytes([SEGWIT_MARKER, SEGWIT_FLAG]))
    parts.append(encode_compact_size(len(tx.inputs)))
    parts.extend(serialize_input(txin) for txin in tx.inputs)
    parts.append(encode_compact_size(len(tx.outputs)))
    parts.extend(serialize_output(txout) for txout in tx.outputs)
    if segwit:
        parts.extend(serialize_witness(txin.witness) for txin in tx.inputs)
    parts.append(uint32_le(tx.locktime))
    return b"".join(parts)


def _read_transaction(reader: ByteReader, segwit: bool) -> BitcoinTransaction:
    version = reader.read_i32_le()
    if segwit:
        marker, flag = reader.read(2)
        if marker != SEGWIT_MARKER or flag != SEGWIT_FLAG:
            raise MalformedInput("Invalid segwit marker or flag")

    inputs = []
    for _ in range(reader.read_compact_size()):
        txid = reader.read(32)[::-1]
        vout = reader.read_u32_le()
        script_sig = reader.read_var_bytes()
        sequence = reader.read_u32_le()
        inputs.append(
            dict(txid=txid, vout=vout, script_sig=script_sig, sequence=sequence)
        )

    outputs = []
    for _ in range(reader.read_compact_size()):
        value = reader.read_u64_le()
        script_pubkey = reader.read_var_bytes()
        outputs.append(TxOut(value=value, script_pubkey=script_pubkey))

    if segwit:
        for txin in inputs:
            count = reader.read_compact_size()
            txin["witness"] = tuple(reader.read_var_bytes() for _ in range(count))
        if not any(txin["witness"] for txin in inputs):
            raise MalformedInput("Segwit encoding without witness data")

    locktime = reader.read_u32_le()
    reader.expect_end()
    return BitcoinTransaction(
        version=version,
        inputs=tuple(TxIn(**txin) for txin in inputs),
        outputs=tuple(outputs),
        locktime=locktime,
    )


def deserialize(data: bytes) -> BitcoinTransaction:
    """Parse a legacy or segwit transaction.

    A zero-input legacy transaction starts exactly like a segwit marker, so
    when the marker and flag are present and the segwit reading fails, the
    buffer is read again as legacy.
    """
    data = bytes(data)
    if len(data) >= 6 and data[4] == SEGWIT_MARKER and data[5] == SEGWIT_FLAG:
        try:
            return _read_transaction(ByteReader(data), segwit=True)
        except MalformedInput:
            LOGGER.debug("Segwit read failed, retrying as legacy transaction")
    tx = _read_transaction(ByteReader(data), segwit=False)
    LOGGER.debug(
        "Decoded bitcoin transaction with %d inputs, %d outputs",
        len(tx.inputs),
        len(tx.outputs),
    )
    return tx


def txid(tx: BitcoinTransaction) -> str:
    """Transaction id in display order."""
    return to_hex(double_sha256(serialize(tx, include_witness=False))[::-1])


def wtxid(tx: BitcoinTransaction) -> str:
    """Witness transaction id in display order."""
    return to_hex(double_sha256(serialize(tx))[::-1])


def _check_der(der: bytes):
    """Check the structure of a strict DER encoded ECDSA signature."""
    if len(der) < 8 or len(der) > 72:
        raise InvalidSignature(f"DER signature length {len(der)} out of range")
    if der[0] != 0x30 or der[1] != len(der) - 2:
        raise InvalidSignature("Invalid DER sequence header")
    offset = 2
    for name in ("r", "s"):
        if offset + 2 > len(der) or der[offset] != 0x02:
            raise InvalidSignature(f"Invalid DER integer header for {name}")
        length = der[offset + 1]
        value = der[offset + 2 : offset + 2 + length]
        if length == 0 or len(value) != length:
            raise InvalidSignature(f"Invalid DER length for {name}")
        if value[0] & 0x80:
            raise InvalidSignature(f"Negative DER integer for {name}")
        if length > 1 and value[0] == 0 and not value[1] & 0x80:
            raise InvalidSignature(f"Non-minimal DER integer for {name}")
        offset += 2 + length
    if offset != len(der):
        raise InvalidSignature("Trailing bytes in DER signature")


def validate_signature(signature: BitcoinSignature):
    """Check the shape of a signature before it is embedded."""
    _check_der(signature.der)
    if signature.sighash_type not in VALID_SIGHASH_TYPES:
        raise InvalidSignature(f"Invalid sighash type: {signature.sighash_type:#x}")
    key = signature.public_key
    if not (
        (len(key) == 33 and key[0] in (0x02, 0x03))
        or (len(key) == 65 and key[0] == 0x04)
    ):
        raise InvalidSignature("Public key must be a 33 or 65 byte SEC1 encoding")
    if signature.segwit and len(key) != 33:
        raise InvalidSignature("Witness spends require a compressed public key")


def attach_signatures(
    tx: BitcoinTransaction, signatures: Sequence[BitcoinSignature]
) -> BitcoinTransaction:
    """Return a new transaction with one signature attached per input.

    P2PKH signatures become the input's script-sig; P2WPKH signatures become
    its witness stack and leave the script-sig empty.
    """
    if len(signatures) != len(tx.inputs):
        raise InvalidSignature(
            f"Expected {len(tx.inputs)} signatures, got {len(signatures)}"
        )

    inputs = []
    for txin, signature in zip(tx.inputs, signatures):
        validate_signature(signature)
        blob = signature.der + bytes([signature.sighash_type])
        if signature.segwit:
            update = {"script_sig": b"", "witness": (blob, signature.public_key)}
        else:
            update = {
                "script_sig": script.p2pkh_script_sig(blob, signature.public_key),
                "witness": (),
            }
        inputs.append(txin.model_copy(update=update))

    return tx.model_copy(update={"inputs": tuple(inputs)})

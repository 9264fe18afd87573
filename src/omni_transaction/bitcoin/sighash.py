"""Signature hashes for legacy and segwit v0 inputs.

Both schemes return the 32-byte double-SHA256 digest that an ECDSA signer
signs directly.
"""

import logging
from functools import cached_property

from omni_transaction.encoding.varint import encode_var_bytes, int32_le, uint32_le, uint64_le
from omni_transaction.errors import InvalidSighash

from .codec import (
    VALID_SIGHASH_TYPES,
    double_sha256,
    serialize,
    serialize_outpoint,
    serialize_output,
)
from .types import (
    SIGHASH_ANYONECANPAY,
    SIGHASH_NONE,
    SIGHASH_SINGLE,
    BitcoinTransaction,
    TxOut,
)

LOGGER = logging.getLogger(__name__)

ZERO_HASH = bytes(32)
BLANK_OUTPUT_VALUE = 0xFFFFFFFFFFFFFFFF


def _check(tx: BitcoinTransaction, input_index: int, sighash_type: int):
    if sighash_type not in VALID_SIGHASH_TYPES:
        raise InvalidSighash(f"Undefined sighash type: {sighash_type:#x}")
    if not 0 <= input_index < len(tx.inputs):
        raise InvalidSighash(
            f"Input index {input_index} out of range for {len(tx.inputs)} inputs"
        )
    if sighash_type & 0x1F == SIGHASH_SINGLE and input_index >= len(tx.outputs):
        raise InvalidSighash(
            f"SIGHASH_SINGLE for input {input_index} without a matching output"
        )


def legacy_signing_payload(
    tx: BitcoinTransaction, input_index: int, script_code: bytes, sighash_type: int
) -> bytes:
    """Pre-segwit signature hash."""
    _check(tx, input_index, sighash_type)
    base_type = sighash_type & 0x1F
    anyone_can_pay = bool(sighash_type & SIGHASH_ANYONECANPAY)

    inputs = []
    for index, txin in enumerate(tx.inputs):
        if index == input_index:
            inputs.append(txin.model_copy(update={"script_sig": script_code, "witness": ()}))
        elif not anyone_can_pay:
            update = {"script_sig": b"", "witness": ()}
            if base_type in (SIGHASH_NONE, SIGHASH_SINGLE):
                update["sequence"] = 0
            inputs.append(txin.model_copy(update=update))

    outputs = list(tx.outputs)
    if base_type == SIGHASH_NONE:
        outputs = []
    elif base_type == SIGHASH_SINGLE:
        blank = TxOut(value=BLANK_OUTPUT_VALUE, script_pubkey=b"")
        outputs = [blank] * input_index + [outputs[input_index]]

    masked = tx.model_copy(update={"inputs": tuple(inputs), "outputs": tuple(outputs)})
    preimage = serialize(masked, include_witness=False) + uint32_le(sighash_type)
    return double_sha256(preimage)


class SegwitV0Sighasher:
    """BIP143 signature hashes for one transaction.

    hashPrevouts, hashSequence and hashOutputs are computed at most once and
    reused for every input.
    """

    def __init__(self, tx: BitcoinTransaction):
        """Initialize the sighasher."""
        self.tx = tx

    @cached_property
    def hash_prevouts(self) -> bytes:
        return double_sha256(b"".join(serialize_outpoint(txin) for txin in self.tx.inputs))

    @cached_property
    def hash_sequence(self) -> bytes:
        return double_sha256(b"".join(uint32_le(txin.sequence) for txin in self.tx.inputs))

    @cached_property
    def hash_outputs(self) -> bytes:
        return double_sha256(b"".join(serialize_output(txout) for txout in self.tx.outputs))

    def preimage(
        self, input_index: int, script_code: bytes, value: int, sighash_type: int
    ) -> bytes:
        """BIP143 pre-image for one input."""
        tx = self.tx
        _check(tx, input_index, sighash_type)
        base_type = sighash_type & 0x1F
        anyone_can_pay = bool(sighash_type & SIGHASH_ANYONECANPAY)
        txin = tx.inputs[input_index]

        hash_prevouts = ZERO_HASH if anyone_can_pay else self.hash_prevouts
        if anyone_can_pay or base_type in (SIGHASH_NONE, SIGHASH_SINGLE):
            hash_sequence = ZERO_HASH
        else:
            hash_sequence = self.hash_sequence
        if base_type == SIGHASH_SINGLE:
            hash_outputs = double_sha256(serialize_output(tx.outputs[input_index]))
        elif base_type == SIGHASH_NONE:
            hash_outputs = ZERO_HASH
        else:
            hash_outputs = self.hash_outputs

        return b"".join(
            (
                int32_le(tx.version),
                hash_prevouts,
                hash_sequence,
                serialize_outpoint(txin),
                encode_var_bytes(script_code),
                uint64_le(value),
                uint32_le(txin.sequence),
                hash_outputs,
                uint32_le(tx.locktime),
                uint32_le(sighash_type),
            )
        )

    def signing_payload(
        self, input_index: int, script_code: bytes, value: int, sighash_type: int
    ) -> bytes:
        """BIP143 signature hash for one input."""
        return double_sha256(self.preimage(input_index, script_code, value, sighash_type))


def signing_payload(
    tx: BitcoinTransaction,
    input_index: int,
    script_code: bytes,
    sighash_type: int,
    value: int | None = None,
) -> bytes:
    """Signature hash for an input.

    Passing the spent output's value selects the segwit v0 (BIP143) scheme;
    without it the legacy scheme is used.
    """
    if value is None:
        LOGGER.debug("Legacy sighash for input %d type %#x", input_index, sighash_type)
        return legacy_signing_payload(tx, input_index, script_code, sighash_type)
    LOGGER.debug("BIP143 sighash for input %d type %#x", input_index, sighash_type)
    return SegwitV0Sighasher(tx).signing_payload(
        input_index, script_code, value, sighash_type
    )

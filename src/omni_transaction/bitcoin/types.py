"""Bitcoin transaction models."""

from typing import Tuple

from omni_transaction.models import (
    Bytes32,
    FrozenModel,
    HexBytes,
    Int32,
    UInt32,
    UInt64,
)

SIGHASH_ALL = 0x01
SIGHASH_NONE = 0x02
SIGHASH_SINGLE = 0x03
SIGHASH_ANYONECANPAY = 0x80

SEQUENCE_FINAL = 0xFFFFFFFF


class TxIn(FrozenModel):
    """Transaction input.

    The previous transaction id is held in display order (as shown by block
    explorers and RPC) and reversed when written to the wire.
    """

    txid: Bytes32
    vout: UInt32
    script_sig: HexBytes = b""
    sequence: UInt32 = SEQUENCE_FINAL
    witness: Tuple[HexBytes, ...] = ()


class TxOut(FrozenModel):
    """Transaction output."""

    value: UInt64
    script_pubkey: HexBytes


class BitcoinTransaction(FrozenModel):
    """Bitcoin transaction, legacy or segwit."""

    version: Int32
    inputs: Tuple[TxIn, ...] = ()
    outputs: Tuple[TxOut, ...] = ()
    locktime: UInt32

    @property
    def has_witness(self) -> bool:
        """Whether any input carries witness data."""
        return any(txin.witness for txin in self.inputs)


class BitcoinSignature(FrozenModel):
    """ECDSA signature for one input.

    segwit selects a P2WPKH witness spend instead of a P2PKH script-sig.
    """

    der: HexBytes
    sighash_type: int = SIGHASH_ALL
    public_key: HexBytes
    segwit: bool = False

"""EVM transaction models."""

from enum import IntEnum
from typing import ClassVar, Tuple, Union

from omni_transaction.errors import InvalidSignature
from omni_transaction.models import (
    Bytes20,
    Bytes32,
    FrozenModel,
    HexBytes,
    UInt64,
    UInt256,
)

SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


class EvmTxType(IntEnum):
    """Transaction type byte (EIP-2718); legacy transactions have none."""

    LEGACY = 0x00
    ACCESS_LIST = 0x01
    FEE_MARKET = 0x02


class AccessListItem(FrozenModel):
    """Storage slots of one contract declared up front."""

    address: Bytes20
    storage_keys: Tuple[Bytes32, ...] = ()


class EvmSignature(FrozenModel):
    """Recoverable secp256k1 signature."""

    r: UInt256
    s: UInt256
    recovery_id: int

    @classmethod
    def from_bytes(cls, value: bytes) -> "EvmSignature":
        """Parse the 65-byte r || s || v form (v in 0, 1, 27 or 28)."""
        if len(value) != 65:
            raise InvalidSignature(f"Expected 65 signature bytes, got {len(value)}")
        v = value[64]
        if v in (27, 28):
            v -= 27
        return cls(
            r=int.from_bytes(value[:32], "big"),
            s=int.from_bytes(value[32:64], "big"),
            recovery_id=v,
        )

    def to_bytes(self) -> bytes:
        """65-byte r || s || recovery id."""
        return (
            self.r.to_bytes(32, "big")
            + self.s.to_bytes(32, "big")
            + bytes([self.recovery_id])
        )


class LegacyTransaction(FrozenModel):
    """Pre-EIP-2718 transaction.

    chain_id None means no replay protection (pre-EIP-155 signing).
    """

    type: ClassVar[EvmTxType] = EvmTxType.LEGACY
    chain_id: UInt64 | None = None
    nonce: UInt64
    gas_price: UInt256
    gas_limit: UInt256
    to: Bytes20 | None = None
    value: UInt256 = 0
    data: HexBytes = b""
    signature: EvmSignature | None = None


class AccessListTransaction(FrozenModel):
    """EIP-2930 transaction."""

    type: ClassVar[EvmTxType] = EvmTxType.ACCESS_LIST
    chain_id: UInt64
    nonce: UInt64
    gas_price: UInt256
    gas_limit: UInt256
    to: Bytes20 | None = None
    value: UInt256 = 0
    data: HexBytes = b""
    access_list: Tuple[AccessListItem, ...] = ()
    signature: EvmSignature | None = None


class FeeMarketTransaction(FrozenModel):
    """EIP-1559 transaction."""

    type: ClassVar[EvmTxType] = EvmTxType.FEE_MARKET
    chain_id: UInt64
    nonce: UInt64
    max_priority_fee_per_gas: UInt256 = 0
    max_fee_per_gas: UInt256
    gas_limit: UInt256
    to: Bytes20 | None = None
    value: UInt256 = 0
    data: HexBytes = b""
    access_list: Tuple[AccessListItem, ...] = ()
    signature: EvmSignature | None = None


EvmTransaction = Union[LegacyTransaction, AccessListTransaction, FeeMarketTransaction]

TRANSACTION_MODELS = {
    EvmTxType.LEGACY: LegacyTransaction,
    EvmTxType.ACCESS_LIST: AccessListTransaction,
    EvmTxType.FEE_MARKET: FeeMarketTransaction,
}

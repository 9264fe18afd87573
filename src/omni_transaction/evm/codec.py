"""EVM transaction encoding.

Legacy transactions are a bare RLP list; typed transactions (EIP-2718) are a
single type byte followed by the RLP list of their fields.
"""

import logging
from typing import Any, List, Mapping

from omni_transaction.encoding.rlp_codec import (
    RLPItem,
    decode_uint,
    encode_uint,
    rlp_decode,
    rlp_encode,
)
from omni_transaction.encoding.text import from_hex, to_hex
from omni_transaction.errors import (
    InvalidSignature,
    MalformedInput,
    UnsupportedVariant,
)
from omni_transaction.models import freeze

from .types import (
    SECP256K1_N,
    TRANSACTION_MODELS,
    AccessListItem,
    AccessListTransaction,
    EvmSignature,
    EvmTransaction,
    EvmTxType,
    FeeMarketTransaction,
    LegacyTransaction,
)

LOGGER = logging.getLogger(__name__)

LEGACY_V_OFFSET = 27
EIP155_V_OFFSET = 35


def parse_address(value: str) -> bytes:
    """Parse a 0x-prefixed 20-byte hex address."""
    raw = from_hex(value)
    if len(raw) != 20:
        raise MalformedInput(f"EVM address must be 20 bytes: {value!r}")
    return raw


def format_address(value: bytes) -> str:
    """Format a 20-byte address as lowercase 0x hex."""
    return to_hex(value, prefix=True)


def _variant(value: EvmTxType | int) -> EvmTxType:
    try:
        return EvmTxType(value)
    except ValueError:
        raise UnsupportedVariant(f"Unknown EVM transaction type: {value!r}") from None


def build(variant: EvmTxType | int, fields: Mapping[str, Any]) -> EvmTransaction:
    """Build an immutable transaction of the given variant."""
    model = TRANSACTION_MODELS[_variant(variant)]
    unknown = sorted(set(fields) - set(model.model_fields))
    if unknown:
        raise UnsupportedVariant(
            f"{model.__name__} has no field(s): {', '.join(unknown)}"
        )
    return freeze(model, fields)


def _access_list_items(tx: AccessListTransaction | FeeMarketTransaction) -> list:
    return [[item.address, list(item.storage_keys)] for item in tx.access_list]


def _fields(tx: EvmTransaction) -> List[Any]:
    """Unsigned fields in consensus order, without the replay protection tail."""
    to = tx.to or b""
    if isinstance(tx, LegacyTransaction):
        return [
            encode_uint(tx.nonce),
            encode_uint(tx.gas_price),
            encode_uint(tx.gas_limit),
            to,
            encode_uint(tx.value),
            tx.data,
        ]
    if isinstance(tx, AccessListTransaction):
        return [
            encode_uint(tx.chain_id),
            encode_uint(tx.nonce),
            encode_uint(tx.gas_price),
            encode_uint(tx.gas_limit),
            to,
            encode_uint(tx.value),
            tx.data,
            _access_list_items(tx),
        ]
    return [
        encode_uint(tx.chain_id),
        encode_uint(tx.nonce),
        encode_uint(tx.max_priority_fee_per_gas),
        encode_uint(tx.max_fee_per_gas),
        encode_uint(tx.gas_limit),
        to,
        encode_uint(tx.value),
        tx.data,
        _access_list_items(tx),
    ]


def legacy_v(tx: LegacyTransaction, signature: EvmSignature) -> int:
    """The v value of a legacy signature, with EIP-155 when chain_id is set."""
    if tx.chain_id is None:
        return LEGACY_V_OFFSET + signature.recovery_id
    return EIP155_V_OFFSET + 2 * tx.chain_id + signature.recovery_id


def serialize(tx: EvmTransaction) -> bytes:
    """Encode the transaction, signed when it carries a signature."""
    fields = _fields(tx)
    signature = tx.signature
    if isinstance(tx, LegacyTransaction):
        if signature is not None:
            fields += [
                encode_uint(legacy_v(tx, signature)),
                encode_uint(signature.r),
                encode_uint(signature.s),
            ]
        elif tx.chain_id is not None:
            fields += [encode_uint(tx.chain_id), b"", b""]
        encoded = rlp_encode(fields)
    else:
        if signature is not None:
            fields += [
                encode_uint(signature.recovery_id),
                encode_uint(signature.r),
                encode_uint(signature.s),
            ]
        encoded = bytes([tx.type]) + rlp_encode(fields)

    LOGGER.debug("Serialized %s (%d bytes)", type(tx).__name__, len(encoded))
    return encoded


def signing_payload(tx: EvmTransaction) -> bytes:
    """Pre-image to hash with Keccak-256 and sign.

    This is the unsigned encoding: for legacy transactions it includes the
    EIP-155 [chain_id, 0, 0] tail when chain_id is set.
    """
    if tx.signature is not None:
        tx = tx.model_copy(update={"signature": None})
    return serialize(tx)


def validate_signature(signature: EvmSignature):
    """Check signature scalars and recovery id before embedding."""
    if signature.recovery_id not in (0, 1):
        raise InvalidSignature(f"Recovery id must be 0 or 1, got {signature.recovery_id}")
    if not 0 < signature.r < SECP256K1_N:
        raise InvalidSignature("Signature r out of range")
    if not 0 < signature.s <= SECP256K1_N // 2:
        raise InvalidSignature("Signature s out of range (high-s is not accepted)")


def attach_signature(tx: EvmTransaction, signature: EvmSignature) -> EvmTransaction:
    """Return a new signed transaction."""
    if tx.signature is not None:
        raise InvalidSignature("Transaction is already signed")
    validate_signature(signature)
    return tx.model_copy(update={"signature": signature})


def _expect_bytes(item: RLPItem, name: str) -> bytes:
    if not isinstance(item, bytes):
        raise MalformedInput(f"Expected {name} to be a byte string")
    return item


def _expect_list(item: RLPItem, name: str, lengths: tuple = ()) -> list:
    if not isinstance(item, list):
        raise MalformedInput(f"Expected {name} to be a list")
    if lengths and len(item) not in lengths:
        raise MalformedInput(f"Unexpected number of {name} fields: {len(item)}")
    return item


def _decode_to(item: RLPItem) -> bytes | None:
    to = _expect_bytes(item, "to")
    if not to:
        return None
    if len(to) != 20:
        raise MalformedInput(f"Recipient must be 20 bytes, got {len(to)}")
    return to


def _decode_access_list(item: RLPItem) -> tuple:
    entries = []
    for entry in _expect_list(item, "access list"):
        address, keys = _expect_list(entry, "access list entry", (2,))
        address = _expect_bytes(address, "access list address")
        if len(address) != 20:
            raise MalformedInput("Access list address must be 20 bytes")
        storage_keys = []
        for key in _expect_list(keys, "storage keys"):
            key = _expect_bytes(key, "storage key")
            if len(key) != 32:
                raise MalformedInput("Storage key must be 32 bytes")
            storage_keys.append(key)
        entries.append(AccessListItem(address=address, storage_keys=tuple(storage_keys)))
    return tuple(entries)


def _decode_legacy(items: list) -> LegacyTransaction:
    _expect_list(items, "legacy transaction", (6, 9))
    nonce, gas_price, gas_limit, to, value, data = items[:6]
    fields = {
        "nonce": decode_uint(nonce, "nonce"),
        "gas_price": decode_uint(gas_price, "gas_price"),
        "gas_limit": decode_uint(gas_limit, "gas_limit"),
        "to": _decode_to(to),
        "value": decode_uint(value, "value"),
        "data": _expect_bytes(data, "data"),
    }
    if len(items) == 9:
        v = decode_uint(items[6], "v")
        r = decode_uint(items[7], "r")
        s = decode_uint(items[8], "s")
        if r == 0 and s == 0:
            fields["chain_id"] = v
        elif v in (LEGACY_V_OFFSET, LEGACY_V_OFFSET + 1):
            fields["signature"] = EvmSignature(r=r, s=s, recovery_id=v - LEGACY_V_OFFSET)
        elif v >= EIP155_V_OFFSET:
            fields["chain_id"] = (v - EIP155_V_OFFSET) // 2
            fields["signature"] = EvmSignature(
                r=r, s=s, recovery_id=(v - EIP155_V_OFFSET) % 2
            )
        else:
            raise MalformedInput(f"Invalid legacy signature v: {v}")
    return freeze(LegacyTransaction, fields)


def _decode_signature(items: list) -> EvmSignature:
    y_parity = decode_uint(items[0], "y_parity")
    if y_parity not in (0, 1):
        raise MalformedInput(f"Invalid y_parity: {y_parity}")
    return EvmSignature(
        r=decode_uint(items[1], "r"), s=decode_uint(items[2], "s"), recovery_id=y_parity
    )


def _decode_access_list_tx(items: list) -> AccessListTransaction:
    _expect_list(items, "access list transaction", (8, 11))
    fields = {
        "chain_id": decode_uint(items[0], "chain_id"),
        "nonce": decode_uint(items[1], "nonce"),
        "gas_price": decode_uint(items[2], "gas_price"),
        "gas_limit": decode_uint(items[3], "gas_limit"),
        "to": _decode_to(items[4]),
        "value": decode_uint(items[5], "value"),
        "data": _expect_bytes(items[6], "data"),
        "access_list": _decode_access_list(items[7]),
    }
    if len(items) == 11:
        fields["signature"] = _decode_signature(items[8:])
    return freeze(AccessListTransaction, fields)


def _decode_fee_market_tx(items: list) -> FeeMarketTransaction:
    _expect_list(items, "fee market transaction", (9, 12))
    fields = {
        "chain_id": decode_uint(items[0], "chain_id"),
        "nonce": decode_uint(items[1], "nonce"),
        "max_priority_fee_per_gas": decode_uint(items[2], "max_priority_fee_per_gas"),
        "max_fee_per_gas": decode_uint(items[3], "max_fee_per_gas"),
        "gas_limit": decode_uint(items[4], "gas_limit"),
        "to": _decode_to(items[5]),
        "value": decode_uint(items[6], "value"),
        "data": _expect_bytes(items[7], "data"),
        "access_list": _decode_access_list(items[8]),
    }
    if len(items) == 12:
        fields["signature"] = _decode_signature(items[9:])
    return freeze(FeeMarketTransaction, fields)


def deserialize(
    data: bytes, expected_variant: EvmTxType | int | None = None
) -> EvmTransaction:
    """Decode an unsigned or signed transaction.

    When expected_variant is given, a buffer of any other variant is rejected.
    """
    data = bytes(data)
    if not data:
        raise MalformedInput("Empty transaction buffer")

    first = data[0]
    if first >= 0xC0:
        variant, payload = EvmTxType.LEGACY, data
    elif first <= 0x7F:
        if first not in (EvmTxType.ACCESS_LIST, EvmTxType.FEE_MARKET):
            raise UnsupportedVariant(f"Unknown EVM transaction type: {first:#04x}")
        variant, payload = EvmTxType(first), data[1:]
    else:
        raise MalformedInput(f"Invalid leading byte: {first:#04x}")

    if expected_variant is not None and variant != _variant(expected_variant):
        raise MalformedInput(
            f"Expected {_variant(expected_variant).name} transaction, "
            f"found {variant.name}"
        )

    items = _expect_list(rlp_decode(payload), "transaction")
    if variant == EvmTxType.LEGACY:
        tx = _decode_legacy(items)
    elif variant == EvmTxType.ACCESS_LIST:
        tx = _decode_access_list_tx(items)
    else:
        tx = _decode_fee_market_tx(items)

    LOGGER.debug("Decoded %s (%d bytes)", type(tx).__name__, len(data))
    return tx

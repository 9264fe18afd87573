"""Test the EVM codec."""

import pytest

from omni_transaction.encoding import rlp_encode
from omni_transaction.errors import (
    IncompleteTransaction,
    InvalidSignature,
    MalformedInput,
    UnsupportedVariant,
)
from omni_transaction.evm import (
    AccessListItem,
    AccessListTransaction,
    EvmSignature,
    EvmTxType,
    FeeMarketTransaction,
    LegacyTransaction,
    attach_signature,
    build,
    deserialize,
    format_address,
    parse_address,
    serialize,
    signing_payload,
)
from omni_transaction.evm.types import SECP256K1_N

RECIPIENT = bytes.fromhex("35" * 20)

# EIP-155 example transaction
EIP155_FIELDS = dict(
    chain_id=1,
    nonce=9,
    gas_price=20 * 10**9,
    gas_limit=21000,
    to=RECIPIENT,
    value=10**18,
)
EIP155_PAYLOAD = (
    "ec098504a817c800825208943535353535353535353535353535353535353535880de0b6b3a764"
    "000080018080"
)
EIP155_SIGNATURE = EvmSignature(
    r=0x28EF61340BD939BC2195FE537567866003E1A15D3C71FF63E1590620AA636276,
    s=0x67CBE9D8997F761AECB703304B3800CCF555C9F3DC64214B297FB1966A3B6D83,
    recovery_id=0,
)
EIP155_SIGNED = (
    "f86c098504a817c800825208943535353535353535353535353535353535353535880de0b6b3a7"
    "6400008025a028ef61340bd939bc2195fe537567866003e1a15d3c71ff63e1590620aa636276a0"
    "67cbe9d8997f761aecb703304b3800ccf555c9f3dc64214b297fb1966a3b6d83"
)


def fee_market(**overrides) -> FeeMarketTransaction:
    fields = dict(
        chain_id=1,
        nonce=0,
        max_priority_fee_per_gas=1,
        max_fee_per_gas=1,
        gas_limit=21000,
        to=RECIPIENT,
        value=0,
        data=b"",
        access_list=(),
    )
    fields.update(overrides)
    return build(EvmTxType.FEE_MARKET, fields)


def test_eip155_signing_payload():
    tx = build(EvmTxType.LEGACY, EIP155_FIELDS)
    assert signing_payload(tx).hex() == EIP155_PAYLOAD
    assert serialize(tx).hex() == EIP155_PAYLOAD


def test_eip155_signed():
    tx = build(EvmTxType.LEGACY, EIP155_FIELDS)
    signed = attach_signature(tx, EIP155_SIGNATURE)
    assert serialize(signed).hex() == EIP155_SIGNED
    assert tx.signature is None
    assert signing_payload(signed) == signing_payload(tx)


def test_eip155_decode_signed():
    tx = deserialize(bytes.fromhex(EIP155_SIGNED))
    assert isinstance(tx, LegacyTransaction)
    assert tx.chain_id == 1
    assert tx.signature == EIP155_SIGNATURE
    assert tx == attach_signature(build(EvmTxType.LEGACY, EIP155_FIELDS), EIP155_SIGNATURE)


def test_fee_market_layout():
    encoded = serialize(fee_market())
    assert encoded[0] == EvmTxType.FEE_MARKET
    payload = encoded[2:]
    assert encoded[1] == 0xC0 + len(payload)
    assert encoded.hex() == (
        "02df0180010182520894" + RECIPIENT.hex() + "8080c0"
    )


def test_legacy_without_replay_protection():
    fields = {key: value for key, value in EIP155_FIELDS.items() if key != "chain_id"}
    tx = build(EvmTxType.LEGACY, fields)
    assert deserialize(serialize(tx)) == tx

    signed = attach_signature(tx, EvmSignature(r=1, s=2, recovery_id=1))
    assert serialize(signed)[-3:] == bytes.fromhex("1c0102")
    decoded = deserialize(serialize(signed))
    assert decoded == signed
    assert decoded.chain_id is None


@pytest.mark.parametrize(
    "tx",
    [
        build(EvmTxType.LEGACY, EIP155_FIELDS),
        build(
            EvmTxType.ACCESS_LIST,
            dict(
                chain_id=5,
                nonce=1,
                gas_price=1,
                gas_limit=50000,
                to=None,
                data=b"\x60\x80",
                access_list=(
                    AccessListItem(address=RECIPIENT, storage_keys=(bytes(32), b"\x01" * 32)),
                ),
            ),
        ),
        fee_market(),
        fee_market(to=None, data=bytes(100), value=10**30),
        fee_market(
            access_list=tuple(
                AccessListItem(
                    address=bytes([index]) * 20,
                    storage_keys=tuple(bytes([key]) * 32 for key in range(3)),
                )
                for index in range(64)
            )
        ),
    ],
)
def test_roundtrip(tx):
    assert deserialize(serialize(tx)) == tx
    signed = attach_signature(tx, EvmSignature(r=1, s=1, recovery_id=1))
    assert deserialize(serialize(signed)) == signed


def test_signing_payload_is_deterministic():
    tx = fee_market()
    assert signing_payload(tx) == signing_payload(tx)


def test_signing_payload_excludes_signature():
    tx = fee_market()
    signed = attach_signature(tx, EvmSignature(r=1, s=1, recovery_id=0))
    assert signing_payload(signed) == serialize(tx)
    assert serialize(signed) != serialize(tx)


def test_leading_zero_integer_rejected():
    encoded = rlp_encode([b"\x00\x09", b"\x01", b"\x52\x08", RECIPIENT, b"", b""])
    with pytest.raises(MalformedInput):
        deserialize(encoded)


def test_unknown_type_byte():
    with pytest.raises(UnsupportedVariant):
        deserialize(b"\x03" + rlp_encode([]))


@pytest.mark.parametrize("data", [b"", b"\x80", b"\xb8"])
def test_invalid_leading_byte(data: bytes):
    with pytest.raises(MalformedInput):
        deserialize(data)


def test_expected_variant_mismatch():
    encoded = serialize(fee_market())
    assert deserialize(encoded, expected_variant=EvmTxType.FEE_MARKET) == fee_market()
    with pytest.raises(MalformedInput):
        deserialize(encoded, expected_variant=EvmTxType.LEGACY)


def test_wrong_field_count():
    encoded = b"\x02" + rlp_encode([b"\x01"] * 8)
    with pytest.raises(MalformedInput):
        deserialize(encoded)


def test_short_recipient_rejected():
    encoded = rlp_encode([b"", b"\x01", b"\x52\x08", b"\x35" * 19, b"", b""])
    with pytest.raises(MalformedInput):
        deserialize(encoded)


def test_build_missing_fields():
    with pytest.raises(IncompleteTransaction) as error:
        build(EvmTxType.FEE_MARKET, dict(chain_id=1, nonce=0, gas_limit=21000))
    assert error.value.field == "max_fee_per_gas"


def test_build_rejects_foreign_field():
    with pytest.raises(UnsupportedVariant):
        build(EvmTxType.LEGACY, dict(EIP155_FIELDS, access_list=()))


def test_build_unknown_variant():
    with pytest.raises(UnsupportedVariant):
        build(7, EIP155_FIELDS)


def test_models_are_distinct_per_variant():
    assert isinstance(fee_market(), FeeMarketTransaction)
    assert not hasattr(build(EvmTxType.LEGACY, EIP155_FIELDS), "access_list")
    assert AccessListTransaction.type == EvmTxType.ACCESS_LIST


@pytest.mark.parametrize(
    "signature",
    [
        EvmSignature(r=1, s=1, recovery_id=2),
        EvmSignature(r=0, s=1, recovery_id=0),
        EvmSignature(r=SECP256K1_N, s=1, recovery_id=0),
        EvmSignature(r=1, s=SECP256K1_N // 2 + 1, recovery_id=0),
    ],
)
def test_invalid_signature(signature: EvmSignature):
    with pytest.raises(InvalidSignature):
        attach_signature(fee_market(), signature)


def test_attach_twice_rejected():
    signed = attach_signature(fee_market(), EvmSignature(r=1, s=1, recovery_id=0))
    with pytest.raises(InvalidSignature):
        attach_signature(signed, EvmSignature(r=1, s=1, recovery_id=0))


@pytest.mark.parametrize(("v", "recovery_id"), [(0, 0), (1, 1), (27, 0), (28, 1)])
def test_signature_from_bytes(v: int, recovery_id: int):
    raw = (5).to_bytes(32, "big") + (6).to_bytes(32, "big") + bytes([v])
    signature = EvmSignature.from_bytes(raw)
    assert (signature.r, signature.s, signature.recovery_id) == (5, 6, recovery_id)
    assert signature.to_bytes()[:64] == raw[:64]


def test_signature_from_bytes_length():
    with pytest.raises(InvalidSignature):
        EvmSignature.from_bytes(bytes(64))


def test_address_text():
    address = "0x" + "35" * 20
    assert parse_address(address) == RECIPIENT
    assert parse_address(address.upper().replace("0X", "0x")) == RECIPIENT
    assert format_address(RECIPIENT) == address


@pytest.mark.parametrize("address", ["0x" + "35" * 19, "0x" + "zz" * 20])
def test_invalid_address_text(address: str):
    with pytest.raises(MalformedInput):
        parse_address(address)

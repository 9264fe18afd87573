"""Test the Draft -> Unsigned -> Finalized lifecycle."""

import pytest

from omni_transaction import (
    BitcoinSpend,
    Chain,
    Finalized,
    IncompleteTransaction,
    InvalidSignature,
    Settings,
    TransactionBuilder,
    UnsupportedVariant,
)
from omni_transaction import bitcoin, evm, near
from omni_transaction.builder import Draft, Unsigned
from omni_transaction.bitcoin import script

RECIPIENT = "0x" + "35" * 20
PUBLIC_KEY = bytes([0x03]) + bytes(range(32))
DER = bytes.fromhex("3006020101020101")
NEAR_KEY = "ed25519:" + "1" * 32
BLOCK_HASH = bytes(range(32))


@pytest.fixture
def settings():
    return Settings(_env_file=None, evm_variant="fee_market", bitcoin_network="mainnet")


def bitcoin_draft(settings):
    return (
        TransactionBuilder.new(Chain.BITCOIN, settings=settings)
        .version(1)
        .input(bytes(32), 0)
        .output(5_000_000_000, script.p2pkh_script(bytes(20)))
        .locktime(0)
    )


def fee_market_draft(settings):
    return (
        TransactionBuilder.new("evm", settings=settings)
        .chain_id(1)
        .nonce(0)
        .max_priority_fee_per_gas(1)
        .max_fee_per_gas(1)
        .gas_limit(21000)
        .to(RECIPIENT)
        .value(0)
    )


def near_draft(settings):
    return (
        TransactionBuilder.new(Chain.NEAR, settings=settings)
        .signer_id("alice.near")
        .public_key(NEAR_KEY)
        .nonce(1)
        .receiver_id("bob.near")
        .block_hash(BLOCK_HASH)
        .transfer(1)
    )


def test_bitcoin_build(settings):
    unsigned = bitcoin_draft(settings).build()
    assert unsigned.chain == Chain.BITCOIN
    assert unsigned.serialize() == bitcoin.serialize(unsigned.transaction)
    assert unsigned.serialize()[:4].hex() == "01000000"
    assert unsigned.serialize()[-4:].hex() == "00000000"
    assert unsigned.transaction.inputs[0].sequence == 0xFFFFFFFF


def test_bitcoin_default_sequence_from_settings():
    settings = Settings(_env_file=None, bitcoin_sequence=0xFFFFFFFD)
    unsigned = bitcoin_draft(settings).build()
    assert unsigned.transaction.inputs[0].sequence == 0xFFFFFFFD


def test_bitcoin_pay_to_address():
    settings = Settings(_env_file=None, bitcoin_network="testnet")
    address = bitcoin.address_from_script_pubkey(script.p2wpkh_script(bytes(20)), "testnet")
    unsigned = bitcoin_draft(settings).pay_to_address(address, 1000).build()
    assert unsigned.transaction.outputs[1].script_pubkey == script.p2wpkh_script(bytes(20))


@pytest.mark.parametrize(
    ("draft", "field"),
    [
        (lambda s: TransactionBuilder.new("bitcoin", settings=s), "version"),
        (lambda s: TransactionBuilder.new("bitcoin", settings=s).version(2), "locktime"),
        (lambda s: TransactionBuilder.new("evm", settings=s), "chain_id"),
        (lambda s: TransactionBuilder.new("evm", settings=s).chain_id(1), "nonce"),
        (
            lambda s: TransactionBuilder.new("evm", settings=s)
            .chain_id(1)
            .nonce(0)
            .gas_limit(21000),
            "max_fee_per_gas",
        ),
        (
            lambda s: TransactionBuilder.new("evm", variant="legacy", settings=s)
            .chain_id(1)
            .nonce(0)
            .gas_limit(21000),
            "gas_price",
        ),
        (lambda s: TransactionBuilder.new("near", settings=s), "signer_id"),
        (
            lambda s: TransactionBuilder.new("near", settings=s)
            .signer_id("alice.near")
            .public_key(NEAR_KEY)
            .nonce(1)
            .receiver_id("bob.near"),
            "block_hash",
        ),
    ],
)
def test_build_missing_field(settings, draft, field: str):
    with pytest.raises(IncompleteTransaction) as error:
        draft(settings).build()
    assert error.value.field == field


@pytest.mark.parametrize("draft", [bitcoin_draft, fee_market_draft, near_draft])
def test_draft_cannot_serialize(settings, draft):
    with pytest.raises(IncompleteTransaction):
        draft(settings).serialize()


def test_draft_setters_do_not_mutate(settings):
    base = TransactionBuilder.new("bitcoin", settings=settings).version(1)
    first = base.locktime(0)
    second = base.locktime(100)
    assert first.build().transaction.locktime == 0
    assert second.build().transaction.locktime == 100
    with pytest.raises(IncompleteTransaction):
        base.build()


def test_evm_fee_market_scenario(settings):
    unsigned = fee_market_draft(settings).build()
    encoded = unsigned.serialize()
    assert encoded[0] == evm.EvmTxType.FEE_MARKET
    assert encoded[1] == 0xC0 + len(encoded) - 2
    assert unsigned.signing_payload() == unsigned.signing_payload() == encoded


def test_evm_variant_from_settings():
    settings = Settings(_env_file=None, evm_variant="access_list")
    draft = TransactionBuilder.new("evm", settings=settings)
    assert draft.variant == evm.EvmTxType.ACCESS_LIST


@pytest.mark.parametrize(
    ("variant", "setter"),
    [
        ("legacy", lambda d: d.max_fee_per_gas(1)),
        ("legacy", lambda d: d.access_list([])),
        ("access_list", lambda d: d.max_priority_fee_per_gas(1)),
        ("fee_market", lambda d: d.gas_price(1)),
    ],
)
def test_evm_variant_exclusive_fields(settings, variant: str, setter):
    draft = TransactionBuilder.new("evm", variant=variant, settings=settings)
    with pytest.raises(UnsupportedVariant):
        setter(draft)


def test_evm_legacy_without_replay_protection(settings):
    draft = TransactionBuilder.new(
        "evm", variant=evm.EvmTxType.LEGACY, replay_protection=False, settings=settings
    )
    with pytest.raises(UnsupportedVariant):
        draft.chain_id(1)
    unsigned = draft.nonce(0).gas_price(1).gas_limit(21000).to(RECIPIENT).build()
    assert unsigned.transaction.chain_id is None
    finalized = unsigned.attach_signature(evm.EvmSignature(r=1, s=1, recovery_id=1))
    assert evm.deserialize(finalized.serialize()).signature.recovery_id == 1


def test_evm_contract_creation(settings):
    unsigned = (
        fee_market_draft(settings).to(None).data("0x6080").build()
    )
    assert unsigned.transaction.to is None
    assert unsigned.transaction.data == b"\x60\x80"


@pytest.mark.parametrize("variant", ["solana", 7])
def test_unknown_evm_variant(settings, variant):
    with pytest.raises(UnsupportedVariant):
        TransactionBuilder.new("evm", variant=variant, settings=settings)


def test_unknown_chain(settings):
    with pytest.raises(UnsupportedVariant):
        TransactionBuilder.new("solana", settings=settings)


def test_variant_only_for_evm(settings):
    with pytest.raises(UnsupportedVariant):
        TransactionBuilder.new("near", variant="legacy", settings=settings)


def test_draft_without_build_cannot_be_created(settings):
    class PartialDraft(Draft):
        chain = Chain.EVM

    with pytest.raises(TypeError):
        PartialDraft(settings)


def test_unsigned_without_serialize_cannot_be_created(settings):
    class PartialUnsigned(Unsigned):
        chain = Chain.EVM

    tx = bitcoin_draft(settings).build().transaction
    with pytest.raises(TypeError):
        PartialUnsigned(tx)


def test_attach_twice_gives_independent_values(settings):
    unsigned = fee_market_draft(settings).build()
    first = unsigned.attach_signature(evm.EvmSignature(r=1, s=1, recovery_id=0))
    second = unsigned.attach_signature(evm.EvmSignature(r=2, s=2, recovery_id=1))
    assert isinstance(first, Finalized)
    assert first is not second
    assert first.serialize() != second.serialize()
    assert first.transaction.signature.r == 1
    assert unsigned.transaction.signature is None
    assert unsigned.serialize() == unsigned.signing_payload()


def test_finalized_is_read_only(settings):
    finalized = fee_market_draft(settings).build().attach_signature(
        evm.EvmSignature(r=1, s=1, recovery_id=0)
    )
    with pytest.raises(AttributeError):
        finalized.transaction = None
    with pytest.raises(Exception):
        finalized.transaction.nonce = 5
    assert not hasattr(finalized, "attach_signature")


def test_evm_attach_raw_signature(settings):
    unsigned = fee_market_draft(settings).build()
    raw = (1).to_bytes(32, "big") + (2).to_bytes(32, "big") + b"\x1c"
    finalized = unsigned.attach_signature(raw)
    assert finalized.transaction.signature == evm.EvmSignature(r=1, s=2, recovery_id=1)


@pytest.mark.parametrize("raw", [bytes(64), bytes(65), bytes(32) + b"\x01" + bytes(31) + b"\x05"])
def test_evm_attach_invalid_raw_signature(settings, raw: bytes):
    with pytest.raises(InvalidSignature):
        fee_market_draft(settings).build().attach_signature(raw)


def test_near_transfer_scenario(settings):
    unsigned = near_draft(settings).build()
    encoded = unsigned.serialize()
    assert len(encoded) == 14 + 33 + 8 + 12 + 32 + 4 + 17
    assert near.deserialize(encoded) == unsigned.transaction
    assert unsigned.signing_payload() == encoded


def test_near_actions_in_order(settings):
    unsigned = (
        near_draft(settings)
        .function_call("set", b"{}", 30 * 10**12)
        .action(near.CreateAccountAction())
        .build()
    )
    assert [type(action) for action in unsigned.transaction.actions] == [
        near.TransferAction,
        near.FunctionCallAction,
        near.CreateAccountAction,
    ]


def test_near_attach_raw_signature(settings):
    unsigned = near_draft(settings).build()
    finalized = unsigned.attach_signature(bytes(64))
    assert finalized.serialize() == unsigned.serialize() + b"\x00" + bytes(64)
    with pytest.raises(InvalidSignature):
        unsigned.attach_signature(bytes(65))


def test_bitcoin_attach_signature(settings):
    unsigned = bitcoin_draft(settings).build()
    finalized = unsigned.attach_signature(
        bitcoin.BitcoinSignature(der=DER, public_key=PUBLIC_KEY)
    )
    assert finalized.transaction.inputs[0].script_sig
    assert unsigned.transaction.inputs[0].script_sig == b""


@pytest.mark.asyncio
async def test_evm_sign_with_sync_signer(settings):
    unsigned = fee_market_draft(settings).build()
    seen = []

    def sign(message: bytes) -> bytes:
        seen.append(message)
        return (7).to_bytes(32, "big") + (8).to_bytes(32, "big") + b"\x00"

    finalized = await unsigned.sign_with(sign)
    assert seen == [unsigned.signing_payload()]
    assert finalized.transaction.signature == evm.EvmSignature(r=7, s=8, recovery_id=0)


@pytest.mark.asyncio
async def test_near_sign_with_async_signer(settings):
    unsigned = near_draft(settings).build()

    async def sign(message: bytes) -> bytes:
        assert message == unsigned.signing_payload()
        return bytes(range(64))

    finalized = await unsigned.sign_with(sign)
    assert finalized.transaction.signature.data == bytes(range(64))
    assert near.deserialize_signed(finalized.serialize()) == finalized.transaction


@pytest.mark.asyncio
async def test_bitcoin_sign_with(settings):
    unsigned = bitcoin_draft(settings).input(bytes(range(32)), 1).build()
    script_code = script.p2pkh_script(bytes(20))
    spends = [
        BitcoinSpend(script_code=script_code, public_key=PUBLIC_KEY),
        BitcoinSpend(script_code=script_code, public_key=PUBLIC_KEY, value=10_000),
    ]
    digests = []

    async def sign(digest: bytes) -> bytes:
        digests.append(digest)
        return DER

    finalized = await unsigned.sign_with(sign, spends)
    assert digests == [
        unsigned.signing_payload(0, script_code),
        unsigned.signing_payload(1, script_code, value=10_000),
    ]
    legacy_input, segwit_input = finalized.transaction.inputs
    assert legacy_input.script_sig and not legacy_input.witness
    assert segwit_input.witness == (DER + b"\x01", PUBLIC_KEY)
    assert bitcoin.deserialize(finalized.serialize()) == finalized.transaction


@pytest.mark.asyncio
async def test_bitcoin_sign_with_wrong_spend_count(settings):
    unsigned = bitcoin_draft(settings).build()
    with pytest.raises(InvalidSignature):
        await unsigned.sign_with(lambda digest: DER, [])

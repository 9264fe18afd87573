"""Test building transactions from JSON-RPC objects."""

import json

import pytest

from omni_transaction.errors import MalformedInput, UnsupportedVariant
from omni_transaction.evm import (
    AccessListTransaction,
    EvmTxType,
    FeeMarketTransaction,
    LegacyTransaction,
    build,
    transaction_from_json,
)

RECIPIENT = "0x" + "35" * 20


def test_fee_market_from_json():
    tx = transaction_from_json(
        {
            "chainId": "0x1",
            "nonce": "0x0",
            "maxPriorityFeePerGas": "0x1",
            "maxFeePerGas": "0x1",
            "gas": "0x5208",
            "to": RECIPIENT,
            "value": "0x0",
            "input": "0x",
        }
    )
    assert isinstance(tx, FeeMarketTransaction)
    assert tx == build(
        EvmTxType.FEE_MARKET,
        dict(
            chain_id=1,
            nonce=0,
            max_priority_fee_per_gas=1,
            max_fee_per_gas=1,
            gas_limit=21000,
            to=RECIPIENT,
        ),
    )


def test_legacy_from_json_text():
    tx = transaction_from_json(
        json.dumps(
            {
                "chainId": 1,
                "nonce": 9,
                "gasPrice": "20000000000",
                "gas": 21000,
                "to": RECIPIENT,
                "value": "0xde0b6b3a7640000",
                "from": "0x" + "11" * 20,
            }
        )
    )
    assert isinstance(tx, LegacyTransaction)
    assert tx.gas_price == 20 * 10**9
    assert tx.value == 10**18


def test_access_list_from_json():
    tx = transaction_from_json(
        {
            "type": "0x1",
            "chainId": "0x5",
            "nonce": "0x1",
            "gasPrice": "0x1",
            "gas": "0xc350",
            "to": "",
            "accessList": [
                {"address": RECIPIENT, "storageKeys": ["0x" + "00" * 32]},
            ],
        }
    )
    assert isinstance(tx, AccessListTransaction)
    assert tx.to is None
    assert tx.access_list[0].storage_keys == (bytes(32),)


def test_fee_market_from_rpc_object():
    # eth_getTransactionByHash result; gasPrice is the effective price paid
    tx = transaction_from_json(
        {
            "blockHash": "0x" + "ab" * 32,
            "blockNumber": "0x10",
            "from": "0x" + "11" * 20,
            "gas": "0x5208",
            "gasPrice": "0x3",
            "maxFeePerGas": "0x3",
            "maxPriorityFeePerGas": "0x1",
            "hash": "0x" + "cd" * 32,
            "input": "0x",
            "nonce": "0x0",
            "to": RECIPIENT,
            "transactionIndex": "0x0",
            "value": "0x0",
            "type": "0x2",
            "accessList": [],
            "chainId": "0x1",
            "v": "0x1",
            "yParity": "0x1",
            "r": "0x" + "01" * 32,
            "s": "0x" + "02" * 32,
        }
    )
    assert isinstance(tx, FeeMarketTransaction)
    assert tx.signature is None
    assert tx == build(
        EvmTxType.FEE_MARKET,
        dict(
            chain_id=1,
            nonce=0,
            max_priority_fee_per_gas=1,
            max_fee_per_gas=3,
            gas_limit=21000,
            to=RECIPIENT,
        ),
    )


def test_unknown_type():
    with pytest.raises(UnsupportedVariant):
        transaction_from_json({"type": "0x5", "nonce": 0, "gas": 1, "gasPrice": 1})


@pytest.mark.parametrize(
    "value",
    [
        "{not json",
        {"nonce": "abc", "gas": 1, "gasPrice": 1},
        {"nonce": 0, "gasPrice": 1},
        {"nonce": 0, "gas": 1, "gasPrice": 1, "to": "0x1234"},
    ],
)
def test_invalid_json(value):
    with pytest.raises(MalformedInput):
        transaction_from_json(value)

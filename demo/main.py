"""Demo script."""

import asyncio
from hashlib import sha256
import logging
from os import getenv
import sys

from rich.console import Console
from rich.table import Table

from omni_transaction import BitcoinSpend, Chain, Settings, TransactionBuilder
from omni_transaction.bitcoin import script
from omni_transaction.encoding import b58encode, to_hex


LOG_LEVEL = getenv("LOG_LEVEL", "info")

PUBLIC_KEY = bytes.fromhex(
    "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
)
PUBKEY_HASH = bytes.fromhex("751e76e8199196d454941c45d1b3a323f1433bd6")


def logging_to_stdout():
    logging.basicConfig(
        stream=sys.stdout,
        level=logging.WARNING,
        format="[%(levelname)s] %(name)s %(message)s",
    )
    logging.getLogger("omni_transaction").setLevel(LOG_LEVEL.upper())


# Stand-ins for a wallet or custody service; they return well-formed but
# meaningless signatures.


async def sign_bitcoin(digest: bytes) -> bytes:
    r = b"\x01" + digest[:31]
    s = b"\x02" + digest[1:32]
    return b"\x30\x44\x02\x20" + r + b"\x02\x20" + s


def sign_evm(payload: bytes) -> bytes:
    digest = sha256(payload).digest()
    return b"\x01" + digest[1:] + b"\x02" + digest[1:] + b"\x00"


async def sign_near(payload: bytes) -> bytes:
    digest = sha256(payload).digest()
    return digest + digest


async def bitcoin(settings: Settings):
    unsigned = (
        TransactionBuilder.new(Chain.BITCOIN, settings=settings)
        .version(2)
        .input("a" * 64, 0)
        .output(90_000, script.p2wpkh_script(PUBKEY_HASH))
        .locktime(0)
        .build()
    )
    spend = BitcoinSpend(
        script_code=script.p2wpkh_script_code(PUBKEY_HASH),
        public_key=PUBLIC_KEY,
        value=100_000,
    )
    payload = unsigned.signing_payload(0, spend.script_code, value=spend.value)
    finalized = await unsigned.sign_with(sign_bitcoin, [spend])
    return unsigned.serialize(), payload, finalized.serialize()


async def evm(settings: Settings):
    unsigned = (
        TransactionBuilder.new(Chain.EVM, settings=settings)
        .chain_id(1)
        .nonce(0)
        .max_priority_fee_per_gas(1)
        .max_fee_per_gas(1)
        .gas_limit(21000)
        .to("0x" + "35" * 20)
        .build()
    )
    finalized = await unsigned.sign_with(sign_evm)
    return unsigned.serialize(), unsigned.signing_payload(), finalized.serialize()


async def near(settings: Settings):
    unsigned = (
        TransactionBuilder.new(Chain.NEAR, settings=settings)
        .signer_id("alice.near")
        .public_key("ed25519:" + b58encode(bytes(range(32))))
        .nonce(1)
        .receiver_id("bob.near")
        .block_hash(bytes(32))
        .transfer(10**24)
        .build()
    )
    finalized = await unsigned.sign_with(sign_near)
    return unsigned.serialize(), unsigned.signing_payload(), finalized.serialize()


def short(value: bytes, limit: int = 48) -> str:
    text = to_hex(value)
    return text if len(text) <= limit else f"{text[:limit]}..."


async def main():
    """Build, sign and print one transaction per chain."""
    logging_to_stdout()
    settings = Settings()

    table = Table(title="Transactions", show_header=True, header_style="bold")
    table.add_column("Chain")
    table.add_column("Unsigned")
    table.add_column("Signing payload")
    table.add_column("Finalized")
    for chain, demo in ((Chain.BITCOIN, bitcoin), (Chain.EVM, evm), (Chain.NEAR, near)):
        unsigned, payload, finalized = await demo(settings)
        table.add_row(chain.value, short(unsigned), short(payload), short(finalized))

    console = Console(width=160)
    console.print(table)


if __name__ == "__main__":
    asyncio.run(main())

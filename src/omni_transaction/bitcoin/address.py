"""Conversion between addresses and output scripts."""

import bech32

from omni_transaction.config import BitcoinNetwork, NetworkConfig
from omni_transaction.encoding.text import b58decode_check, b58encode_check
from omni_transaction.errors import MalformedInput

from . import script


def _resolve(network: BitcoinNetwork | str) -> BitcoinNetwork:
    if isinstance(network, BitcoinNetwork):
        return network
    return NetworkConfig.load().bitcoin_network(network)


def script_pubkey_from_address(
    address: str, network: BitcoinNetwork | str = "mainnet"
) -> bytes:
    """Output script paying to address on network.

    Base58check (P2PKH, P2SH) and bech32 segwit v0 (P2WPKH, P2WSH) addresses
    are supported. Addresses of another network are rejected.
    """
    network = _resolve(network)

    if address.lower().startswith(network.bech32_hrp + "1"):
        version, program = bech32.decode(network.bech32_hrp, address)
        if version is None:
            raise MalformedInput(f"Invalid bech32 address: {address}")
        if version != 0:
            raise MalformedInput(f"Unsupported witness version {version}: {address}")
        program = bytes(program)
        if len(program) == 20:
            return script.p2wpkh_script(program)
        return script.p2wsh_script(program)

    payload = b58decode_check(address)
    if len(payload) != 21:
        raise MalformedInput(f"Invalid base58 address length: {address}")
    prefix, digest = payload[0], payload[1:]
    if prefix == network.p2pkh_prefix:
        return script.p2pkh_script(digest)
    if prefix == network.p2sh_prefix:
        return script.p2sh_script(digest)
    raise MalformedInput(f"Address {address} does not belong to {network.name}")


def address_from_script_pubkey(
    script_pubkey: bytes, network: BitcoinNetwork | str = "mainnet"
) -> str:
    """Address for a standard output script on network."""
    network = _resolve(network)
    kind, digest = script.classify(script_pubkey)
    if kind == script.P2PKH:
        return b58encode_check(bytes([network.p2pkh_prefix]) + digest)
    if kind == script.P2SH:
        return b58encode_check(bytes([network.p2sh_prefix]) + digest)
    if kind in (script.P2WPKH, script.P2WSH):
        return bech32.encode(network.bech32_hrp, 0, list(digest))
    raise MalformedInput("Script has no standard address form")

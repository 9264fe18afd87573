"""Bitcoin transaction codec."""

from .address import address_from_script_pubkey, script_pubkey_from_address
from .codec import (
    attach_signatures,
    build,
    deserialize,
    double_sha256,
    serialize,
    txid,
    wtxid,
)
from .sighash import SegwitV0Sighasher, legacy_signing_payload, signing_payload
from .types import (
    SEQUENCE_FINAL,
    SIGHASH_ALL,
    SIGHASH_ANYONECANPAY,
    SIGHASH_NONE,
    SIGHASH_SINGLE,
    BitcoinSignature,
    BitcoinTransaction,
    TxIn,
    TxOut,
)

__all__ = [
    # Models
    "BitcoinSignature",
    "BitcoinTransaction",
    "TxIn",
    "TxOut",
    "SEQUENCE_FINAL",
    "SIGHASH_ALL",
    "SIGHASH_ANYONECANPAY",
    "SIGHASH_NONE",
    "SIGHASH_SINGLE",
    # Codec
    "attach_signatures",
    "build",
    "deserialize",
    "double_sha256",
    "serialize",
    "txid",
    "wtxid",
    # Sighash
    "SegwitV0Sighasher",
    "legacy_signing_payload",
    "signing_payload",
    # Addresses
    "address_from_script_pubkey",
    "script_pubkey_from_address",
]

"""Build, sign and decode Bitcoin, EVM and NEAR transactions."""

from .builder import (
    BitcoinDraft,
    BitcoinSpend,
    Chain,
    Draft,
    EvmDraft,
    Finalized,
    NearDraft,
    TransactionBuilder,
    Unsigned,
    UnsignedBitcoin,
    UnsignedEvm,
    UnsignedNear,
)
from .config import NetworkConfig, Settings
from .errors import (
    IncompleteTransaction,
    InvalidSighash,
    InvalidSignature,
    MalformedInput,
    OmniTransactionError,
    UnsupportedVariant,
)
from .signer import Signer

__all__ = [
    # Builder
    "BitcoinDraft",
    "BitcoinSpend",
    "Chain",
    "Draft",
    "EvmDraft",
    "Finalized",
    "NearDraft",
    "TransactionBuilder",
    "Unsigned",
    "UnsignedBitcoin",
    "UnsignedEvm",
    "UnsignedNear",
    # Config
    "NetworkConfig",
    "Settings",
    "Signer",
    # Errors
    "IncompleteTransaction",
    "InvalidSighash",
    "InvalidSignature",
    "MalformedInput",
    "OmniTransactionError",
    "UnsupportedVariant",
]

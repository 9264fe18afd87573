"""EVM transaction codec."""

from .codec import (
    attach_signature,
    build,
    deserialize,
    format_address,
    legacy_v,
    parse_address,
    serialize,
    signing_payload,
)
from .json_tx import transaction_from_json
from .types import (
    TRANSACTION_MODELS,
    AccessListItem,
    AccessListTransaction,
    EvmSignature,
    EvmTransaction,
    EvmTxType,
    FeeMarketTransaction,
    LegacyTransaction,
)

__all__ = [
    # Models
    "AccessListItem",
    "AccessListTransaction",
    "EvmSignature",
    "EvmTransaction",
    "EvmTxType",
    "FeeMarketTransaction",
    "LegacyTransaction",
    "TRANSACTION_MODELS",
    # Codec
    "attach_signature",
    "build",
    "deserialize",
    "format_address",
    "legacy_v",
    "parse_address",
    "serialize",
    "signing_payload",
    "transaction_from_json",
]

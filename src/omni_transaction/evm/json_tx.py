"""Build transactions from JSON-RPC style objects."""

import logging
from typing import Annotated, Any, List

from pydantic import AliasChoices, BaseModel, BeforeValidator, Field, ValidationError

from omni_transaction.errors import MalformedInput, UnsupportedVariant
from omni_transaction.models import Bytes20, Bytes32, HexBytes

from .codec import build
from .types import TRANSACTION_MODELS, EvmTransaction, EvmTxType

LOGGER = logging.getLogger(__name__)


def _quantity(value: Any) -> Any:
    """Accept decimal or 0x-prefixed hex quantities."""
    if isinstance(value, str):
        text = value.strip()
        if text[:2] in ("0x", "0X"):
            return int(text[2:] or "0", 16)
        return int(text)
    return value


Quantity = Annotated[int, BeforeValidator(_quantity)]


class JsonAccessListItem(BaseModel):
    """Access list entry as found in JSON-RPC objects."""

    address: Bytes20
    storage_keys: List[Bytes32] = Field(
        default_factory=list,
        validation_alias=AliasChoices("storageKeys", "storage_keys"),
    )


class JsonTransaction(BaseModel):
    """Transaction fields as found in JSON-RPC objects."""

    type: Quantity | None = None
    chain_id: Quantity | None = Field(
        None, validation_alias=AliasChoices("chainId", "chain_id")
    )
    nonce: Quantity
    to: HexBytes | None = None
    value: Quantity = 0
    data: HexBytes = Field(b"", validation_alias=AliasChoices("input", "data"))
    gas_limit: Quantity = Field(
        validation_alias=AliasChoices("gasLimit", "gas", "gas_limit")
    )
    gas_price: Quantity | None = Field(
        None, validation_alias=AliasChoices("gasPrice", "gas_price")
    )
    max_fee_per_gas: Quantity | None = Field(
        None, validation_alias=AliasChoices("maxFeePerGas", "max_fee_per_gas")
    )
    max_priority_fee_per_gas: Quantity | None = Field(
        None,
        validation_alias=AliasChoices(
            "maxPriorityFeePerGas", "max_priority_fee_per_gas"
        ),
    )
    access_list: List[JsonAccessListItem] | None = Field(
        None, validation_alias=AliasChoices("accessList", "access_list")
    )

    def variant(self) -> EvmTxType:
        """Explicit type, otherwise inferred from the fee fields present."""
        if self.type is not None:
            try:
                return EvmTxType(self.type)
            except ValueError:
                raise UnsupportedVariant(
                    f"Unknown EVM transaction type: {self.type}"
                ) from None
        if self.max_fee_per_gas is not None:
            return EvmTxType.FEE_MARKET
        if self.access_list is not None:
            return EvmTxType.ACCESS_LIST
        return EvmTxType.LEGACY


def transaction_from_json(value: str | bytes | dict) -> EvmTransaction:
    """Build an unsigned transaction from a JSON-RPC style object."""
    try:
        if isinstance(value, dict):
            parsed = JsonTransaction.model_validate(value)
        else:
            parsed = JsonTransaction.model_validate_json(value)
    except ValidationError as err:
        raise MalformedInput(f"Invalid transaction JSON: {err}") from err

    variant = parsed.variant()
    # RPC objects carry extra fields, e.g. gasPrice on fee-market transactions
    declared = TRANSACTION_MODELS[variant].model_fields
    dumped = parsed.model_dump(exclude={"type"}, exclude_none=True)
    fields = {name: item for name, item in dumped.items() if name in declared}
    if not fields.get("to"):
        fields.pop("to", None)

    LOGGER.debug("Building %s transaction from JSON", variant.name)
    return build(variant, fields)

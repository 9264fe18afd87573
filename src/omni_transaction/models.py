"""Shared model building blocks."""

from typing import Annotated, Any, Mapping, Type, TypeVar

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    ValidationError,
)

from omni_transaction.encoding.text import from_hex, to_hex
from omni_transaction.errors import IncompleteTransaction, MalformedInput


def _coerce_hex(value: Any) -> Any:
    """Accept hex text wherever bytes are expected."""
    if isinstance(value, str):
        return from_hex(value)
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    return value


_hex_out = PlainSerializer(to_hex, return_type=str, when_used="json")

HexBytes = Annotated[bytes, BeforeValidator(_coerce_hex), _hex_out]
Bytes20 = Annotated[
    bytes, BeforeValidator(_coerce_hex), Field(min_length=20, max_length=20), _hex_out
]
Bytes32 = Annotated[
    bytes, BeforeValidator(_coerce_hex), Field(min_length=32, max_length=32), _hex_out
]

Int32 = Annotated[int, Field(ge=-(1 << 31), le=(1 << 31) - 1)]
UInt8 = Annotated[int, Field(ge=0, le=0xFF)]
UInt32 = Annotated[int, Field(ge=0, le=0xFFFFFFFF)]
UInt64 = Annotated[int, Field(ge=0, le=(1 << 64) - 1)]
UInt128 = Annotated[int, Field(ge=0, le=(1 << 128) - 1)]
UInt256 = Annotated[int, Field(ge=0, le=(1 << 256) - 1)]


class FrozenModel(BaseModel):
    """Immutable value object."""

    model_config = ConfigDict(frozen=True, extra="forbid")


M = TypeVar("M", bound=BaseModel)


def freeze(model: Type[M], fields: Mapping[str, Any]) -> M:
    """Validate fields into an immutable model instance.

    Missing required fields raise IncompleteTransaction naming the first one;
    values that fail validation raise MalformedInput.
    """
    for name, info in model.model_fields.items():
        if info.is_required() and fields.get(name) is None:
            raise IncompleteTransaction(name)

    try:
        return model.model_validate(dict(fields))
    except ValidationError as err:
        raise MalformedInput(f"Invalid {model.__name__}: {err}") from err

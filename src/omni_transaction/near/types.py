"""NEAR transaction models."""

import re
from enum import IntEnum
from typing import Annotated, Any, ClassVar, Tuple, Union

from pydantic import AfterValidator, BeforeValidator, Field, PlainSerializer, model_validator

from omni_transaction.encoding.text import b58decode, b58encode
from omni_transaction.errors import MalformedInput
from omni_transaction.models import FrozenModel, HexBytes, UInt64, UInt128

ACCOUNT_ID_PATTERN = re.compile(r"^(([a-z\d]+[-_])*[a-z\d]+\.)*([a-z\d]+[-_])*[a-z\d]+$")
MIN_ACCOUNT_ID_LEN = 2
MAX_ACCOUNT_ID_LEN = 64


def is_valid_account_id(value: str) -> bool:
    """Check NEAR account id rules (named and implicit accounts)."""
    return (
        MIN_ACCOUNT_ID_LEN <= len(value) <= MAX_ACCOUNT_ID_LEN
        and ACCOUNT_ID_PATTERN.match(value) is not None
    )


def _check_account_id(value: str) -> str:
    if not is_valid_account_id(value):
        raise ValueError(f"Invalid NEAR account id: {value!r}")
    return value


def _coerce_base58(value: Any) -> Any:
    if isinstance(value, str):
        return b58decode(value)
    return value


AccountId = Annotated[str, AfterValidator(_check_account_id)]
CryptoHash = Annotated[
    bytes,
    BeforeValidator(_coerce_base58),
    Field(min_length=32, max_length=32),
    PlainSerializer(b58encode, return_type=str, when_used="json"),
]


class KeyType(IntEnum):
    """Curve of a key or signature."""

    ED25519 = 0
    SECP256K1 = 1


PUBLIC_KEY_LENGTHS = {KeyType.ED25519: 32, KeyType.SECP256K1: 64}
SIGNATURE_LENGTHS = {KeyType.ED25519: 64, KeyType.SECP256K1: 65}


class PublicKey(FrozenModel):
    """Curve tag plus raw public key bytes."""

    key_type: KeyType
    data: HexBytes

    @model_validator(mode="after")
    def check_length(self) -> "PublicKey":
        expected = PUBLIC_KEY_LENGTHS[self.key_type]
        if len(self.data) != expected:
            raise ValueError(
                f"{self.key_type.name} public key must be {expected} bytes, "
                f"got {len(self.data)}"
            )
        return self

    @classmethod
    def from_string(cls, value: str) -> "PublicKey":
        """Parse the "ed25519:<base58>" / "secp256k1:<base58>" text form.

        A bare base58 string is taken as an ed25519 key.
        """
        curve, sep, encoded = value.partition(":")
        if not sep:
            curve, encoded = "ed25519", value
        try:
            key_type = KeyType[curve.upper()]
        except KeyError:
            raise MalformedInput(f"Unknown key type: {curve!r}") from None
        data = b58decode(encoded)
        if len(data) != PUBLIC_KEY_LENGTHS[key_type]:
            raise MalformedInput(f"Invalid {curve} public key length: {len(data)}")
        return cls(key_type=key_type, data=data)

    def __str__(self) -> str:
        """Format as "<curve>:<base58>"."""
        return f"{self.key_type.name.lower()}:{b58encode(self.data)}"


class NearSignature(FrozenModel):
    """Curve tag plus raw signature bytes (64 for ed25519, 65 for secp256k1)."""

    key_type: KeyType
    data: HexBytes


class FunctionCallPermission(FrozenModel):
    """Access key limited to calling methods on one contract."""

    TAG: ClassVar[int] = 0

    allowance: UInt128 | None = None
    receiver_id: AccountId
    method_names: Tuple[str, ...] = ()


class FullAccessPermission(FrozenModel):
    """Access key with full access to the account."""

    TAG: ClassVar[int] = 1


AccessKeyPermission = Union[FunctionCallPermission, FullAccessPermission]


class AccessKey(FrozenModel):
    nonce: UInt64 = 0
    permission: AccessKeyPermission


class CreateAccountAction(FrozenModel):
    TAG: ClassVar[int] = 0


class DeployContractAction(FrozenModel):
    TAG: ClassVar[int] = 1

    code: bytes


class FunctionCallAction(FrozenModel):
    TAG: ClassVar[int] = 2

    method_name: str
    args: bytes = b""
    gas: UInt64
    deposit: UInt128 = 0


class TransferAction(FrozenModel):
    TAG: ClassVar[int] = 3

    deposit: UInt128


class StakeAction(FrozenModel):
    TAG: ClassVar[int] = 4

    stake: UInt128
    public_key: PublicKey


class AddKeyAction(FrozenModel):
    TAG: ClassVar[int] = 5

    public_key: PublicKey
    access_key: AccessKey


class DeleteKeyAction(FrozenModel):
    TAG: ClassVar[int] = 6

    public_key: PublicKey


class DeleteAccountAction(FrozenModel):
    TAG: ClassVar[int] = 7

    beneficiary_id: AccountId


NonDelegateAction = Union[
    CreateAccountAction,
    DeployContractAction,
    FunctionCallAction,
    TransferAction,
    StakeAction,
    AddKeyAction,
    DeleteKeyAction,
    DeleteAccountAction,
]


class DelegateAction(FrozenModel):
    """Actions a relayer submits on behalf of sender_id (NEP-366)."""

    sender_id: AccountId
    receiver_id: AccountId
    actions: Tuple[NonDelegateAction, ...] = ()
    nonce: UInt64
    max_block_height: UInt64
    public_key: PublicKey


class SignedDelegateAction(FrozenModel):
    """Delegate action with the sender's signature; action tag 8."""

    TAG: ClassVar[int] = 8

    delegate_action: DelegateAction
    signature: NearSignature


Action = Union[NonDelegateAction, SignedDelegateAction]

ACTION_TYPES = {
    action.TAG: action
    for action in (
        CreateAccountAction,
        DeployContractAction,
        FunctionCallAction,
        TransferAction,
        StakeAction,
        AddKeyAction,
        DeleteKeyAction,
        DeleteAccountAction,
        SignedDelegateAction,
    )
}


class NearTransaction(FrozenModel):
    """Unsigned NEAR transaction."""

    signer_id: AccountId
    public_key: PublicKey
    nonce: UInt64
    receiver_id: AccountId
    block_hash: CryptoHash
    actions: Tuple[Action, ...] = ()


class SignedNearTransaction(FrozenModel):
    """Transaction plus the signer's signature, ready for broadcast."""

    transaction: NearTransaction
    signature: NearSignature

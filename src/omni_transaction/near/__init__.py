"""NEAR transaction codec."""

from .codec import (
    attach_signature,
    build,
    delegate_signing_payload,
    deserialize,
    deserialize_signed,
    serialize,
    signing_payload,
    transaction_hash,
)
from .types import (
    AccessKey,
    Action,
    AddKeyAction,
    CreateAccountAction,
    DelegateAction,
    DeleteAccountAction,
    DeleteKeyAction,
    DeployContractAction,
    FullAccessPermission,
    FunctionCallAction,
    FunctionCallPermission,
    KeyType,
    NearSignature,
    NearTransaction,
    PublicKey,
    SignedDelegateAction,
    SignedNearTransaction,
    StakeAction,
    TransferAction,
    is_valid_account_id,
)

__all__ = [
    # Models
    "AccessKey",
    "Action",
    "AddKeyAction",
    "CreateAccountAction",
    "DelegateAction",
    "DeleteAccountAction",
    "DeleteKeyAction",
    "DeployContractAction",
    "FullAccessPermission",
    "FunctionCallAction",
    "FunctionCallPermission",
    "KeyType",
    "NearSignature",
    "NearTransaction",
    "PublicKey",
    "SignedDelegateAction",
    "SignedNearTransaction",
    "StakeAction",
    "TransferAction",
    "is_valid_account_id",
    # Codec
    "attach_signature",
    "build",
    "delegate_signing_payload",
    "deserialize",
    "deserialize_signed",
    "serialize",
    "signing_payload",
    "transaction_hash",
]

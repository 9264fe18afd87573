"""NEAR transaction Borsh encoding."""

import logging
from hashlib import sha256
from typing import Any, Iterable

from pydantic import ValidationError

from omni_transaction.encoding.borsh import BorshReader, BorshWriter
from omni_transaction.errors import InvalidSignature, MalformedInput, UnsupportedVariant
from omni_transaction.models import freeze

from .types import (
    ACTION_TYPES,
    SIGNATURE_LENGTHS,
    AccessKey,
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
    PUBLIC_KEY_LENGTHS,
    PublicKey,
    SignedDelegateAction,
    SignedNearTransaction,
    StakeAction,
    TransferAction,
)

LOGGER = logging.getLogger(__name__)

# NEP-461 prefix for signed delegate actions: 2**30 + NEP number
DELEGATE_ACTION_PREFIX = (1 << 30) + 366


def build(
    signer: str,
    public_key: PublicKey | str,
    nonce: int,
    receiver: str,
    block_hash: bytes | str,
    actions: Iterable[Any] = (),
) -> NearTransaction:
    """Build an immutable transaction."""
    if isinstance(public_key, str):
        public_key = PublicKey.from_string(public_key)
    return freeze(
        NearTransaction,
        {
            "signer_id": signer,
            "public_key": public_key,
            "nonce": nonce,
            "receiver_id": receiver,
            "block_hash": block_hash,
            "actions": tuple(actions),
        },
    )


# Writers


def _write_public_key(writer: BorshWriter, key: PublicKey):
    writer.write_u8(key.key_type).write_fixed(key.data)


def _write_signature(writer: BorshWriter, signature: NearSignature):
    writer.write_u8(signature.key_type).write_fixed(signature.data)


def _write_access_key(writer: BorshWriter, access_key: AccessKey):
    writer.write_u64(access_key.nonce)
    permission = access_key.permission
    writer.write_u8(permission.TAG)
    if isinstance(permission, FunctionCallPermission):
        writer.write_option(permission.allowance, BorshWriter.write_u128)
        writer.write_string(permission.receiver_id)
        writer.write_vec(permission.method_names, BorshWriter.write_string)


def _write_delegate_action(writer: BorshWriter, action: DelegateAction):
    writer.write_string(action.sender_id)
    writer.write_string(action.receiver_id)
    writer.write_vec(action.actions, _write_action)
    writer.write_u64(action.nonce)
    writer.write_u64(action.max_block_height)
    _write_public_key(writer, action.public_key)


def _write_action(writer: BorshWriter, action: Any):
    writer.write_u8(action.TAG)
    if isinstance(action, CreateAccountAction):
        pass
    elif isinstance(action, DeployContractAction):
        writer.write_bytes(action.code)
    elif isinstance(action, FunctionCallAction):
        writer.write_string(action.method_name)
        writer.write_bytes(action.args)
        writer.write_u64(action.gas)
        writer.write_u128(action.deposit)
    elif isinstance(action, TransferAction):
        writer.write_u128(action.deposit)
    elif isinstance(action, StakeAction):
        writer.write_u128(action.stake)
        _write_public_key(writer, action.public_key)
    elif isinstance(action, AddKeyAction):
        _write_public_key(writer, action.public_key)
        _write_access_key(writer, action.access_key)
    elif isinstance(action, DeleteKeyAction):
        _write_public_key(writer, action.public_key)
    elif isinstance(action, DeleteAccountAction):
        writer.write_string(action.beneficiary_id)
    elif isinstance(action, SignedDelegateAction):
        _write_delegate_action(writer, action.delegate_action)
        _write_signature(writer, action.signature)
    else:
        raise UnsupportedVariant(f"Unsupported action: {type(action).__name__}")


def _write_transaction(writer: BorshWriter, tx: NearTransaction):
    writer.write_string(tx.signer_id)
    _write_public_key(writer, tx.public_key)
    writer.write_u64(tx.nonce)
    writer.write_string(tx.receiver_id)
    writer.write_fixed(tx.block_hash)
    writer.write_vec(tx.actions, _write_action)


def serialize(tx: NearTransaction | SignedNearTransaction) -> bytes:
    """Borsh-encode an unsigned or signed transaction."""
    writer = BorshWriter()
    if isinstance(tx, SignedNearTransaction):
        _write_transaction(writer, tx.transaction)
        _write_signature(writer, tx.signature)
    else:
        _write_transaction(writer, tx)
    encoded = writer.getvalue()
    LOGGER.debug("Serialized %s (%d bytes)", type(tx).__name__, len(encoded))
    return encoded


def signing_payload(tx: NearTransaction) -> bytes:
    """The serialized transaction; signers sign its SHA-256 hash."""
    return serialize(tx)


def transaction_hash(tx: NearTransaction) -> bytes:
    """SHA-256 of the serialized transaction, as signed and as used for its id."""
    return sha256(serialize(tx)).digest()


def delegate_signing_payload(action: DelegateAction) -> bytes:
    """NEP-461 prefixed encoding of a delegate action to hash and sign."""
    writer = BorshWriter().write_u32(DELEGATE_ACTION_PREFIX)
    _write_delegate_action(writer, action)
    return writer.getvalue()


# Readers


def _read_key_type(reader: BorshReader) -> KeyType:
    tag = reader.read_u8()
    try:
        return KeyType(tag)
    except ValueError:
        raise UnsupportedVariant(f"Unknown key type: {tag}") from None


def _read_public_key(reader: BorshReader) -> PublicKey:
    key_type = _read_key_type(reader)
    return PublicKey(
        key_type=key_type, data=reader.read_fixed(PUBLIC_KEY_LENGTHS[key_type])
    )


def _read_signature(reader: BorshReader) -> NearSignature:
    key_type = _read_key_type(reader)
    return NearSignature(
        key_type=key_type, data=reader.read_fixed(SIGNATURE_LENGTHS[key_type])
    )


def _read_access_key(reader: BorshReader) -> AccessKey:
    nonce = reader.read_u64()
    tag = reader.read_u8()
    if tag == FunctionCallPermission.TAG:
        permission = FunctionCallPermission(
            allowance=reader.read_option(BorshReader.read_u128),
            receiver_id=reader.read_string(),
            method_names=tuple(reader.read_vec(BorshReader.read_string)),
        )
    elif tag == FullAccessPermission.TAG:
        permission = FullAccessPermission()
    else:
        raise UnsupportedVariant(f"Unknown access key permission: {tag}")
    return AccessKey(nonce=nonce, permission=permission)


def _read_delegate_action(reader: BorshReader) -> DelegateAction:
    return DelegateAction(
        sender_id=reader.read_string(),
        receiver_id=reader.read_string(),
        actions=tuple(reader.read_vec(_read_non_delegate_action)),
        nonce=reader.read_u64(),
        max_block_height=reader.read_u64(),
        public_key=_read_public_key(reader),
    )


def _read_non_delegate_action(reader: BorshReader) -> Any:
    action = _read_action(reader)
    if isinstance(action, SignedDelegateAction):
        raise MalformedInput("Delegate actions cannot be nested")
    return action


def _read_action(reader: BorshReader) -> Any:
    tag = reader.read_u8()
    action_type = ACTION_TYPES.get(tag)
    if action_type is None:
        raise UnsupportedVariant(f"Unknown action tag: {tag}")

    if action_type is CreateAccountAction:
        return CreateAccountAction()
    if action_type is DeployContractAction:
        return DeployContractAction(code=reader.read_bytes())
    if action_type is FunctionCallAction:
        return FunctionCallAction(
            method_name=reader.read_string(),
            args=reader.read_bytes(),
            gas=reader.read_u64(),
            deposit=reader.read_u128(),
        )
    if action_type is TransferAction:
        return TransferAction(deposit=reader.read_u128())
    if action_type is StakeAction:
        return StakeAction(stake=reader.read_u128(), public_key=_read_public_key(reader))
    if action_type is AddKeyAction:
        return AddKeyAction(
            public_key=_read_public_key(reader), access_key=_read_access_key(reader)
        )
    if action_type is DeleteKeyAction:
        return DeleteKeyAction(public_key=_read_public_key(reader))
    if action_type is DeleteAccountAction:
        return DeleteAccountAction(beneficiary_id=reader.read_string())
    return SignedDelegateAction(
        delegate_action=_read_delegate_action(reader),
        signature=_read_signature(reader),
    )


def _read_transaction(reader: BorshReader) -> NearTransaction:
    return NearTransaction(
        signer_id=reader.read_string(),
        public_key=_read_public_key(reader),
        nonce=reader.read_u64(),
        receiver_id=reader.read_string(),
        block_hash=reader.read_fixed(32),
        actions=tuple(reader.read_vec(_read_action)),
    )


def deserialize(data: bytes) -> NearTransaction:
    """Decode an unsigned transaction."""
    reader = BorshReader(data)
    try:
        tx = _read_transaction(reader)
    except ValidationError as err:
        raise MalformedInput(f"Invalid transaction field: {err}") from err
    reader.expect_end()
    LOGGER.debug("Decoded transaction with %d actions", len(tx.actions))
    return tx


def deserialize_signed(data: bytes) -> SignedNearTransaction:
    """Decode a signed transaction."""
    reader = BorshReader(data)
    try:
        signed = SignedNearTransaction(
            transaction=_read_transaction(reader), signature=_read_signature(reader)
        )
    except ValidationError as err:
        raise MalformedInput(f"Invalid transaction field: {err}") from err
    reader.expect_end()
    return signed


def validate_signature(tx: NearTransaction, signature: NearSignature):
    """Check the signature matches the signer key's curve and length."""
    if signature.key_type != tx.public_key.key_type:
        raise InvalidSignature(
            f"{signature.key_type.name} signature for a "
            f"{tx.public_key.key_type.name} key"
        )
    expected = SIGNATURE_LENGTHS[signature.key_type]
    if len(signature.data) != expected:
        raise InvalidSignature(
            f"{signature.key_type.name} signature must be {expected} bytes, "
            f"got {len(signature.data)}"
        )
    if signature.key_type == KeyType.SECP256K1 and signature.data[64] > 3:
        raise InvalidSignature(f"Invalid recovery id: {signature.data[64]}")


def attach_signature(tx: NearTransaction, signature: NearSignature) -> SignedNearTransaction:
    """Return a new signed transaction."""
    validate_signature(tx, signature)
    return SignedNearTransaction(transaction=tx, signature=signature)

"""Chain-agnostic transaction builder: Draft -> Unsigned -> Finalized."""

import copy
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, ClassVar, Generic, Iterable, Sequence, Tuple, TypeVar

from pydantic import BaseModel

from . import bitcoin, evm, near
from .bitcoin.sighash import SegwitV0Sighasher, legacy_signing_payload
from .config import NetworkConfig, Settings
from .errors import IncompleteTransaction, InvalidSignature, UnsupportedVariant
from .models import FrozenModel, HexBytes
from .signer import Signer, sign_message

LOGGER = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class Chain(str, Enum):
    """Supported chain families."""

    BITCOIN = "bitcoin"
    EVM = "evm"
    NEAR = "near"


class Finalized(Generic[T]):
    """A signed transaction, ready for broadcast."""

    def __init__(self, chain: Chain, transaction: T, encode: Callable[[T], bytes]):
        """Initialize the finalized transaction."""
        self._chain = chain
        self._transaction = transaction
        self._encode = encode

    @property
    def chain(self) -> Chain:
        return self._chain

    @property
    def transaction(self) -> T:
        """The signed transaction value."""
        return self._transaction

    def serialize(self) -> bytes:
        """Wire encoding of the signed transaction."""
        return self._encode(self._transaction)

    def __repr__(self) -> str:
        return f"Finalized({self._chain.value}, {self._transaction!r})"


class Unsigned(ABC, Generic[T]):
    """A frozen transaction awaiting its signature."""

    chain: ClassVar[Chain]

    def __init__(self, transaction: T):
        """Initialize the unsigned transaction."""
        self._transaction = transaction

    @property
    def transaction(self) -> T:
        return self._transaction

    @abstractmethod
    def serialize(self) -> bytes:
        """Wire encoding of the unsigned transaction."""

    def _finalize(self, transaction: Any, encode: Callable) -> Finalized:
        LOGGER.info("Finalized %s transaction", self.chain.value)
        return Finalized(self.chain, transaction, encode)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._transaction!r})"


class Draft(ABC):
    """Accumulates fields until build().

    Setters return a new draft; the one they were called on is left as is.
    """

    chain: ClassVar[Chain]
    REQUIRED: ClassVar[Tuple[str, ...]] = ()

    def __init__(self, settings: Settings):
        """Initialize the draft."""
        self._settings = settings
        self._fields: dict = {}

    def _set(self, **updates) -> Any:
        draft = copy.copy(self)
        draft._fields = {**self._fields, **updates}
        return draft

    def _required(self) -> Tuple[str, ...]:
        return self.REQUIRED

    def _missing(self) -> Tuple[str, ...]:
        return tuple(name for name in self._required() if self._fields.get(name) is None)

    def serialize(self) -> bytes:
        """Drafts have no wire form; build() first."""
        missing = self._missing()
        if missing:
            raise IncompleteTransaction(missing[0])
        raise IncompleteTransaction(
            "build", "Draft transactions must be built before serializing"
        )

    @abstractmethod
    def build(self) -> Unsigned:
        """Freeze the accumulated fields."""


# Bitcoin


class BitcoinSpend(FrozenModel):
    """What the signer of one input needs to know about the output it spends.

    value selects BIP143 (segwit v0) signing; without it the legacy scheme is
    used.
    """

    script_code: HexBytes
    public_key: HexBytes
    value: int | None = None
    sighash_type: int = bitcoin.SIGHASH_ALL


class UnsignedBitcoin(Unsigned[bitcoin.BitcoinTransaction]):
    chain = Chain.BITCOIN

    def serialize(self) -> bytes:
        return bitcoin.serialize(self._transaction)

    def txid(self) -> str:
        return bitcoin.txid(self._transaction)

    def signing_payload(
        self,
        input_index: int,
        script_code: bytes,
        sighash_type: int = bitcoin.SIGHASH_ALL,
        value: int | None = None,
    ) -> bytes:
        """32-byte digest the input's signer signs directly."""
        return bitcoin.signing_payload(
            self._transaction, input_index, script_code, sighash_type, value
        )

    def attach_signature(
        self, signatures: bitcoin.BitcoinSignature | Sequence[bitcoin.BitcoinSignature]
    ) -> Finalized[bitcoin.BitcoinTransaction]:
        """Attach one signature per input."""
        if isinstance(signatures, bitcoin.BitcoinSignature):
            signatures = [signatures]
        signed = bitcoin.attach_signatures(self._transaction, list(signatures))
        return self._finalize(signed, bitcoin.serialize)

    async def sign_with(
        self, signer: Signer, spends: Sequence[BitcoinSpend]
    ) -> Finalized[bitcoin.BitcoinTransaction]:
        """Sign every input with signer, which returns a DER signature."""
        tx = self._transaction
        if len(spends) != len(tx.inputs):
            raise InvalidSignature(
                f"Expected {len(tx.inputs)} spends, got {len(spends)}"
            )

        sighasher = SegwitV0Sighasher(tx)
        signatures = []
        for index, spend in enumerate(spends):
            if spend.value is None:
                digest = legacy_signing_payload(
                    tx, index, spend.script_code, spend.sighash_type
                )
            else:
                digest = sighasher.signing_payload(
                    index, spend.script_code, spend.value, spend.sighash_type
                )
            LOGGER.debug("Requesting signature for input %d", index)
            signatures.append(
                bitcoin.BitcoinSignature(
                    der=await sign_message(signer, digest),
                    sighash_type=spend.sighash_type,
                    public_key=spend.public_key,
                    segwit=spend.value is not None,
                )
            )
        return self.attach_signature(signatures)


class BitcoinDraft(Draft):
    chain = Chain.BITCOIN
    REQUIRED = ("version", "locktime")

    def __init__(self, settings: Settings):
        """Initialize the draft."""
        super().__init__(settings)
        self._fields = {"inputs": (), "outputs": ()}

    def version(self, version: int) -> "BitcoinDraft":
        return self._set(version=version)

    def locktime(self, locktime: int) -> "BitcoinDraft":
        return self._set(locktime=locktime)

    def input(
        self,
        txid: bytes | str,
        vout: int,
        script_sig: bytes = b"",
        sequence: int | None = None,
    ) -> "BitcoinDraft":
        """Append an input spending txid:vout (txid in display order)."""
        if sequence is None:
            sequence = self._settings.bitcoin_sequence
        txin = {"txid": txid, "vout": vout, "script_sig": script_sig, "sequence": sequence}
        return self._set(inputs=self._fields["inputs"] + (txin,))

    def output(self, value: int, script_pubkey: bytes | str) -> "BitcoinDraft":
        """Append an output paying value satoshis to script_pubkey."""
        txout = {"value": value, "script_pubkey": script_pubkey}
        return self._set(outputs=self._fields["outputs"] + (txout,))

    def pay_to_address(self, address: str, value: int) -> "BitcoinDraft":
        """Append an output paying to an address of the configured network."""
        network = NetworkConfig.load(self._settings).bitcoin_network(
            self._settings.bitcoin_network
        )
        return self.output(value, bitcoin.script_pubkey_from_address(address, network))

    def build(self) -> UnsignedBitcoin:
        tx = bitcoin.build(
            inputs=self._fields["inputs"],
            outputs=self._fields["outputs"],
            locktime=self._fields.get("locktime"),
            version=self._fields.get("version"),
        )
        LOGGER.info(
            "Built bitcoin transaction with %d inputs and %d outputs",
            len(tx.inputs),
            len(tx.outputs),
        )
        return UnsignedBitcoin(tx)


# EVM


class UnsignedEvm(Unsigned[evm.EvmTransaction]):
    chain = Chain.EVM

    def serialize(self) -> bytes:
        return evm.serialize(self._transaction)

    def signing_payload(self) -> bytes:
        """Pre-image the signer hashes with Keccak-256."""
        return evm.signing_payload(self._transaction)

    def attach_signature(
        self, signature: evm.EvmSignature | bytes
    ) -> Finalized[evm.EvmTransaction]:
        """Attach an EvmSignature or its 65-byte r || s || v form."""
        if isinstance(signature, (bytes, bytearray)):
            signature = evm.EvmSignature.from_bytes(bytes(signature))
        signed = evm.attach_signature(self._transaction, signature)
        return self._finalize(signed, evm.serialize)

    async def sign_with(self, signer: Signer) -> Finalized[evm.EvmTransaction]:
        """Sign with signer, which returns 65 bytes r || s || v."""
        signature = await sign_message(signer, self.signing_payload())
        return self.attach_signature(signature)


class EvmDraft(Draft):
    chain = Chain.EVM

    def __init__(
        self,
        settings: Settings,
        variant: evm.EvmTxType | int | str | None = None,
        replay_protection: bool | None = None,
    ):
        """Initialize the draft."""
        super().__init__(settings)
        if variant is None:
            variant = settings.evm_variant
        if isinstance(variant, str):
            try:
                variant = evm.EvmTxType[variant.upper()]
            except KeyError:
                raise UnsupportedVariant(f"Unknown EVM variant: {variant}") from None
        try:
            self.variant = evm.EvmTxType(variant)
        except ValueError:
            raise UnsupportedVariant(f"Unknown EVM variant: {variant}") from None
        if replay_protection is None:
            replay_protection = settings.evm_replay_protection
        self.replay_protection = replay_protection

    def _required(self) -> Tuple[str, ...]:
        fee = "max_fee_per_gas" if self.variant == evm.EvmTxType.FEE_MARKET else "gas_price"
        if self.variant == evm.EvmTxType.LEGACY and not self.replay_protection:
            return ("nonce", "gas_limit", fee)
        return ("chain_id", "nonce", "gas_limit", fee)

    def _set(self, **updates) -> "EvmDraft":
        model = evm.TRANSACTION_MODELS[self.variant]
        for name in updates:
            if name not in model.model_fields:
                raise UnsupportedVariant(f"{model.__name__} has no field {name}")
        if "chain_id" in updates and not self._protected:
            raise UnsupportedVariant(
                "Legacy transactions without replay protection have no chain_id"
            )
        return super()._set(**updates)

    @property
    def _protected(self) -> bool:
        return self.variant != evm.EvmTxType.LEGACY or self.replay_protection

    def chain_id(self, chain_id: int) -> "EvmDraft":
        return self._set(chain_id=chain_id)

    def nonce(self, nonce: int) -> "EvmDraft":
        return self._set(nonce=nonce)

    def gas_limit(self, gas_limit: int) -> "EvmDraft":
        return self._set(gas_limit=gas_limit)

    def gas_price(self, gas_price: int) -> "EvmDraft":
        return self._set(gas_price=gas_price)

    def max_fee_per_gas(self, max_fee: int) -> "EvmDraft":
        return self._set(max_fee_per_gas=max_fee)

    def max_priority_fee_per_gas(self, max_priority_fee: int) -> "EvmDraft":
        return self._set(max_priority_fee_per_gas=max_priority_fee)

    def to(self, address: bytes | str | None) -> "EvmDraft":
        """Recipient; None creates a contract."""
        if isinstance(address, str):
            address = evm.parse_address(address)
        return self._set(to=address)

    def value(self, value: int) -> "EvmDraft":
        return self._set(value=value)

    def data(self, data: bytes | str) -> "EvmDraft":
        return self._set(data=data)

    def access_list(self, items: Iterable[evm.AccessListItem | dict]) -> "EvmDraft":
        return self._set(access_list=tuple(items))

    def build(self) -> UnsignedEvm:
        missing = self._missing()
        if missing:
            raise IncompleteTransaction(missing[0])
        fields = {name: value for name, value in self._fields.items() if value is not None}
        tx = evm.build(self.variant, fields)
        LOGGER.info("Built %s EVM transaction", self.variant.name)
        return UnsignedEvm(tx)


# NEAR


class UnsignedNear(Unsigned[near.NearTransaction]):
    chain = Chain.NEAR

    def serialize(self) -> bytes:
        return near.serialize(self._transaction)

    def signing_payload(self) -> bytes:
        """Borsh bytes whose SHA-256 the signer signs."""
        return near.signing_payload(self._transaction)

    def transaction_hash(self) -> bytes:
        return near.transaction_hash(self._transaction)

    def attach_signature(
        self, signature: near.NearSignature | bytes
    ) -> Finalized[near.SignedNearTransaction]:
        """Attach a NearSignature, or raw bytes for the signer key's curve."""
        if isinstance(signature, (bytes, bytearray)):
            signature = near.NearSignature(
                key_type=self._transaction.public_key.key_type, data=bytes(signature)
            )
        signed = near.attach_signature(self._transaction, signature)
        return self._finalize(signed, near.serialize)

    async def sign_with(self, signer: Signer) -> Finalized[near.SignedNearTransaction]:
        """Sign with signer, which returns the raw signature bytes."""
        signature = await sign_message(signer, self.signing_payload())
        return self.attach_signature(signature)


class NearDraft(Draft):
    chain = Chain.NEAR
    REQUIRED = ("signer_id", "public_key", "nonce", "receiver_id", "block_hash")

    def __init__(self, settings: Settings):
        """Initialize the draft."""
        super().__init__(settings)
        self._fields = {"actions": ()}

    def signer_id(self, account_id: str) -> "NearDraft":
        return self._set(signer_id=account_id)

    def public_key(self, public_key: near.PublicKey | str) -> "NearDraft":
        """Signer key, as a PublicKey or "ed25519:<base58>" text."""
        if isinstance(public_key, str):
            public_key = near.PublicKey.from_string(public_key)
        return self._set(public_key=public_key)

    def nonce(self, nonce: int) -> "NearDraft":
        return self._set(nonce=nonce)

    def receiver_id(self, account_id: str) -> "NearDraft":
        return self._set(receiver_id=account_id)

    def block_hash(self, block_hash: bytes | str) -> "NearDraft":
        """Recent block hash, as 32 bytes or base58 text."""
        return self._set(block_hash=block_hash)

    def action(self, *actions: near.Action) -> "NearDraft":
        """Append actions; they execute in the order given."""
        return self._set(actions=self._fields["actions"] + actions)

    def transfer(self, deposit: int) -> "NearDraft":
        return self.action(near.TransferAction(deposit=deposit))

    def function_call(
        self, method_name: str, args: bytes, gas: int, deposit: int = 0
    ) -> "NearDraft":
        return self.action(
            near.FunctionCallAction(
                method_name=method_name, args=args, gas=gas, deposit=deposit
            )
        )

    def build(self) -> UnsignedNear:
        missing = self._missing()
        if missing:
            raise IncompleteTransaction(missing[0])
        fields = self._fields
        tx = near.build(
            signer=fields["signer_id"],
            public_key=fields["public_key"],
            nonce=fields["nonce"],
            receiver=fields["receiver_id"],
            block_hash=fields["block_hash"],
            actions=fields["actions"],
        )
        LOGGER.info("Built NEAR transaction with %d actions", len(tx.actions))
        return UnsignedNear(tx)


class TransactionBuilder:
    """Entry point selecting the chain to build for."""

    @staticmethod
    def new(
        chain: Chain | str,
        *,
        variant: evm.EvmTxType | int | str | None = None,
        replay_protection: bool | None = None,
        settings: Settings | None = None,
    ) -> Draft:
        """Start a draft transaction for chain.

        variant and replay_protection apply to EVM drafts only and default to
        the configured settings.
        """
        try:
            chain = Chain(chain)
        except ValueError:
            raise UnsupportedVariant(f"Unsupported chain: {chain}") from None
        settings = settings or Settings()

        if chain != Chain.EVM and (variant is not None or replay_protection is not None):
            raise UnsupportedVariant(f"{chain.value} transactions have no EVM variant")

        LOGGER.debug("New %s draft", chain.value)
        if chain == Chain.BITCOIN:
            return BitcoinDraft(settings)
        if chain == Chain.EVM:
            return EvmDraft(settings, variant=variant, replay_protection=replay_protection)
        return NearDraft(settings)

"""Transaction assembly.

Building is split in two phases. ``plan()`` is pure: it validates the builder
state and fixes the fee payer without touching the network. ``resolve`` runs
the instruction steps in registration order (deferred steps may read chain
state through the client) and ``build`` then stamps a recent blockhash, or the
stored value of a durable nonce, compiles a v0 message and partially signs it.
"""

import base64
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Union

from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0, to_bytes_versioned
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from .accounts import to_pubkey
from .errors import BuilderConsumedError, MissingFeePayerError, SerializationError, ValidationError
from .instructions.base import Step, is_deferred, resolve_step
from .instructions.system import advance_nonce

logger = logging.getLogger("solplay.transaction")


def compile_transaction(
    fee_payer: Pubkey,
    instructions: Sequence[Instruction],
    blockhash: Union[str, Hash],
    signers: Sequence[Keypair] = (),
) -> VersionedTransaction:
    if isinstance(blockhash, str):
        blockhash = Hash.from_string(blockhash)
    try:
        message = MessageV0.try_compile(fee_payer, list(instructions), [], blockhash)
    except Exception as exc:  # noqa: BLE001
        raise SerializationError("failed to compile transaction message") from exc
    tx = VersionedTransaction.populate(message, [Signature.default()] * message.header.num_required_signatures)
    return sign_partial(tx, signers)


def sign_partial(tx: VersionedTransaction, signers: Sequence[Keypair]) -> VersionedTransaction:
    """Fill in the signatures of ``signers``; other required signatures keep their current value."""
    message = tx.message
    required = list(message.account_keys[: message.header.num_required_signatures])
    signatures = list(tx.signatures)
    payload = to_bytes_versioned(message)
    for signer in signers:
        pubkey = signer.pubkey()
        if pubkey not in required:
            raise ValidationError("signer is not required by the transaction", signer=str(pubkey))
        signatures[required.index(pubkey)] = signer.sign_message(payload)
    return VersionedTransaction.populate(message, signatures)


def encode_transaction(tx: VersionedTransaction) -> str:
    return base64.b64encode(bytes(tx)).decode()


def decode_transaction(value: str) -> VersionedTransaction:
    try:
        return VersionedTransaction.from_bytes(base64.b64decode(value))
    except Exception as exc:  # noqa: BLE001
        raise SerializationError("failed to decode base64 transaction") from exc


def missing_signers(tx: VersionedTransaction) -> List[Pubkey]:
    message = tx.message
    keys = message.account_keys[: message.header.num_required_signatures]
    default = Signature.default()
    return [key for key, sig in zip(keys, tx.signatures) if sig == default]


@dataclass
class TransactionPlan:
    fee_payer: Pubkey
    steps: List[Step]
    signers: List[Keypair] = field(default_factory=list)
    nonce: Optional[Pubkey] = None
    nonce_authority: Optional[Pubkey] = None

    @property
    def durable(self) -> bool:
        return self.nonce is not None

    @property
    def requires_client(self) -> bool:
        return any(is_deferred(step) for step in self.steps)

    def resolve(self, client: Any = None) -> List[Instruction]:
        instructions: List[Instruction] = []
        if self.durable:
            instructions.append(advance_nonce(self.nonce, self.nonce_authority))
        for step in self.steps:
            instructions.extend(resolve_step(step, client))
        return instructions

    def recent_blockhash(self, client: Any) -> str:
        if self.durable:
            return client.get_nonce_account(self.nonce).blockhash
        return client.get_latest_blockhash()


class TransactionBuilder:
    def __init__(self, client: Any = None) -> None:
        self.client = client
        self.fee_payer: Optional[Pubkey] = None
        self.steps: List[Step] = []
        self.signers: List[Keypair] = []
        self.nonce: Optional[Pubkey] = None
        self.nonce_authority: Optional[Pubkey] = None
        self._consumed = False

    def add_instruction(self, *steps: Step) -> "TransactionBuilder":
        self.steps.extend(steps)
        return self

    def add_signer(self, *signers: Keypair) -> "TransactionBuilder":
        self.signers.extend(signers)
        return self

    def set_fee_payer(self, fee_payer: Union[str, Pubkey, Keypair]) -> "TransactionBuilder":
        self.fee_payer = to_pubkey(fee_payer)
        return self

    def set_durable_nonce(
        self, nonce: Union[str, Pubkey], nonce_authority: Union[str, Pubkey, Keypair]
    ) -> "TransactionBuilder":
        self.nonce = to_pubkey(nonce)
        self.nonce_authority = to_pubkey(nonce_authority)
        return self

    def plan(self) -> TransactionPlan:
        if self._consumed:
            raise BuilderConsumedError()
        fee_payer = self.fee_payer
        if self.nonce is not None or self.nonce_authority is not None:
            if self.nonce is None or self.nonce_authority is None:
                raise ValidationError("durable transactions need both nonce and nonce authority")
            fee_payer = fee_payer or self.nonce_authority
        if fee_payer is None:
            raise MissingFeePayerError()
        return TransactionPlan(
            fee_payer=fee_payer,
            steps=list(self.steps),
            signers=list(self.signers),
            nonce=self.nonce,
            nonce_authority=self.nonce_authority,
        )

    def instructions(self, client: Any = None) -> List[Instruction]:
        return self.plan().resolve(client or self.client)

    def build(self, client: Any = None) -> str:
        """Assemble, partially sign and base64-encode the transaction. Single use."""
        plan = self.plan()
        client = client or self.client
        if client is None:
            raise ValidationError("a client is required to fetch a recent blockhash")
        instructions = plan.resolve(client)
        blockhash = plan.recent_blockhash(client)
        tx = compile_transaction(plan.fee_payer, instructions, blockhash, plan.signers)
        self._consumed = True
        logger.debug(
            "tx_built fee_payer=%s instructions=%s durable=%s",
            plan.fee_payer,
            len(instructions),
            plan.durable,
        )
        return encode_transaction(tx)

from dataclasses import dataclass, field
from typing import Any, List, Optional

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import (
    ID as SYS_PROGRAM_ID,
    AdvanceNonceAccountParams,
    CreateAccountParams,
    InitializeNonceAccountParams,
    TransferParams,
    advance_nonce_account,
    create_account,
    initialize_nonce_account,
    transfer,
)
from spl.memo.constants import MEMO_PROGRAM_ID

from ..errors import ValidationError
from .base import InstructionFunc, optional_pubkey, require_positive, require_pubkey

NONCE_ACCOUNT_SIZE = 80


def with_reference(ix: Instruction, reference: Optional[Pubkey]) -> Instruction:
    """Append a read-only, non-signer reference key used to locate the transaction later."""
    if reference is None:
        return ix
    accounts = list(ix.accounts) + [AccountMeta(reference, False, False)]
    return Instruction(ix.program_id, ix.data, accounts)


@dataclass
class TransferSOLParams:
    sender: Any
    recipient: Any
    amount: int
    reference: Any = None


def transfer_sol(params: TransferSOLParams) -> List[Instruction]:
    sender = require_pubkey(params.sender, "sender")
    recipient = require_pubkey(params.recipient, "recipient")
    if sender == recipient:
        raise ValidationError("sender and recipient must be different accounts")
    require_positive(params.amount, "amount")
    reference = optional_pubkey(params.reference, "reference")

    ix = transfer(TransferParams(from_pubkey=sender, to_pubkey=recipient, lamports=params.amount))
    return [with_reference(ix, reference)]


@dataclass
class CreateNonceAccountParams:
    fee_payer: Any
    nonce: Any
    nonce_authority: Any = None


def create_nonce_account(params: CreateNonceAccountParams) -> InstructionFunc:
    fee_payer = require_pubkey(params.fee_payer, "fee_payer")
    nonce = require_pubkey(params.nonce, "nonce")
    authority = optional_pubkey(params.nonce_authority, "nonce_authority") or fee_payer

    def resolve(client) -> List[Instruction]:
        rent = client.get_minimum_balance_for_rent_exemption(NONCE_ACCOUNT_SIZE)
        return [
            create_account(
                CreateAccountParams(
                    from_pubkey=fee_payer,
                    to_pubkey=nonce,
                    lamports=rent,
                    space=NONCE_ACCOUNT_SIZE,
                    owner=SYS_PROGRAM_ID,
                )
            ),
            initialize_nonce_account(InitializeNonceAccountParams(nonce_pubkey=nonce, authority=authority)),
        ]

    return resolve


def advance_nonce(nonce: Pubkey, nonce_authority: Pubkey) -> Instruction:
    return advance_nonce_account(
        AdvanceNonceAccountParams(nonce_pubkey=nonce, authorized_pubkey=nonce_authority)
    )


@dataclass
class MemoParams:
    memo: str
    signers: List[Any] = field(default_factory=list)


def memo(params: MemoParams) -> List[Instruction]:
    if not params.memo:
        raise ValidationError("field memo is required")
    signers = [require_pubkey(s, "signers") for s in params.signers]
    accounts = [AccountMeta(s, True, False) for s in signers]
    return [Instruction(MEMO_PROGRAM_ID, params.memo.encode("utf-8"), accounts)]

import logging
from dataclasses import dataclass, replace
from typing import Any, List, Optional

from solders.instruction import Instruction
from solders.pubkey import Pubkey
from solders.system_program import CreateAccountParams, create_account
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import (
    AuthorityType,
    BurnParams,
    CloseAccountParams,
    FreezeAccountParams,
    InitializeMintParams,
    MintToCheckedParams,
    MintToParams,
    SetAuthorityParams,
    ThawAccountParams,
    TransferParams,
    burn,
    close_account,
    create_associated_token_account as spl_create_associated_token_account,
    freeze_account,
    initialize_mint,
    mint_to as spl_mint_to,
    mint_to_checked,
    set_authority,
    thaw_account,
    transfer,
)

from ..errors import ValidationError
from ..metaplex import build_create_metadata_account_v3_ix, data_v2_arg
from ..pda import associated_token_address
from ..types import MAX_DECIMALS
from .base import InstructionFunc, optional_pubkey, require_positive, require_pubkey
from .system import with_reference

logger = logging.getLogger("solplay.instructions")

MINT_ACCOUNT_SIZE = 82


def create_mint_account(fee_payer: Pubkey, mint: Pubkey, lamports: int) -> Instruction:
    return create_account(
        CreateAccountParams(
            from_pubkey=fee_payer,
            to_pubkey=mint,
            lamports=lamports,
            space=MINT_ACCOUNT_SIZE,
            owner=TOKEN_PROGRAM_ID,
        )
    )


def initialize_mint_ix(mint: Pubkey, decimals: int, mint_authority: Pubkey, freeze_authority: Optional[Pubkey] = None) -> Instruction:
    return initialize_mint(
        InitializeMintParams(
            decimals=decimals,
            program_id=TOKEN_PROGRAM_ID,
            mint=mint,
            mint_authority=mint_authority,
            freeze_authority=freeze_authority,
        )
    )


def mint_to_ix(mint: Pubkey, dest: Pubkey, mint_authority: Pubkey, amount: int) -> Instruction:
    return spl_mint_to(
        MintToParams(program_id=TOKEN_PROGRAM_ID, mint=mint, dest=dest, mint_authority=mint_authority, amount=amount)
    )


def revoke_mint_authority_ix(mint: Pubkey, current_authority: Pubkey) -> Instruction:
    return set_authority(
        SetAuthorityParams(
            program_id=TOKEN_PROGRAM_ID,
            account=mint,
            authority=AuthorityType.MINT_TOKENS,
            current_authority=current_authority,
            new_authority=None,
        )
    )


def create_ata_ix(funder: Pubkey, owner: Pubkey, mint: Pubkey) -> Instruction:
    return spl_create_associated_token_account(payer=funder, owner=owner, mint=mint)


@dataclass
class CreateAssociatedTokenAccountParams:
    funder: Any
    owner: Any
    mint: Any


def create_associated_token_account(params: CreateAssociatedTokenAccountParams) -> List[Instruction]:
    funder = require_pubkey(params.funder, "funder")
    owner = require_pubkey(params.owner, "owner")
    mint = require_pubkey(params.mint, "mint")
    return [create_ata_ix(funder, owner, mint)]


def create_associated_token_account_if_not_exists(params: CreateAssociatedTokenAccountParams) -> InstructionFunc:
    funder = require_pubkey(params.funder, "funder")
    owner = require_pubkey(params.owner, "owner")
    mint = require_pubkey(params.mint, "mint")
    ata = associated_token_address(owner, mint)

    def resolve(client) -> List[Instruction]:
        info = client.get_token_account_info(ata)
        if info is not None and info.mint == str(mint):
            logger.debug("ata_exists ata=%s mint=%s", ata, mint)
            return []
        return [create_ata_ix(funder, owner, mint)]

    return resolve


@dataclass
class CloseTokenAccountParams:
    owner: Any
    account: Any = None
    mint: Any = None


def close_token_account(params: CloseTokenAccountParams) -> List[Instruction]:
    owner = require_pubkey(params.owner, "owner")
    account = optional_pubkey(params.account, "account")
    mint = optional_pubkey(params.mint, "mint")
    if account is None and mint is None:
        raise ValidationError("one of account or mint must be set")
    if account is None:
        account = associated_token_address(owner, mint)
    return [
        close_account(
            CloseAccountParams(program_id=TOKEN_PROGRAM_ID, account=account, dest=owner, owner=owner)
        )
    ]


@dataclass
class FreezeTokenAccountParams:
    freeze_authority: Any
    mint: Any
    account: Any = None
    account_owner: Any = None


def _freeze_target(params: FreezeTokenAccountParams):
    authority = require_pubkey(params.freeze_authority, "freeze_authority")
    mint = require_pubkey(params.mint, "mint")
    account = optional_pubkey(params.account, "account")
    owner = optional_pubkey(params.account_owner, "account_owner")
    if account is None and owner is None:
        raise ValidationError("one of account or account_owner must be set")
    if account is None:
        account = associated_token_address(owner, mint)
    return authority, mint, account


def freeze_token_account(params: FreezeTokenAccountParams) -> List[Instruction]:
    authority, mint, account = _freeze_target(params)
    return [
        freeze_account(
            FreezeAccountParams(program_id=TOKEN_PROGRAM_ID, account=account, mint=mint, authority=authority)
        )
    ]


def thaw_token_account(params: FreezeTokenAccountParams) -> List[Instruction]:
    authority, mint, account = _freeze_target(params)
    return [
        thaw_account(ThawAccountParams(program_id=TOKEN_PROGRAM_ID, account=account, mint=mint, authority=authority))
    ]


@dataclass
class TransferTokenParams:
    sender: Any
    recipient: Any
    mint: Any
    amount: int
    reference: Any = None
    # when set, the recipient's token account is created (paid by this key) if missing
    fee_payer: Any = None


def transfer_token(params: TransferTokenParams):
    sender = require_pubkey(params.sender, "sender")
    recipient = require_pubkey(params.recipient, "recipient")
    mint = require_pubkey(params.mint, "mint")
    require_positive(params.amount, "amount")
    reference = optional_pubkey(params.reference, "reference")
    fee_payer = optional_pubkey(params.fee_payer, "fee_payer")

    ix = transfer(
        TransferParams(
            program_id=TOKEN_PROGRAM_ID,
            source=associated_token_address(sender, mint),
            dest=associated_token_address(recipient, mint),
            owner=sender,
            amount=params.amount,
        )
    )
    ix = with_reference(ix, reference)
    if fee_payer is None:
        return [ix]

    ensure_ata = create_associated_token_account_if_not_exists(
        CreateAssociatedTokenAccountParams(funder=fee_payer, owner=recipient, mint=mint)
    )

    def resolve(client) -> List[Instruction]:
        return ensure_ata(client) + [ix]

    return resolve


@dataclass
class BurnTokenParams:
    mint: Any
    owner: Any
    amount: int


def burn_token(params: BurnTokenParams) -> List[Instruction]:
    mint = require_pubkey(params.mint, "mint")
    owner = require_pubkey(params.owner, "owner")
    require_positive(params.amount, "amount")
    return [
        burn(
            BurnParams(
                program_id=TOKEN_PROGRAM_ID,
                account=associated_token_address(owner, mint),
                mint=mint,
                owner=owner,
                amount=params.amount,
            )
        )
    ]


@dataclass
class MintTokensParams:
    mint: Any
    recipient: Any
    mint_authority: Any
    amount: int
    decimals: Optional[int] = None


def mint_tokens(params: MintTokensParams) -> List[Instruction]:
    """Mint more tokens into the recipient's associated token account.

    With ``decimals`` set a checked mint-to is emitted.
    """
    mint = require_pubkey(params.mint, "mint")
    recipient = require_pubkey(params.recipient, "recipient")
    authority = require_pubkey(params.mint_authority, "mint_authority")
    require_positive(params.amount, "amount")
    dest = associated_token_address(recipient, mint)
    if params.decimals is None:
        return [mint_to_ix(mint, dest, authority, params.amount)]
    return [
        mint_to_checked(
            MintToCheckedParams(
                program_id=TOKEN_PROGRAM_ID,
                mint=mint,
                dest=dest,
                mint_authority=authority,
                amount=params.amount,
                decimals=params.decimals,
            )
        )
    ]


def validate_token_name(name: str, minimum: int = 2, maximum: int = 32) -> None:
    if not name or not minimum <= len(name) <= maximum:
        raise ValidationError(f"token name must be between {minimum} and {maximum} characters", name=name)


def validate_token_symbol(symbol: str, minimum: int = 3, maximum: int = 10) -> None:
    if not symbol or not minimum <= len(symbol) <= maximum:
        raise ValidationError(f"token symbol must be between {minimum} and {maximum} characters", symbol=symbol)


def validate_metadata_source(uri: str, name: str, symbol: str) -> None:
    if uri and not uri.startswith("http"):
        raise ValidationError("metadata uri must be a valid URI", uri=uri)
    if not uri and (not name or not symbol):
        raise ValidationError("token name and symbol are required if metadata uri is not set")
    if name:
        validate_token_name(name)
    if symbol:
        validate_token_symbol(symbol)


def resolve_name_and_symbol(client, uri: str, name: str, symbol: str):
    """Off-chain metadata wins over the given name/symbol when a URI is set."""
    if not uri:
        return name, symbol
    md = client.fetch_metadata(uri)
    if md is None:
        raise ValidationError("metadata uri returned no document", uri=uri)
    validate_token_name(md.name)
    validate_token_symbol(md.symbol, minimum=2)
    return md.name, md.symbol


@dataclass
class MintFungibleParams:
    mint: Any
    mint_to: Any
    decimals: int = 9
    supply_amount: int = 0
    is_fixed_supply: bool = False
    fee_payer: Any = None
    metadata_uri: str = ""
    token_name: str = ""
    token_symbol: str = ""


def mint_fungible(params: MintFungibleParams) -> InstructionFunc:
    mint = require_pubkey(params.mint, "mint")
    owner = require_pubkey(params.mint_to, "mint_to")
    fee_payer = optional_pubkey(params.fee_payer, "fee_payer") or owner
    if not 0 <= params.decimals <= MAX_DECIMALS:
        raise ValidationError("decimals must be between 0 and 9", decimals=params.decimals)
    if params.supply_amount < 0:
        raise ValidationError("supply amount must not be negative", supply_amount=params.supply_amount)
    validate_metadata_source(params.metadata_uri, params.token_name, params.token_symbol)

    def resolve(client) -> List[Instruction]:
        name, symbol = resolve_name_and_symbol(client, params.metadata_uri, params.token_name, params.token_symbol)
        rent = client.get_minimum_balance_for_rent_exemption(MINT_ACCOUNT_SIZE)
        instructions = [
            create_mint_account(fee_payer, mint, rent),
            initialize_mint_ix(mint, params.decimals, owner, owner),
            build_create_metadata_account_v3_ix(
                mint=mint,
                mint_authority=owner,
                payer=fee_payer,
                update_authority=owner,
                data=data_v2_arg(name, symbol, params.metadata_uri),
            ),
        ]
        if params.supply_amount > 0:
            ata = associated_token_address(owner, mint)
            instructions.append(create_ata_ix(fee_payer, owner, mint))
            instructions.append(
                mint_to_checked(
                    MintToCheckedParams(
                        program_id=TOKEN_PROGRAM_ID,
                        mint=mint,
                        dest=ata,
                        mint_authority=owner,
                        amount=params.supply_amount,
                        decimals=params.decimals,
                    )
                )
            )
            if params.is_fixed_supply:
                instructions.append(revoke_mint_authority_ix(mint, owner))
        return instructions

    return resolve


def mint_fungible_asset(params: MintFungibleParams) -> InstructionFunc:
    """Semi-fungible asset: a fungible mint with zero decimals."""
    return mint_fungible(replace(params, decimals=0))

from dataclasses import dataclass
from typing import Any, List

from solders.instruction import Instruction

from ..metaplex import build_approve_use_authority_ix, build_revoke_use_authority_ix, build_utilize_ix
from ..pda import associated_token_address, use_authority_record_pubkey
from .base import require_positive, require_pubkey


@dataclass
class ApproveUseAuthorityParams:
    fee_payer: Any
    mint: Any
    mint_owner: Any
    new_use_authority: Any
    number_of_uses: int


def approve_use_authority(params: ApproveUseAuthorityParams) -> List[Instruction]:
    fee_payer = require_pubkey(params.fee_payer, "fee_payer")
    mint = require_pubkey(params.mint, "mint")
    owner = require_pubkey(params.mint_owner, "mint_owner")
    user = require_pubkey(params.new_use_authority, "new_use_authority")
    require_positive(params.number_of_uses, "number_of_uses")
    return [
        build_approve_use_authority_ix(
            mint, owner, fee_payer, user, associated_token_address(owner, mint), params.number_of_uses
        )
    ]


@dataclass
class RevokeUseAuthorityParams:
    mint: Any
    mint_owner: Any
    use_authority: Any


def revoke_use_authority(params: RevokeUseAuthorityParams) -> List[Instruction]:
    mint = require_pubkey(params.mint, "mint")
    owner = require_pubkey(params.mint_owner, "mint_owner")
    user = require_pubkey(params.use_authority, "use_authority")
    return [build_revoke_use_authority_ix(mint, owner, user, associated_token_address(owner, mint))]


@dataclass
class UseTokenParams:
    mint: Any
    mint_owner: Any
    use_authority: Any


def use_token(params: UseTokenParams) -> List[Instruction]:
    """Consume one use of the token; delegated authorities pass their use record."""
    mint = require_pubkey(params.mint, "mint")
    owner = require_pubkey(params.mint_owner, "mint_owner")
    authority = require_pubkey(params.use_authority, "use_authority")
    record = None if authority == owner else use_authority_record_pubkey(mint, authority)
    return [
        build_utilize_ix(
            mint,
            associated_token_address(owner, mint),
            authority,
            owner,
            number_of_uses=1,
            use_authority_record=record,
        )
    ]

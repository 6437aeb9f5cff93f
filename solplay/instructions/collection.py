from dataclasses import dataclass
from typing import Any, List

from solders.instruction import Instruction

from ..errors import ValidationError
from ..metaplex import (
    build_approve_collection_authority_ix,
    build_revoke_collection_authority_ix,
    build_set_and_verify_collection_ix,
    build_set_and_verify_sized_collection_item_ix,
    build_set_collection_size_ix,
    build_unverify_collection_ix,
    build_unverify_sized_collection_item_ix,
    build_verify_collection_ix,
    build_verify_sized_collection_item_ix,
)
from ..pda import collection_authority_record_pubkey
from .base import optional_pubkey, require_pubkey


@dataclass
class ApproveCollectionAuthorityParams:
    collection_mint: Any
    update_authority: Any
    new_collection_authority: Any
    fee_payer: Any = None


def approve_collection_authority(params: ApproveCollectionAuthorityParams) -> List[Instruction]:
    collection_mint = require_pubkey(params.collection_mint, "collection_mint")
    update_authority = require_pubkey(params.update_authority, "update_authority")
    new_authority = require_pubkey(params.new_collection_authority, "new_collection_authority")
    fee_payer = optional_pubkey(params.fee_payer, "fee_payer") or update_authority
    return [build_approve_collection_authority_ix(collection_mint, new_authority, update_authority, fee_payer)]


@dataclass
class RevokeCollectionAuthorityParams:
    collection_mint: Any
    delegate_authority: Any
    revoke_authority: Any


def revoke_collection_authority(params: RevokeCollectionAuthorityParams) -> List[Instruction]:
    collection_mint = require_pubkey(params.collection_mint, "collection_mint")
    delegate = require_pubkey(params.delegate_authority, "delegate_authority")
    revoke_authority = require_pubkey(params.revoke_authority, "revoke_authority")
    return [build_revoke_collection_authority_ix(collection_mint, delegate, revoke_authority)]


@dataclass
class CollectionItemParams:
    """Shared by the verify / unverify / set-and-verify operations.

    ``is_delegated`` adds the collection authority record of
    ``collection_authority`` to the account list, which the program requires
    when the authority is a delegate rather than the update authority.
    """

    mint: Any
    collection_mint: Any
    collection_authority: Any
    fee_payer: Any = None
    update_authority: Any = None
    is_delegated: bool = False


def _item_keys(params: CollectionItemParams):
    mint = require_pubkey(params.mint, "mint")
    collection_mint = require_pubkey(params.collection_mint, "collection_mint")
    authority = require_pubkey(params.collection_authority, "collection_authority")
    if mint == collection_mint:
        raise ValidationError("an nft cannot be a member of its own collection")
    fee_payer = optional_pubkey(params.fee_payer, "fee_payer") or authority
    record = collection_authority_record_pubkey(collection_mint, authority) if params.is_delegated else None
    return mint, collection_mint, authority, fee_payer, record


def _update_authority(params: CollectionItemParams, default):
    return optional_pubkey(params.update_authority, "update_authority") or default


def verify_collection_item(params: CollectionItemParams) -> List[Instruction]:
    mint, collection_mint, authority, fee_payer, record = _item_keys(params)
    return [build_verify_collection_ix(mint, collection_mint, authority, fee_payer, record)]


def unverify_collection_item(params: CollectionItemParams) -> List[Instruction]:
    mint, collection_mint, authority, _, record = _item_keys(params)
    return [build_unverify_collection_ix(mint, collection_mint, authority, record)]


def set_and_verify_collection(params: CollectionItemParams) -> List[Instruction]:
    mint, collection_mint, authority, fee_payer, record = _item_keys(params)
    update_authority = _update_authority(params, authority)
    return [build_set_and_verify_collection_ix(mint, collection_mint, authority, fee_payer, update_authority, record)]


def verify_sized_collection_item(params: CollectionItemParams) -> List[Instruction]:
    mint, collection_mint, authority, fee_payer, record = _item_keys(params)
    return [build_verify_sized_collection_item_ix(mint, collection_mint, authority, fee_payer, record)]


def unverify_sized_collection_item(params: CollectionItemParams) -> List[Instruction]:
    mint, collection_mint, authority, fee_payer, record = _item_keys(params)
    return [build_unverify_sized_collection_item_ix(mint, collection_mint, authority, fee_payer, record)]


def set_and_verify_sized_collection_item(params: CollectionItemParams) -> List[Instruction]:
    mint, collection_mint, authority, fee_payer, record = _item_keys(params)
    update_authority = _update_authority(params, authority)
    return [
        build_set_and_verify_sized_collection_item_ix(
            mint, collection_mint, authority, fee_payer, update_authority, record
        )
    ]


@dataclass
class SetCollectionSizeParams:
    collection_mint: Any
    collection_authority: Any
    size: int
    is_delegated: bool = False


def set_collection_size(params: SetCollectionSizeParams) -> List[Instruction]:
    collection_mint = require_pubkey(params.collection_mint, "collection_mint")
    authority = require_pubkey(params.collection_authority, "collection_authority")
    if params.size is None or params.size < 0:
        raise ValidationError("collection size must not be negative", size=params.size)
    record = collection_authority_record_pubkey(collection_mint, authority) if params.is_delegated else None
    return [build_set_collection_size_ix(collection_mint, authority, params.size, record)]

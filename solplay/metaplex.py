"""Instruction encoders for the Metaplex token-metadata program."""

from typing import List, Optional

from borsh_construct import Bool, CStruct, Option, U64, U8
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYS_PROGRAM_ID
from solders.sysvar import RENT as SYSVAR_RENT_PUBKEY
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID

from .pda import (
    METADATA_PROGRAM_ID,
    burner_pubkey,
    collection_authority_record_pubkey,
    edition_marker_pubkey,
    edition_pubkey,
    metadata_pubkey,
    use_authority_record_pubkey,
)
from .token_metadata import CollectionDetailsLayout, DataV2Layout

SIGN_METADATA = 7
MINT_NEW_EDITION_FROM_MASTER_EDITION_VIA_TOKEN = 11
UPDATE_METADATA_ACCOUNT_V2 = 15
CREATE_MASTER_EDITION_V3 = 17
VERIFY_COLLECTION = 18
UTILIZE = 19
APPROVE_USE_AUTHORITY = 20
REVOKE_USE_AUTHORITY = 21
UNVERIFY_COLLECTION = 22
APPROVE_COLLECTION_AUTHORITY = 23
REVOKE_COLLECTION_AUTHORITY = 24
SET_AND_VERIFY_COLLECTION = 25
REMOVE_CREATOR_VERIFICATION = 28
BURN_NFT = 29
VERIFY_SIZED_COLLECTION_ITEM = 30
UNVERIFY_SIZED_COLLECTION_ITEM = 31
SET_AND_VERIFY_SIZED_COLLECTION_ITEM = 32
CREATE_METADATA_ACCOUNT_V3 = 33
SET_COLLECTION_SIZE = 34
BURN_EDITION_NFT = 37

CreateMetadataAccountV3Layout = CStruct(
    "data" / DataV2Layout,
    "is_mutable" / Bool,
    "collection_details" / Option(CollectionDetailsLayout),
)
UpdateMetadataAccountV2Layout = CStruct(
    "data" / Option(DataV2Layout),
    "update_authority" / Option(U8[32]),
    "primary_sale_happened" / Option(Bool),
    "is_mutable" / Option(Bool),
)
CreateMasterEditionLayout = CStruct("max_supply" / Option(U64))
EditionNumberLayout = CStruct("edition" / U64)
NumberOfUsesLayout = CStruct("number_of_uses" / U64)
SizeLayout = CStruct("size" / U64)


def creator_arg(address: Pubkey, share: int, verified: bool = False) -> dict:
    return {"address": list(bytes(address)), "verified": verified, "share": share}


def collection_arg(key: Pubkey, verified: bool = False) -> dict:
    return {"verified": verified, "key": list(bytes(key))}


def uses_arg(use_method: int, remaining: int, total: int) -> dict:
    return {"use_method": use_method, "remaining": remaining, "total": total}


def data_v2_arg(
    name: str,
    symbol: str,
    uri: str,
    seller_fee_basis_points: int = 0,
    creators: Optional[List[dict]] = None,
    collection: Optional[dict] = None,
    uses: Optional[dict] = None,
) -> dict:
    return {
        "name": name,
        "symbol": symbol,
        "uri": uri,
        "seller_fee_basis_points": seller_fee_basis_points,
        "creators": creators,
        "collection": collection,
        "uses": uses,
    }


def encode_create_metadata_account_v3(data: dict, is_mutable: bool, collection_size: Optional[int]) -> bytes:
    details = None
    if collection_size is not None:
        details = CollectionDetailsLayout.enum.V1(size=collection_size)
    return bytes([CREATE_METADATA_ACCOUNT_V3]) + CreateMetadataAccountV3Layout.build(
        {"data": data, "is_mutable": is_mutable, "collection_details": details}
    )


def encode_update_metadata_account_v2(
    data: Optional[dict],
    new_update_authority: Optional[Pubkey],
    primary_sale_happened: Optional[bool],
    is_mutable: Optional[bool],
) -> bytes:
    return bytes([UPDATE_METADATA_ACCOUNT_V2]) + UpdateMetadataAccountV2Layout.build(
        {
            "data": data,
            "update_authority": list(bytes(new_update_authority)) if new_update_authority else None,
            "primary_sale_happened": primary_sale_happened,
            "is_mutable": is_mutable,
        }
    )


def _record_meta(record: Optional[Pubkey], writable: bool = False) -> List[AccountMeta]:
    if record is None:
        return []
    return [AccountMeta(record, False, writable)]


def build_create_metadata_account_v3_ix(
    mint: Pubkey,
    mint_authority: Pubkey,
    payer: Pubkey,
    update_authority: Pubkey,
    data: dict,
    is_mutable: bool = True,
    update_authority_is_signer: bool = True,
    collection_size: Optional[int] = None,
) -> Instruction:
    accounts = [
        AccountMeta(metadata_pubkey(mint), False, True),
        AccountMeta(mint, False, False),
        AccountMeta(mint_authority, True, False),
        AccountMeta(payer, True, True),
        AccountMeta(update_authority, update_authority_is_signer, False),
        AccountMeta(SYS_PROGRAM_ID, False, False),
        AccountMeta(SYSVAR_RENT_PUBKEY, False, False),
    ]
    data_bytes = encode_create_metadata_account_v3(data, is_mutable, collection_size)
    return Instruction(METADATA_PROGRAM_ID, data_bytes, accounts)


def build_update_metadata_account_v2_ix(
    mint: Pubkey,
    update_authority: Pubkey,
    data: Optional[dict] = None,
    new_update_authority: Optional[Pubkey] = None,
    primary_sale_happened: Optional[bool] = None,
    is_mutable: Optional[bool] = None,
) -> Instruction:
    accounts = [
        AccountMeta(metadata_pubkey(mint), False, True),
        AccountMeta(update_authority, True, False),
    ]
    data_bytes = encode_update_metadata_account_v2(data, new_update_authority, primary_sale_happened, is_mutable)
    return Instruction(METADATA_PROGRAM_ID, data_bytes, accounts)


def build_create_master_edition_v3_ix(
    mint: Pubkey,
    update_authority: Pubkey,
    mint_authority: Pubkey,
    payer: Pubkey,
    max_supply: Optional[int],
    metadata: Optional[Pubkey] = None,
) -> Instruction:
    accounts = [
        AccountMeta(edition_pubkey(mint), False, True),
        AccountMeta(mint, False, True),
        AccountMeta(update_authority, True, False),
        AccountMeta(mint_authority, True, False),
        AccountMeta(payer, True, True),
        AccountMeta(metadata or metadata_pubkey(mint), False, True),
        AccountMeta(TOKEN_PROGRAM_ID, False, False),
        AccountMeta(SYS_PROGRAM_ID, False, False),
        AccountMeta(SYSVAR_RENT_PUBKEY, False, False),
    ]
    data = bytes([CREATE_MASTER_EDITION_V3]) + CreateMasterEditionLayout.build({"max_supply": max_supply})
    return Instruction(METADATA_PROGRAM_ID, data, accounts)


def build_mint_new_edition_from_master_edition_via_token_ix(
    new_mint: Pubkey,
    new_mint_authority: Pubkey,
    payer: Pubkey,
    master_mint: Pubkey,
    token_account_owner: Pubkey,
    token_account: Pubkey,
    new_update_authority: Pubkey,
    edition: int,
) -> Instruction:
    accounts = [
        AccountMeta(metadata_pubkey(new_mint), False, True),
        AccountMeta(edition_pubkey(new_mint), False, True),
        AccountMeta(edition_pubkey(master_mint), False, True),
        AccountMeta(new_mint, False, True),
        AccountMeta(edition_marker_pubkey(master_mint, edition), False, True),
        AccountMeta(new_mint_authority, True, False),
        AccountMeta(payer, True, True),
        AccountMeta(token_account_owner, True, False),
        AccountMeta(token_account, False, False),
        AccountMeta(new_update_authority, False, False),
        AccountMeta(metadata_pubkey(master_mint), False, False),
        AccountMeta(TOKEN_PROGRAM_ID, False, False),
        AccountMeta(SYS_PROGRAM_ID, False, False),
        AccountMeta(SYSVAR_RENT_PUBKEY, False, False),
    ]
    data = bytes([MINT_NEW_EDITION_FROM_MASTER_EDITION_VIA_TOKEN]) + EditionNumberLayout.build({"edition": edition})
    return Instruction(METADATA_PROGRAM_ID, data, accounts)


def build_sign_metadata_ix(mint: Pubkey, creator: Pubkey) -> Instruction:
    accounts = [
        AccountMeta(metadata_pubkey(mint), False, True),
        AccountMeta(creator, True, False),
    ]
    return Instruction(METADATA_PROGRAM_ID, bytes([SIGN_METADATA]), accounts)


def build_remove_creator_verification_ix(mint: Pubkey, creator: Pubkey) -> Instruction:
    accounts = [
        AccountMeta(metadata_pubkey(mint), False, True),
        AccountMeta(creator, True, False),
    ]
    return Instruction(METADATA_PROGRAM_ID, bytes([REMOVE_CREATOR_VERIFICATION]), accounts)


def build_approve_collection_authority_ix(
    collection_mint: Pubkey, new_collection_authority: Pubkey, update_authority: Pubkey, payer: Pubkey
) -> Instruction:
    accounts = [
        AccountMeta(collection_authority_record_pubkey(collection_mint, new_collection_authority), False, True),
        AccountMeta(new_collection_authority, False, False),
        AccountMeta(update_authority, True, True),
        AccountMeta(payer, True, True),
        AccountMeta(metadata_pubkey(collection_mint), False, False),
        AccountMeta(collection_mint, False, False),
        AccountMeta(SYS_PROGRAM_ID, False, False),
        AccountMeta(SYSVAR_RENT_PUBKEY, False, False),
    ]
    return Instruction(METADATA_PROGRAM_ID, bytes([APPROVE_COLLECTION_AUTHORITY]), accounts)


def build_revoke_collection_authority_ix(
    collection_mint: Pubkey, delegate_authority: Pubkey, revoke_authority: Pubkey
) -> Instruction:
    accounts = [
        AccountMeta(collection_authority_record_pubkey(collection_mint, delegate_authority), False, True),
        AccountMeta(delegate_authority, False, True),
        AccountMeta(revoke_authority, True, True),
        AccountMeta(metadata_pubkey(collection_mint), False, False),
        AccountMeta(collection_mint, False, False),
    ]
    return Instruction(METADATA_PROGRAM_ID, bytes([REVOKE_COLLECTION_AUTHORITY]), accounts)


def build_verify_collection_ix(
    mint: Pubkey,
    collection_mint: Pubkey,
    collection_authority: Pubkey,
    payer: Pubkey,
    collection_authority_record: Optional[Pubkey] = None,
) -> Instruction:
    accounts = [
        AccountMeta(metadata_pubkey(mint), False, True),
        AccountMeta(collection_authority, True, True),
        AccountMeta(payer, True, True),
        AccountMeta(collection_mint, False, False),
        AccountMeta(metadata_pubkey(collection_mint), False, False),
        AccountMeta(edition_pubkey(collection_mint), False, False),
        *_record_meta(collection_authority_record),
    ]
    return Instruction(METADATA_PROGRAM_ID, bytes([VERIFY_COLLECTION]), accounts)


def build_unverify_collection_ix(
    mint: Pubkey,
    collection_mint: Pubkey,
    collection_authority: Pubkey,
    collection_authority_record: Optional[Pubkey] = None,
) -> Instruction:
    accounts = [
        AccountMeta(metadata_pubkey(mint), False, True),
        AccountMeta(collection_authority, True, True),
        AccountMeta(collection_mint, False, False),
        AccountMeta(metadata_pubkey(collection_mint), False, False),
        AccountMeta(edition_pubkey(collection_mint), False, False),
        *_record_meta(collection_authority_record),
    ]
    return Instruction(METADATA_PROGRAM_ID, bytes([UNVERIFY_COLLECTION]), accounts)


def build_set_and_verify_collection_ix(
    mint: Pubkey,
    collection_mint: Pubkey,
    collection_authority: Pubkey,
    payer: Pubkey,
    update_authority: Pubkey,
    collection_authority_record: Optional[Pubkey] = None,
) -> Instruction:
    accounts = [
        AccountMeta(metadata_pubkey(mint), False, True),
        AccountMeta(collection_authority, True, True),
        AccountMeta(payer, True, True),
        AccountMeta(update_authority, False, False),
        AccountMeta(collection_mint, False, False),
        AccountMeta(metadata_pubkey(collection_mint), False, False),
        AccountMeta(edition_pubkey(collection_mint), False, False),
        *_record_meta(collection_authority_record),
    ]
    return Instruction(METADATA_PROGRAM_ID, bytes([SET_AND_VERIFY_COLLECTION]), accounts)


def _sized_collection_item_ix(
    discriminator: int,
    mint: Pubkey,
    collection_mint: Pubkey,
    collection_authority: Pubkey,
    payer: Pubkey,
    update_authority: Optional[Pubkey],
    collection_authority_record: Optional[Pubkey],
) -> Instruction:
    accounts = [
        AccountMeta(metadata_pubkey(mint), False, True),
        AccountMeta(collection_authority, True, False),
        AccountMeta(payer, True, True),
    ]
    if update_authority is not None:
        accounts.append(AccountMeta(update_authority, False, False))
    accounts += [
        AccountMeta(collection_mint, False, False),
        AccountMeta(metadata_pubkey(collection_mint), False, True),
        AccountMeta(edition_pubkey(collection_mint), False, False),
        *_record_meta(collection_authority_record),
    ]
    return Instruction(METADATA_PROGRAM_ID, bytes([discriminator]), accounts)


def build_verify_sized_collection_item_ix(
    mint: Pubkey,
    collection_mint: Pubkey,
    collection_authority: Pubkey,
    payer: Pubkey,
    collection_authority_record: Optional[Pubkey] = None,
) -> Instruction:
    return _sized_collection_item_ix(
        VERIFY_SIZED_COLLECTION_ITEM, mint, collection_mint, collection_authority, payer, None,
        collection_authority_record,
    )


def build_unverify_sized_collection_item_ix(
    mint: Pubkey,
    collection_mint: Pubkey,
    collection_authority: Pubkey,
    payer: Pubkey,
    collection_authority_record: Optional[Pubkey] = None,
) -> Instruction:
    return _sized_collection_item_ix(
        UNVERIFY_SIZED_COLLECTION_ITEM, mint, collection_mint, collection_authority, payer, None,
        collection_authority_record,
    )


def build_set_and_verify_sized_collection_item_ix(
    mint: Pubkey,
    collection_mint: Pubkey,
    collection_authority: Pubkey,
    payer: Pubkey,
    update_authority: Pubkey,
    collection_authority_record: Optional[Pubkey] = None,
) -> Instruction:
    return _sized_collection_item_ix(
        SET_AND_VERIFY_SIZED_COLLECTION_ITEM, mint, collection_mint, collection_authority, payer,
        update_authority, collection_authority_record,
    )


def build_set_collection_size_ix(
    collection_mint: Pubkey,
    collection_authority: Pubkey,
    size: int,
    collection_authority_record: Optional[Pubkey] = None,
) -> Instruction:
    accounts = [
        AccountMeta(metadata_pubkey(collection_mint), False, True),
        AccountMeta(collection_authority, True, True),
        AccountMeta(collection_mint, False, False),
        *_record_meta(collection_authority_record),
    ]
    data = bytes([SET_COLLECTION_SIZE]) + SizeLayout.build({"size": size})
    return Instruction(METADATA_PROGRAM_ID, data, accounts)


def build_approve_use_authority_ix(
    mint: Pubkey, owner: Pubkey, payer: Pubkey, user: Pubkey, owner_token_account: Pubkey, number_of_uses: int
) -> Instruction:
    accounts = [
        AccountMeta(use_authority_record_pubkey(mint, user), False, True),
        AccountMeta(owner, True, True),
        AccountMeta(payer, True, True),
        AccountMeta(user, False, False),
        AccountMeta(owner_token_account, False, True),
        AccountMeta(metadata_pubkey(mint), False, False),
        AccountMeta(mint, False, False),
        AccountMeta(burner_pubkey(), False, False),
        AccountMeta(TOKEN_PROGRAM_ID, False, False),
        AccountMeta(SYS_PROGRAM_ID, False, False),
        AccountMeta(SYSVAR_RENT_PUBKEY, False, False),
    ]
    data = bytes([APPROVE_USE_AUTHORITY]) + NumberOfUsesLayout.build({"number_of_uses": number_of_uses})
    return Instruction(METADATA_PROGRAM_ID, data, accounts)


def build_revoke_use_authority_ix(mint: Pubkey, owner: Pubkey, user: Pubkey, owner_token_account: Pubkey) -> Instruction:
    accounts = [
        AccountMeta(use_authority_record_pubkey(mint, user), False, True),
        AccountMeta(owner, True, True),
        AccountMeta(user, False, False),
        AccountMeta(owner_token_account, False, True),
        AccountMeta(mint, False, False),
        AccountMeta(metadata_pubkey(mint), False, False),
        AccountMeta(TOKEN_PROGRAM_ID, False, False),
        AccountMeta(SYS_PROGRAM_ID, False, False),
        AccountMeta(SYSVAR_RENT_PUBKEY, False, False),
    ]
    return Instruction(METADATA_PROGRAM_ID, bytes([REVOKE_USE_AUTHORITY]), accounts)


def build_utilize_ix(
    mint: Pubkey,
    token_account: Pubkey,
    use_authority: Pubkey,
    owner: Pubkey,
    number_of_uses: int = 1,
    use_authority_record: Optional[Pubkey] = None,
) -> Instruction:
    accounts = [
        AccountMeta(metadata_pubkey(mint), False, True),
        AccountMeta(token_account, False, True),
        AccountMeta(mint, False, True),
        AccountMeta(use_authority, True, True),
        AccountMeta(owner, False, False),
        AccountMeta(TOKEN_PROGRAM_ID, False, False),
        AccountMeta(ASSOCIATED_TOKEN_PROGRAM_ID, False, False),
        AccountMeta(SYS_PROGRAM_ID, False, False),
        AccountMeta(SYSVAR_RENT_PUBKEY, False, False),
    ]
    if use_authority_record is not None:
        accounts.append(AccountMeta(use_authority_record, False, True))
        accounts.append(AccountMeta(burner_pubkey(), False, False))
    data = bytes([UTILIZE]) + NumberOfUsesLayout.build({"number_of_uses": number_of_uses})
    return Instruction(METADATA_PROGRAM_ID, data, accounts)


def build_burn_nft_ix(
    mint: Pubkey, owner: Pubkey, token_account: Pubkey, collection_metadata: Optional[Pubkey] = None
) -> Instruction:
    accounts = [
        AccountMeta(metadata_pubkey(mint), False, True),
        AccountMeta(owner, True, True),
        AccountMeta(mint, False, True),
        AccountMeta(token_account, False, True),
        AccountMeta(edition_pubkey(mint), False, True),
        AccountMeta(TOKEN_PROGRAM_ID, False, False),
        *_record_meta(collection_metadata, writable=True),
    ]
    return Instruction(METADATA_PROGRAM_ID, bytes([BURN_NFT]), accounts)


def build_burn_edition_nft_ix(
    print_mint: Pubkey,
    master_mint: Pubkey,
    owner: Pubkey,
    print_token_account: Pubkey,
    master_token_account: Pubkey,
    edition: int,
) -> Instruction:
    accounts = [
        AccountMeta(metadata_pubkey(print_mint), False, True),
        AccountMeta(owner, True, True),
        AccountMeta(print_mint, False, True),
        AccountMeta(master_mint, False, False),
        AccountMeta(print_token_account, False, True),
        AccountMeta(master_token_account, False, False),
        AccountMeta(edition_pubkey(master_mint), False, True),
        AccountMeta(edition_pubkey(print_mint), False, True),
        AccountMeta(edition_marker_pubkey(master_mint, edition), False, True),
        AccountMeta(TOKEN_PROGRAM_ID, False, False),
    ]
    return Instruction(METADATA_PROGRAM_ID, bytes([BURN_EDITION_NFT]), accounts)

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from solders.instruction import Instruction
from solders.pubkey import Pubkey

from ..errors import MaxSupplyReachedError, SolplayError, TokenIsNotMasterEditionError, ValidationError
from ..metaplex import (
    build_burn_edition_nft_ix,
    build_burn_nft_ix,
    build_create_master_edition_v3_ix,
    build_create_metadata_account_v3_ix,
    build_mint_new_edition_from_master_edition_via_token_ix,
    build_remove_creator_verification_ix,
    build_sign_metadata_ix,
    build_update_metadata_account_v2_ix,
    collection_arg,
    creator_arg,
    data_v2_arg,
    uses_arg,
)
from ..pda import associated_token_address, metadata_pubkey
from ..token_metadata import Metadata, UseMethod, parse_use_method
from .base import InstructionFunc, optional_pubkey, require_pubkey
from .collection import (
    ApproveCollectionAuthorityParams,
    CollectionItemParams,
    approve_collection_authority,
    verify_sized_collection_item,
)
from .token import (
    MINT_ACCOUNT_SIZE,
    create_ata_ix,
    create_mint_account,
    initialize_mint_ix,
    mint_to_ix,
    resolve_name_and_symbol,
    validate_metadata_source,
)

logger = logging.getLogger("solplay.instructions")

MAX_SELLER_FEE_BASIS_POINTS = 10000


@dataclass
class CreatorShare:
    address: Any
    share: int


def uses_for(use_method: Any, use_limit: Optional[int]) -> Optional[dict]:
    """Single-use tokens always have one use; otherwise the limit defaults to 1."""
    if use_method is None:
        return None
    method = parse_use_method(use_method)
    limit = use_limit or 1
    if method == UseMethod.SINGLE:
        limit = 1
    return uses_arg(method.code, limit, limit)


def creators_for(owner: Pubkey, fee_payer: Pubkey, creators: Optional[List[CreatorShare]]) -> List[dict]:
    """Build the on-chain creator list.

    Only the owner is marked verified. The fee payer is always listed, with a
    zero share when it is not one of the given creators.
    """
    if not creators:
        result = [creator_arg(owner, 100, verified=True)]
        if fee_payer != owner:
            result.append(creator_arg(fee_payer, 0))
        return result

    result = []
    total = 0
    fee_payer_listed = False
    for creator in creators:
        address = require_pubkey(creator.address, "creators.address")
        if creator.share < 0:
            raise ValidationError("creator share must not be negative", address=str(address))
        total += creator.share
        fee_payer_listed = fee_payer_listed or address == fee_payer
        result.append(creator_arg(address, creator.share, verified=address == owner))
    if total != 100:
        raise ValidationError("creators share must be 100", total=total)
    if not fee_payer_listed:
        result.append(creator_arg(fee_payer, 0))
    return result


@dataclass
class MintNonFungibleParams:
    mint: Any
    owner: Any
    fee_payer: Any = None
    collection: Any = None
    collection_authority: Any = None
    creators: Optional[List[CreatorShare]] = None
    max_edition_supply: Optional[int] = 0
    metadata_uri: str = ""
    token_name: str = ""
    token_symbol: str = ""
    seller_fee_basis_points: int = 0
    # set to mint a sized collection parent
    collection_size: Optional[int] = None
    use_method: Any = None
    use_limit: Optional[int] = None


def mint_non_fungible(params: MintNonFungibleParams) -> InstructionFunc:
    mint = require_pubkey(params.mint, "mint")
    owner = require_pubkey(params.owner, "owner")
    fee_payer = optional_pubkey(params.fee_payer, "fee_payer") or owner
    collection = optional_pubkey(params.collection, "collection")
    collection_authority = optional_pubkey(params.collection_authority, "collection_authority")
    validate_metadata_source(params.metadata_uri, params.token_name, params.token_symbol)
    if not 0 <= params.seller_fee_basis_points <= MAX_SELLER_FEE_BASIS_POINTS:
        raise ValidationError("seller fee basis points must be between 0 and 10000")
    uses = uses_for(params.use_method, params.use_limit)
    creators = creators_for(owner, fee_payer, params.creators)

    def resolve(client) -> List[Instruction]:
        name, symbol = resolve_name_and_symbol(client, params.metadata_uri, params.token_name, params.token_symbol)
        data = data_v2_arg(
            name,
            symbol,
            params.metadata_uri,
            seller_fee_basis_points=params.seller_fee_basis_points,
            creators=creators,
            collection=collection_arg(collection) if collection else None,
            uses=uses,
        )
        rent = client.get_minimum_balance_for_rent_exemption(MINT_ACCOUNT_SIZE)
        instructions = [
            create_mint_account(fee_payer, mint, rent),
            initialize_mint_ix(mint, 0, owner, owner),
            build_create_metadata_account_v3_ix(
                mint=mint,
                mint_authority=owner,
                payer=fee_payer,
                update_authority=owner,
                data=data,
                collection_size=params.collection_size,
            ),
            create_ata_ix(fee_payer, owner, mint),
            mint_to_ix(mint, associated_token_address(owner, mint), owner, 1),
            build_create_master_edition_v3_ix(
                mint=mint,
                update_authority=owner,
                mint_authority=owner,
                payer=fee_payer,
                max_supply=params.max_edition_supply,
            ),
        ]
        if fee_payer != owner:
            instructions.append(build_sign_metadata_ix(mint, fee_payer))
        if params.collection_size is not None:
            instructions += approve_collection_authority(
                ApproveCollectionAuthorityParams(
                    collection_mint=mint,
                    update_authority=owner,
                    new_collection_authority=owner,
                    fee_payer=fee_payer,
                )
            )
        if collection is not None and collection_authority is not None:
            instructions += verify_sized_collection_item(
                CollectionItemParams(
                    mint=mint,
                    collection_mint=collection,
                    collection_authority=collection_authority,
                    fee_payer=fee_payer,
                )
            )
        return instructions

    return resolve


def next_edition_number(client, master_mint: Pubkey) -> int:
    """Edition number the next print of ``master_mint`` will get."""
    info = client.get_master_edition_info(master_mint)
    if info is None or not info.is_master:
        raise TokenIsNotMasterEditionError(mint=str(master_mint), type=getattr(info, "type", None))
    if info.max_supply is not None and (info.max_supply == 0 or info.supply >= info.max_supply):
        raise MaxSupplyReachedError(mint=str(master_mint), supply=info.supply, max_supply=info.max_supply)
    return info.supply + 1


def print_edition_instructions(
    fee_payer: Pubkey,
    master_mint: Pubkey,
    master_owner: Pubkey,
    new_mint: Pubkey,
    new_owner: Pubkey,
    edition: int,
    rent: int,
) -> List[Instruction]:
    """Create the print mint, mint its single token and register it as ``edition``."""
    return [
        create_mint_account(fee_payer, new_mint, rent),
        initialize_mint_ix(new_mint, 0, master_owner, master_owner),
        create_ata_ix(fee_payer, new_owner, new_mint),
        mint_to_ix(new_mint, associated_token_address(new_owner, new_mint), master_owner, 1),
        build_mint_new_edition_from_master_edition_via_token_ix(
            new_mint=new_mint,
            new_mint_authority=master_owner,
            payer=fee_payer,
            master_mint=master_mint,
            token_account_owner=master_owner,
            token_account=associated_token_address(master_owner, master_mint),
            new_update_authority=master_owner,
            edition=edition,
        ),
    ]


@dataclass
class MintNonFungibleEditionParams:
    fee_payer: Any
    master_edition_mint: Any
    master_edition_owner: Any
    edition_mint: Any
    edition_owner: Any = None
    edition: int = 0


def mint_non_fungible_edition(params: MintNonFungibleEditionParams) -> InstructionFunc:
    fee_payer = require_pubkey(params.fee_payer, "fee_payer")
    master_mint = require_pubkey(params.master_edition_mint, "master_edition_mint")
    master_owner = require_pubkey(params.master_edition_owner, "master_edition_owner")
    new_mint = require_pubkey(params.edition_mint, "edition_mint")
    new_owner = optional_pubkey(params.edition_owner, "edition_owner") or master_owner

    def resolve(client) -> List[Instruction]:
        edition = params.edition or next_edition_number(client, master_mint)
        rent = client.get_minimum_balance_for_rent_exemption(MINT_ACCOUNT_SIZE)
        return print_edition_instructions(fee_payer, master_mint, master_owner, new_mint, new_owner, edition, rent)

    return resolve


@dataclass
class BurnNftParams:
    mint: Any
    mint_owner: Any
    collection_mint: Any = None


def burn_nft(params: BurnNftParams) -> List[Instruction]:
    mint = require_pubkey(params.mint, "mint")
    owner = require_pubkey(params.mint_owner, "mint_owner")
    collection_mint = optional_pubkey(params.collection_mint, "collection_mint")
    collection_metadata = metadata_pubkey(collection_mint) if collection_mint else None
    return [build_burn_nft_ix(mint, owner, associated_token_address(owner, mint), collection_metadata)]


@dataclass
class BurnNftEditionParams:
    master_mint: Any
    master_mint_owner: Any
    edition_mint: Any
    edition_mint_owner: Any


def burn_nft_edition(params: BurnNftEditionParams) -> InstructionFunc:
    master_mint = require_pubkey(params.master_mint, "master_mint")
    master_owner = require_pubkey(params.master_mint_owner, "master_mint_owner")
    print_mint = require_pubkey(params.edition_mint, "edition_mint")
    print_owner = require_pubkey(params.edition_mint_owner, "edition_mint_owner")

    def resolve(client) -> List[Instruction]:
        info = client.get_edition_info(print_mint)
        if info is None or not info.edition:
            raise ValidationError("token is not a printed edition", mint=str(print_mint))
        return [
            build_burn_edition_nft_ix(
                print_mint=print_mint,
                master_mint=master_mint,
                owner=print_owner,
                print_token_account=associated_token_address(print_owner, print_mint),
                master_token_account=associated_token_address(master_owner, master_mint),
                edition=info.edition,
            )
        ]

    return resolve


@dataclass
class CreatorParams:
    mint: Any
    creator: Any


def verify_creator(params: CreatorParams) -> List[Instruction]:
    mint = require_pubkey(params.mint, "mint")
    creator = require_pubkey(params.creator, "creator")
    return [build_sign_metadata_ix(mint, creator)]


def remove_creator_verification(params: CreatorParams) -> List[Instruction]:
    mint = require_pubkey(params.mint, "mint")
    creator = require_pubkey(params.creator, "creator")
    return [build_remove_creator_verification_ix(mint, creator)]


@dataclass
class UpdateMetadataParams:
    mint: Any
    update_authority: Any
    new_update_authority: Any = None
    metadata_uri: Optional[str] = None
    seller_fee_basis_points: Optional[int] = None
    creators: Optional[List[CreatorShare]] = None
    primary_sale_happened: Optional[bool] = None
    is_mutable: Optional[bool] = None
    collection: Any = None
    use_method: Any = None
    use_limit: Optional[int] = None
    use_remaining: Optional[int] = None

    def touches_data(self) -> bool:
        return any(
            value is not None
            for value in (self.metadata_uri, self.seller_fee_basis_points, self.creators, self.collection, self.use_method)
        )


def _merged_creators(old: Metadata, params: UpdateMetadataParams, authority: Pubkey) -> Optional[List[dict]]:
    if params.creators:
        result = []
        for creator in params.creators:
            address = require_pubkey(creator.address, "creators.address")
            result.append(creator_arg(address, creator.share, verified=address == authority))
        return result
    if old.creators:
        return [creator_arg(Pubkey.from_string(c.address), c.share, verified=c.verified) for c in old.creators]
    return None


def _merged_collection(old: Metadata, collection: Optional[Pubkey]) -> Optional[dict]:
    if collection is not None:
        return collection_arg(collection, verified=False)
    if old.collection is not None:
        return collection_arg(Pubkey.from_string(old.collection.key), verified=old.collection.verified)
    return None


def _merged_uses(old: Metadata, params: UpdateMetadataParams) -> Optional[dict]:
    if params.use_method is not None:
        method = parse_use_method(params.use_method)
        limit = params.use_limit or 1
        remaining = params.use_remaining or limit
        return uses_arg(method.code, remaining, limit)
    if old.uses is not None:
        try:
            method = UseMethod(old.uses.use_method)
        except ValueError:
            return None
        return uses_arg(method.code, old.uses.remaining, old.uses.total)
    return None


def update_metadata(params: UpdateMetadataParams) -> InstructionFunc:
    mint = require_pubkey(params.mint, "mint")
    authority = require_pubkey(params.update_authority, "update_authority")
    new_authority = optional_pubkey(params.new_update_authority, "new_update_authority")
    collection = optional_pubkey(params.collection, "collection")
    uri = params.metadata_uri
    if uri is not None and not (uri.startswith("http://") or uri.startswith("https://")):
        raise ValidationError("metadata uri is invalid", uri=uri)
    fee = params.seller_fee_basis_points
    if fee is not None and not 0 <= fee <= MAX_SELLER_FEE_BASIS_POINTS:
        raise ValidationError("seller fee basis points must be less than or equal to 10000", value=fee)
    if params.use_method is not None:
        parse_use_method(params.use_method)
        if params.use_limit is not None and params.use_limit <= 0:
            raise ValidationError("use limit must be greater than 0", value=params.use_limit)

    def resolve(client) -> List[Instruction]:
        data = None
        if params.touches_data():
            old = client.get_token_metadata(mint, with_offchain=False)
            name, symbol = old.name, old.symbol
            if uri is not None:
                try:
                    md = client.fetch_metadata(uri)
                except SolplayError:
                    logger.warning("update_metadata_offchain_failed mint=%s uri=%s", mint, uri, exc_info=True)
                    md = None
                if md is not None:
                    name, symbol = md.name, md.symbol
            data = data_v2_arg(
                name,
                symbol,
                uri if uri is not None else old.metadata_uri,
                seller_fee_basis_points=fee if fee is not None else old.seller_fee_basis_points,
                creators=_merged_creators(old, params, authority),
                collection=_merged_collection(old, collection),
                uses=_merged_uses(old, params),
            )
        return [
            build_update_metadata_account_v2_ix(
                mint=mint,
                update_authority=authority,
                data=data,
                new_update_authority=new_authority,
                primary_sale_happened=params.primary_sale_happened,
                is_mutable=params.is_mutable,
            )
        ]

    return resolve

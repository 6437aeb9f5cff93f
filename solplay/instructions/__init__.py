from .base import InstructionFunc, Step, is_deferred, resolve_step
from .collection import (
    ApproveCollectionAuthorityParams,
    CollectionItemParams,
    RevokeCollectionAuthorityParams,
    SetCollectionSizeParams,
    approve_collection_authority,
    revoke_collection_authority,
    set_and_verify_collection,
    set_and_verify_sized_collection_item,
    set_collection_size,
    unverify_collection_item,
    unverify_sized_collection_item,
    verify_collection_item,
    verify_sized_collection_item,
)
from .nft import (
    BurnNftEditionParams,
    BurnNftParams,
    CreatorParams,
    CreatorShare,
    MintNonFungibleEditionParams,
    MintNonFungibleParams,
    UpdateMetadataParams,
    burn_nft,
    burn_nft_edition,
    mint_non_fungible,
    mint_non_fungible_edition,
    next_edition_number,
    remove_creator_verification,
    update_metadata,
    verify_creator,
)
from .system import (
    CreateNonceAccountParams,
    MemoParams,
    TransferSOLParams,
    advance_nonce,
    create_nonce_account,
    memo,
    transfer_sol,
)
from .token import (
    BurnTokenParams,
    CloseTokenAccountParams,
    CreateAssociatedTokenAccountParams,
    FreezeTokenAccountParams,
    MintFungibleParams,
    MintTokensParams,
    TransferTokenParams,
    burn_token,
    close_token_account,
    create_associated_token_account,
    create_associated_token_account_if_not_exists,
    freeze_token_account,
    mint_fungible,
    mint_fungible_asset,
    mint_tokens,
    thaw_token_account,
    transfer_token,
)
from .uses import (
    ApproveUseAuthorityParams,
    RevokeUseAuthorityParams,
    UseTokenParams,
    approve_use_authority,
    revoke_use_authority,
    use_token,
)

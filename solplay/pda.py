"""Program-derived addresses used by the Metaplex token-metadata program."""

from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

METADATA_PROGRAM_ID = Pubkey.from_string("metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s")

METADATA_SEED = b"metadata"
EDITION_SEED = b"edition"
COLLECTION_AUTHORITY_SEED = b"collection_authority"
USER_SEED = b"user"
BURN_SEED = b"burn"

EDITION_MARKER_BIT_SIZE = 248


def associated_token_address(owner: Pubkey, mint: Pubkey) -> Pubkey:
    return get_associated_token_address(owner, mint)


def metadata_pubkey(mint: Pubkey) -> Pubkey:
    return Pubkey.find_program_address(
        [METADATA_SEED, bytes(METADATA_PROGRAM_ID), bytes(mint)], METADATA_PROGRAM_ID
    )[0]


def edition_pubkey(mint: Pubkey) -> Pubkey:
    """Master edition (or print edition) account of ``mint``."""
    return Pubkey.find_program_address(
        [METADATA_SEED, bytes(METADATA_PROGRAM_ID), bytes(mint), EDITION_SEED], METADATA_PROGRAM_ID
    )[0]


def edition_marker_pubkey(master_mint: Pubkey, edition: int) -> Pubkey:
    marker = str(edition // EDITION_MARKER_BIT_SIZE).encode()
    return Pubkey.find_program_address(
        [METADATA_SEED, bytes(METADATA_PROGRAM_ID), bytes(master_mint), EDITION_SEED, marker],
        METADATA_PROGRAM_ID,
    )[0]


def collection_authority_record_pubkey(mint: Pubkey, authority: Pubkey) -> Pubkey:
    return Pubkey.find_program_address(
        [METADATA_SEED, bytes(METADATA_PROGRAM_ID), bytes(mint), COLLECTION_AUTHORITY_SEED, bytes(authority)],
        METADATA_PROGRAM_ID,
    )[0]


def use_authority_record_pubkey(mint: Pubkey, authority: Pubkey) -> Pubkey:
    return Pubkey.find_program_address(
        [METADATA_SEED, bytes(METADATA_PROGRAM_ID), bytes(mint), USER_SEED, bytes(authority)],
        METADATA_PROGRAM_ID,
    )[0]


def burner_pubkey() -> Pubkey:
    return Pubkey.find_program_address([METADATA_SEED, bytes(METADATA_PROGRAM_ID), BURN_SEED], METADATA_PROGRAM_ID)[0]

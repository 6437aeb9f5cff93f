"""
Pytest configuration and fixtures for solplay tests.
"""

from typing import Any, Dict, List, Optional, Tuple

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.system_program import ID as SYS_PROGRAM_ID
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID

from solplay.metadata import Metadata as OffchainMetadata
from solplay.pda import METADATA_PROGRAM_ID
from solplay.token_metadata import Edition, Metadata
from solplay.types import NonceAccount, TokenAccountInfo

RENT_LAMPORTS = 1461600


class FakeClient:
    """In-memory stand-in for SolanaClient that records every chain read."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.blockhash = str(Hash.new_unique())
        self.nonce_blockhash = str(Hash.new_unique())
        self.master_editions: Dict[str, Edition] = {}
        self.editions: Dict[str, Edition] = {}
        self.token_accounts: Dict[str, TokenAccountInfo] = {}
        self.onchain_metadata: Dict[str, Metadata] = {}
        self.offchain_metadata: Dict[str, OffchainMetadata] = {}

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        self._record("get_minimum_balance_for_rent_exemption", size)
        return RENT_LAMPORTS

    def get_latest_blockhash(self) -> str:
        self._record("get_latest_blockhash")
        return self.blockhash

    def get_nonce_account(self, nonce) -> NonceAccount:
        self._record("get_nonce_account", nonce)
        return NonceAccount(
            version=1,
            state=1,
            authority=str(nonce),
            blockhash=self.nonce_blockhash,
            fee_lamports=5000,
        )

    def get_master_edition_info(self, mint) -> Optional[Edition]:
        self._record("get_master_edition_info", mint)
        return self.master_editions.get(str(mint))

    def get_edition_info(self, mint) -> Optional[Edition]:
        self._record("get_edition_info", mint)
        return self.editions.get(str(mint))

    def get_token_account_info(self, address) -> Optional[TokenAccountInfo]:
        self._record("get_token_account_info", address)
        return self.token_accounts.get(str(address))

    def get_token_metadata(self, mint, with_offchain: bool = True) -> Metadata:
        self._record("get_token_metadata", mint)
        return self.onchain_metadata[str(mint)]

    def fetch_metadata(self, uri: str) -> Optional[OffchainMetadata]:
        self._record("fetch_metadata", uri)
        return self.offchain_metadata.get(uri)


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def payer():
    return Keypair()


@pytest.fixture
def owner():
    return Keypair()


_TOKEN_KINDS = {
    0: "initialize_mint",
    3: "transfer",
    6: "set_authority",
    7: "mint_to",
    8: "burn",
    9: "close_account",
    10: "freeze",
    11: "thaw",
    14: "mint_to_checked",
}
_METADATA_KINDS = {
    7: "sign_metadata",
    11: "mint_new_edition",
    15: "update_metadata",
    17: "create_master_edition",
    19: "utilize",
    23: "approve_collection_authority",
    29: "burn_nft",
    30: "verify_sized_collection_item",
    33: "create_metadata",
    37: "burn_edition_nft",
}


def instruction_kind(ix) -> str:
    data = bytes(ix.data)
    if ix.program_id == SYS_PROGRAM_ID:
        return {0: "create_account", 2: "transfer_sol", 4: "advance_nonce", 6: "initialize_nonce"}[data[0]]
    if ix.program_id == TOKEN_PROGRAM_ID:
        return _TOKEN_KINDS[data[0]]
    if ix.program_id == ASSOCIATED_TOKEN_PROGRAM_ID:
        return "create_ata"
    if ix.program_id == METADATA_PROGRAM_ID:
        return _METADATA_KINDS.get(data[0], f"metadata_{data[0]}")
    return str(ix.program_id)


@pytest.fixture
def kinds():
    return lambda instructions: [instruction_kind(ix) for ix in instructions]

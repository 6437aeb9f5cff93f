"""
Tests for SolanaClient

The RPC transport is replaced by a MagicMock; responses mimic the solders
response objects returned by solana.rpc.api.Client.
"""

import itertools
import logging
from unittest.mock import MagicMock, Mock, patch

import pytest
import requests
from solders.hash import Hash
from solders.keypair import Keypair
from solders.transaction_status import TransactionConfirmationStatus
from spl.token._layouts import MINT_LAYOUT

from solplay.client import NonceLayout, SolanaClient
from solplay.config import Settings
from solplay.errors import (
    AccountNotFoundError,
    BlockhashNotFoundError,
    ConfigurationError,
    ConfirmationTimeoutError,
    InsufficientFundsForRentError,
    InvalidAddressError,
    RpcError,
    SerializationError,
    TokenIsNotMasterEditionError,
    TransactionNotFoundError,
    TransactionValidationError,
    ValidationError,
)
from solplay.instructions import MemoParams, memo
from solplay.pda import edition_pubkey, metadata_pubkey
from solplay.token_metadata import KEY_MASTER_EDITION, MasterEditionLayout, MetadataLayout
from solplay.transaction import compile_transaction, encode_transaction
from solplay.types import SOL, TransactionStatus

SIGNATURE = str(Keypair().sign_message(b"solplay"))


def make_settings(**overrides):
    values = {"rpc_url": "http://localhost:8899", "confirm_tick_seconds": 0, "token_list_url": None}
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def rpc():
    return MagicMock()


@pytest.fixture
def client(rpc):
    return SolanaClient(settings=make_settings(), rpc=rpc, session=MagicMock())


@pytest.fixture
def signed_tx(payer):
    tx = compile_transaction(payer.pubkey(), memo(MemoParams(memo="hi")), Hash.new_unique(), [payer])
    return encode_transaction(tx)


def account(data: bytes):
    return Mock(value=Mock(data=data))


class TestConfiguration:
    """Client construction."""

    def test_rpc_url_and_rpc_conflict(self, rpc):
        """Setting the RPC client twice is a configuration error."""
        with pytest.raises(ConfigurationError):
            SolanaClient(rpc_url="http://localhost:8899", settings=make_settings(), rpc=rpc)

    def test_defaults_from_settings(self, client):
        assert client.default_decimals == 9

    def test_rpc_errors_are_wrapped(self, client, rpc):
        """Transport failures surface as RpcError with the cause chained."""
        rpc.get_minimum_balance_for_rent_exemption.side_effect = ConnectionError("refused")

        with pytest.raises(RpcError) as exc_info:
            client.get_minimum_balance_for_rent_exemption(82)

        assert isinstance(exc_info.value.__cause__, ConnectionError)


class TestSendTransaction:
    """Submission with bounded blockhash retry."""

    def test_retries_stale_blockhash(self, client, rpc, signed_tx):
        """BlockhashNotFound is retried and the third attempt wins."""
        rpc.send_raw_transaction.side_effect = [
            Exception("Transaction simulation failed: BlockhashNotFound"),
            Exception("Blockhash not found"),
            Mock(value=SIGNATURE),
        ]

        assert client.send_transaction(signed_tx) == SIGNATURE
        assert rpc.send_raw_transaction.call_count == 3

    def test_gives_up_after_max_attempts(self, client, rpc, signed_tx):
        rpc.send_raw_transaction.side_effect = Exception("BlockhashNotFound")

        with pytest.raises(BlockhashNotFoundError):
            client.send_transaction(signed_tx)

        assert rpc.send_raw_transaction.call_count == 3

    def test_other_errors_are_not_retried(self, client, rpc, signed_tx):
        rpc.send_raw_transaction.side_effect = Exception("custom program error: 0x1")

        with pytest.raises(RpcError):
            client.send_transaction(signed_tx)

        assert rpc.send_raw_transaction.call_count == 1

    def test_insufficient_funds_for_rent(self, client, rpc, signed_tx):
        rpc.send_raw_transaction.side_effect = Exception("Transaction results in an account (1) with insufficient funds for rent")

        with pytest.raises(InsufficientFundsForRentError):
            client.send_transaction(signed_tx)

    def test_undecodable_transaction(self, client, rpc):
        with pytest.raises(SerializationError):
            client.send_transaction("not base64!")
        rpc.send_raw_transaction.assert_not_called()


class TestTransactionStatus:
    """Status mapping and confirmation polling."""

    def status(self, err=None, confirmation_status=None, confirmations=None):
        return Mock(err=err, confirmation_status=confirmation_status, confirmations=confirmations)

    @pytest.mark.parametrize(
        "confirmation,expected",
        [
            (TransactionConfirmationStatus.Finalized, TransactionStatus.SUCCESS),
            (TransactionConfirmationStatus.Confirmed, TransactionStatus.IN_PROGRESS),
            (TransactionConfirmationStatus.Processed, TransactionStatus.IN_PROGRESS),
        ],
    )
    def test_confirmation_mapping(self, client, rpc, confirmation, expected):
        rpc.get_signature_statuses.return_value = Mock(value=[self.status(confirmation_status=confirmation)])

        assert client.get_transaction_status(SIGNATURE) == expected

    def test_unknown_and_failed(self, client, rpc):
        rpc.get_signature_statuses.return_value = Mock(value=[None])
        assert client.get_transaction_status(SIGNATURE) == TransactionStatus.UNKNOWN

        rpc.get_signature_statuses.return_value = Mock(value=[self.status(err="InstructionError")])
        assert client.get_transaction_status(SIGNATURE) == TransactionStatus.FAILURE

    def test_invalid_signature(self, client):
        with pytest.raises(ValidationError):
            client.get_transaction_status("nope")

    def test_wait_until_finalized(self, client, rpc):
        rpc.get_signature_statuses.side_effect = [
            Mock(value=[None]),
            Mock(value=[self.status(confirmation_status=TransactionConfirmationStatus.Confirmed)]),
            Mock(value=[self.status(confirmation_status=TransactionConfirmationStatus.Finalized)]),
        ]

        with patch("solplay.client.time.sleep") as sleep:
            assert client.wait_for_transaction_confirmed(SIGNATURE) == TransactionStatus.SUCCESS

        assert sleep.call_count == 3

    def test_wait_times_out(self, client, rpc):
        rpc.get_signature_statuses.return_value = Mock(value=[None])

        with patch("solplay.client.time.sleep"), patch("solplay.client.time.monotonic", side_effect=itertools.count(0.0, 5.0)):
            with pytest.raises(ConfirmationTimeoutError):
                client.wait_for_transaction_confirmed(SIGNATURE, timeout=1)


class TestAccounts:
    """Account decoding."""

    def test_nonce_account(self, client, rpc):
        authority, blockhash = Keypair().pubkey(), Hash.new_unique()
        rpc.get_account_info.return_value = account(
            NonceLayout.build(
                {
                    "version": 1,
                    "state": 1,
                    "authority": list(bytes(authority)),
                    "blockhash": list(bytes(blockhash)),
                    "fee_lamports": 5000,
                }
            )
        )

        nonce = client.get_nonce_account(Keypair().pubkey())

        assert nonce.authority == str(authority)
        assert nonce.blockhash == str(blockhash)
        assert nonce.fee_lamports == 5000

    def test_missing_nonce_account(self, client, rpc):
        rpc.get_account_info.return_value = Mock(value=None)

        with pytest.raises(AccountNotFoundError):
            client.get_nonce_account(Keypair().pubkey())

    def test_mint_info(self, client, rpc):
        authority = Keypair().pubkey()
        rpc.get_account_info.return_value = account(
            MINT_LAYOUT.build(
                {
                    "mint_authority_option": 1,
                    "mint_authority": bytes(authority),
                    "supply": 1000,
                    "decimals": 6,
                    "is_initialized": 1,
                    "freeze_authority_option": 0,
                    "freeze_authority": bytes(32),
                }
            )
        )

        info = client.get_mint_info(Keypair().pubkey())

        assert info.supply == 1000
        assert info.decimals == 6
        assert info.mint_authority == str(authority)
        assert info.freeze_authority is None

    def test_token_balance_requires_wallet(self, client):
        with pytest.raises(InvalidAddressError):
            client.get_token_balance("not-a-wallet", Keypair().pubkey())

    def test_ata_balance(self, client, rpc):
        rpc.get_token_account_balance.return_value = Mock(value=Mock(amount="1500000", decimals=6))

        balance = client.get_ata_balance(Keypair().pubkey())

        assert balance.amount == 1500000
        assert balance.ui_amount == 1.5
        assert balance.ui_amount_string == "1.5"


class TestTokenMetadata:
    """Metadata account reads."""

    def metadata_bytes(self, mint, token_standard):
        return MetadataLayout.build(
            {
                "key": 4,
                "update_authority": list(bytes(mint)),
                "mint": list(bytes(mint)),
                "data": {
                    "name": "Example",
                    "symbol": "EXM",
                    "uri": "",
                    "seller_fee_basis_points": 0,
                    "creators": None,
                },
                "primary_sale_happened": False,
                "is_mutable": True,
                "edition_nonce": 255,
                "token_standard": token_standard,
                "collection": None,
                "uses": None,
                "collection_details": None,
            }
        )

    def test_nft_metadata_reads_edition(self, client, rpc):
        """NFT standards trigger a second read for the edition account."""
        mint = Keypair().pubkey()
        accounts = {
            metadata_pubkey(mint): self.metadata_bytes(mint, 0),
            edition_pubkey(mint): MasterEditionLayout.build({"key": 6, "supply": 3, "max_supply": 10}),
        }
        rpc.get_account_info.side_effect = lambda key: account(accounts[key])

        md = client.get_token_metadata(mint)

        assert md.name == "Example"
        assert md.token_standard == "non_fungible"
        assert md.edition.type == KEY_MASTER_EDITION
        assert (md.edition.supply, md.edition.max_supply) == (3, 10)
        assert rpc.get_account_info.call_count == 2

    def test_fungible_metadata_single_read(self, client, rpc):
        mint = Keypair().pubkey()
        rpc.get_account_info.return_value = account(self.metadata_bytes(mint, 2))

        md = client.get_token_metadata(mint)

        assert md.edition is None
        assert rpc.get_account_info.call_count == 1

    def test_master_edition_supply_requires_master(self, client, rpc):
        rpc.get_account_info.return_value = Mock(value=None)

        with pytest.raises(TokenIsNotMasterEditionError):
            client.get_master_edition_supply(Keypair().pubkey())


class TestAirdrop:
    @pytest.mark.parametrize("lamports", [0, 2 * SOL + 1])
    def test_amount_bounds(self, client, rpc, lamports):
        with pytest.raises(ValidationError):
            client.request_airdrop(Keypair().pubkey(), lamports)
        rpc.request_airdrop.assert_not_called()

    def test_airdrop(self, client, rpc):
        rpc.request_airdrop.return_value = Mock(value=SIGNATURE)

        assert client.request_airdrop(Keypair().pubkey(), SOL) == SIGNATURE


OLDEST = str(Keypair().sign_message(b"oldest"))


def signature_info(signature=SIGNATURE, err=None, block_time=1_700_000_000):
    return Mock(signature=signature, err=err, block_time=block_time)


def confirmed_transaction(account_keys=(), pre_balances=(), post_balances=(), pre_tokens=(), post_tokens=()):
    tx = MagicMock()
    tx.transaction.meta.err = None
    tx.transaction.meta.pre_balances = list(pre_balances)
    tx.transaction.meta.post_balances = list(post_balances)
    tx.transaction.meta.pre_token_balances = list(pre_tokens)
    tx.transaction.meta.post_token_balances = list(post_tokens)
    tx.transaction.transaction.message.account_keys = list(account_keys)
    return tx


class TestTransactionHistory:
    """Signature history walks and transaction lookups."""

    def test_history_of_exactly_one_page(self, client, rpc):
        """A full page followed by an empty one ends at the last entry of the full page."""
        full_page = [signature_info() for _ in range(999)] + [signature_info(OLDEST)]
        rpc.get_signatures_for_address.side_effect = [Mock(value=full_page), Mock(value=[])]
        rpc.get_transaction.return_value = Mock(value=confirmed_transaction())

        signature, _ = client.get_oldest_transaction_for_wallet(Keypair().pubkey())

        assert signature == OLDEST
        assert rpc.get_signatures_for_address.call_count == 2
        assert rpc.get_signatures_for_address.call_args.kwargs["before"] == OLDEST

    def test_history_walks_pages(self, client, rpc):
        rpc.get_signatures_for_address.side_effect = [
            Mock(value=[signature_info() for _ in range(1000)]),
            Mock(value=[signature_info(), signature_info(OLDEST)]),
        ]
        rpc.get_transaction.return_value = Mock(value=confirmed_transaction())

        signature, _ = client.get_oldest_transaction_for_wallet(Keypair().pubkey())

        assert signature == OLDEST

    def test_empty_history(self, client, rpc):
        rpc.get_signatures_for_address.return_value = Mock(value=[])

        with pytest.raises(TransactionNotFoundError):
            client.get_oldest_transaction_for_wallet(Keypair().pubkey())

    def test_failed_oldest(self, client, rpc):
        rpc.get_signatures_for_address.return_value = Mock(value=[signature_info(OLDEST, err="InstructionError")])

        with pytest.raises(TransactionValidationError):
            client.get_oldest_transaction_for_wallet(Keypair().pubkey())

    def test_unconfirmed_oldest(self, client, rpc):
        """Entries without a block time are not final yet."""
        rpc.get_signatures_for_address.return_value = Mock(value=[signature_info(OLDEST, block_time=None)])

        with pytest.raises(TransactionValidationError):
            client.get_oldest_transaction_for_wallet(Keypair().pubkey())
        rpc.get_transaction.assert_not_called()

    def test_transaction_not_found(self, client, rpc):
        rpc.get_transaction.return_value = Mock(value=None)

        with pytest.raises(TransactionNotFoundError):
            client.get_transaction(SIGNATURE)

    def test_failed_transaction(self, client, rpc):
        tx = confirmed_transaction()
        tx.transaction.meta.err = "InstructionError"
        rpc.get_transaction.return_value = Mock(value=tx)

        with pytest.raises(TransactionValidationError):
            client.get_transaction(SIGNATURE)


class TestValidateByReference:
    """Payment validation through a reference key."""

    @pytest.fixture
    def keys(self):
        return Keypair().pubkey(), Keypair().pubkey(), Keypair().pubkey()

    def history(self, rpc, tx):
        rpc.get_signatures_for_address.return_value = Mock(value=[signature_info(OLDEST)])
        rpc.get_transaction.return_value = Mock(value=tx)

    def test_sol_payment(self, client, rpc, keys):
        payer, destination, reference = keys
        self.history(rpc, confirmed_transaction([payer, destination, reference], [100, 0, 0], [40, 50, 0]))

        assert client.validate_transaction_by_reference(reference, destination, 50) == OLDEST
        assert client.validate_transaction_by_reference(reference, destination, 50, mint="SOL") == OLDEST

    def test_sol_amount_mismatch(self, client, rpc, keys):
        payer, destination, reference = keys
        self.history(rpc, confirmed_transaction([payer, destination, reference], [100, 0, 0], [40, 50, 0]))

        with pytest.raises(TransactionValidationError):
            client.validate_transaction_by_reference(reference, destination, 60)

    def test_destination_not_in_transaction(self, client, rpc, keys):
        payer, destination, reference = keys
        self.history(rpc, confirmed_transaction([payer, reference], [100, 0], [40, 0]))

        with pytest.raises(TransactionValidationError):
            client.validate_transaction_by_reference(reference, destination, 60)

    def test_token_payment(self, client, rpc, keys):
        """Token payments compare the destination's balances of the mint."""
        payer, destination, reference = keys
        mint = Keypair().pubkey()

        def balance(owner, amount, token_mint=mint):
            return Mock(mint=token_mint, owner=owner, ui_token_amount=Mock(amount=str(amount)))

        self.history(
            rpc,
            confirmed_transaction(
                pre_tokens=[balance(destination, 100), balance(payer, 500)],
                post_tokens=[balance(destination, 250), balance(payer, 350), balance(destination, 9, Keypair().pubkey())],
            ),
        )

        assert client.validate_transaction_by_reference(reference, destination, 150, mint=mint) == OLDEST
        with pytest.raises(TransactionValidationError):
            client.validate_transaction_by_reference(reference, destination, 250, mint=mint)


class TestWalletTokens:
    """Token accounts split by decimals."""

    def parsed_account(self, mint, amount, decimals):
        info = {
            "mint": mint,
            "owner": "owner",
            "tokenAmount": {"amount": str(amount), "decimals": decimals},
        }
        return Mock(pubkey=Keypair().pubkey(), account=Mock(data=Mock(parsed={"info": info})))

    @pytest.fixture
    def wallet(self, rpc):
        rpc.get_token_accounts_by_owner_json_parsed.return_value = Mock(
            value=[
                self.parsed_account("fungible", 1500, 6),
                self.parsed_account("nft", 1, 0),
                self.parsed_account("empty", 0, 6),
                self.parsed_account("sold-nft", 0, 0),
            ]
        )
        return Keypair().pubkey()

    def test_fungible_tokens(self, client, wallet):
        tokens = client.get_fungible_tokens_list(wallet)

        assert [t.mint for t in tokens] == ["fungible"]
        assert tokens[0].balance.ui_amount == 0.0015

    def test_non_fungible_tokens(self, client, wallet):
        assert [t.mint for t in client.get_non_fungible_tokens_list(wallet)] == ["nft"]


class TestFungibleTokenMetadata:
    """On-chain metadata with the token list as fallback."""

    TOKEN_LIST_URL = "https://tokens.example.com/list.json"

    @pytest.fixture
    def session(self):
        return MagicMock()

    @pytest.fixture
    def listed_client(self, rpc, session):
        settings = make_settings(token_list_url=self.TOKEN_LIST_URL)
        return SolanaClient(settings=settings, rpc=rpc, session=session)

    def token_list(self, session, mint):
        session.get.return_value.json.return_value = {
            "tokens": [
                {
                    "address": str(mint),
                    "chainId": 101,
                    "name": "Listed Coin",
                    "symbol": "LIST",
                    "logoURI": "https://tokens.example.com/logo.png",
                    "extensions": {"website": "https://listed.example.com"},
                },
                {"address": str(mint), "chainId": 103, "name": "Devnet Coin", "symbol": "DEV"},
            ]
        }

    def test_token_list_only(self, listed_client, rpc, session):
        """Mints without a metadata account come from the token list."""
        mint = Keypair().pubkey()
        rpc.get_account_info.return_value = Mock(value=None)
        self.token_list(session, mint)

        md = listed_client.get_fungible_token_metadata(mint)

        assert (md.name, md.symbol) == ("Listed Coin", "LIST")
        assert md.image == "https://tokens.example.com/logo.png"
        assert md.external_url == "https://listed.example.com"

    def test_missing_fields_filled_from_list(self, listed_client, rpc, session):
        """On-chain name and symbol win; the image comes from the list."""
        mint = Keypair().pubkey()
        rpc.get_account_info.return_value = account(TestTokenMetadata().metadata_bytes(mint, 2))
        self.token_list(session, mint)

        md = listed_client.get_fungible_token_metadata(mint)

        assert (md.name, md.symbol) == ("Example", "EXM")
        assert md.image == "https://tokens.example.com/logo.png"

    def test_token_list_failure_is_logged(self, listed_client, rpc, session, caplog):
        mint = Keypair().pubkey()
        rpc.get_account_info.return_value = account(TestTokenMetadata().metadata_bytes(mint, 2))
        session.get.side_effect = requests.ConnectionError("offline")

        with caplog.at_level(logging.WARNING, logger="solplay.client"):
            md = listed_client.get_fungible_token_metadata(mint)

        assert md.name == "Example"
        assert md.image is None
        assert "fungible_metadata_token_list_failed" in caplog.text

    def test_not_found_anywhere(self, listed_client, rpc, session):
        rpc.get_account_info.return_value = Mock(value=None)
        session.get.return_value.json.return_value = {"tokens": []}

        with pytest.raises(AccountNotFoundError):
            listed_client.get_fungible_token_metadata(Keypair().pubkey())

"""RPC facade over ``solana.rpc.api.Client``.

Every RPC failure surfaces as an ``RpcError`` subclass; account payloads are
decoded into the records from ``solplay.types`` and ``solplay.token_metadata``.
"""

import logging
import time
from typing import Any, List, Optional, Sequence, Tuple, Union

import requests
from borsh_construct import CStruct, U32, U64, U8
from solana.rpc.api import Client
from solana.rpc.commitment import Commitment, Finalized
from solana.rpc.types import TokenAccountOpts, TxOpts
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction_status import TransactionConfirmationStatus
from spl.token._layouts import ACCOUNT_LAYOUT, MINT_LAYOUT
from spl.token.constants import TOKEN_PROGRAM_ID, WRAPPED_SOL_MINT

from .accounts import to_pubkey, validate_wallet_address
from .config import Settings, get_settings
from .errors import (
    AccountNotFoundError,
    BlockhashNotFoundError,
    ConfigurationError,
    ConfirmationTimeoutError,
    MetadataFetchError,
    RpcError,
    SerializationError,
    SolplayError,
    TokenIsNotMasterEditionError,
    TransactionNotFoundError,
    TransactionValidationError,
    ValidationError,
    wrap_rpc,
)
from .instructions.system import NONCE_ACCOUNT_SIZE
from .metadata import Metadata as OffchainMetadata
from .metadata import metadata_from_uri
from .pda import associated_token_address, edition_pubkey, metadata_pubkey
from .token_metadata import (
    KEY_PRINTED_EDITION,
    Edition,
    Metadata,
    TokenStandard,
    deserialize_edition,
    deserialize_master_edition,
    deserialize_metadata,
)
from .transaction import TransactionBuilder, decode_transaction, encode_transaction, sign_partial
from .types import SOL, MintInfo, NonceAccount, TokenAccountInfo, TokenAmount, TransactionStatus, WalletToken

logger = logging.getLogger("solplay.client")

SIGNATURES_PAGE_LIMIT = 1000
MAX_AIRDROP_LAMPORTS = 2 * SOL
MAINNET_CHAIN_ID = 101

NonceLayout = CStruct(
    "version" / U32,
    "state" / U32,
    "authority" / U8[32],
    "blockhash" / U8[32],
    "fee_lamports" / U64,
)

_CONFIRMATION_NAMES = (
    (TransactionConfirmationStatus.Processed, "processed"),
    (TransactionConfirmationStatus.Confirmed, "confirmed"),
    (TransactionConfirmationStatus.Finalized, "finalized"),
)

_NFT_STANDARDS = (TokenStandard.NON_FUNGIBLE.value, TokenStandard.NON_FUNGIBLE_EDITION.value)


def _signature(value: Union[str, Signature]) -> Signature:
    if isinstance(value, Signature):
        return value
    try:
        return Signature.from_string(value)
    except Exception as exc:  # noqa: BLE001
        raise ValidationError("invalid transaction signature", signature=value) from exc


def _confirmation_name(status) -> Optional[str]:
    for candidate, name in _CONFIRMATION_NAMES:
        if status == candidate:
            return name
    return None


def _optional_key(flag: int, raw) -> Optional[str]:
    return str(Pubkey(bytes(raw))) if flag else None


def parse_token_account(address: Union[str, Pubkey], data: bytes) -> TokenAccountInfo:
    try:
        parsed = ACCOUNT_LAYOUT.parse(data)
    except Exception as exc:  # noqa: BLE001
        raise SerializationError("failed to decode token account", address=str(address)) from exc
    return TokenAccountInfo(
        address=str(address),
        mint=str(Pubkey(bytes(parsed.mint))),
        owner=str(Pubkey(bytes(parsed.owner))),
        amount=parsed.amount,
        state=parsed.state,
        delegate=_optional_key(parsed.delegate_option, parsed.delegate),
        delegated_amount=parsed.delegated_amount,
        is_native=parsed.is_native if parsed.is_native_option else None,
        close_authority=_optional_key(parsed.close_authority_option, parsed.close_authority),
    )


def parse_mint_account(address: Union[str, Pubkey], data: bytes) -> MintInfo:
    try:
        parsed = MINT_LAYOUT.parse(data)
    except Exception as exc:  # noqa: BLE001
        raise SerializationError("failed to decode mint account", address=str(address)) from exc
    return MintInfo(
        address=str(address),
        supply=parsed.supply,
        decimals=parsed.decimals,
        is_initialized=bool(parsed.is_initialized),
        mint_authority=_optional_key(parsed.mint_authority_option, parsed.mint_authority),
        freeze_authority=_optional_key(parsed.freeze_authority_option, parsed.freeze_authority),
    )


def parse_nonce_account(data: bytes) -> NonceAccount:
    if len(data) < NONCE_ACCOUNT_SIZE:
        raise SerializationError("nonce account data is too short", size=len(data))
    try:
        parsed = NonceLayout.parse(data[:NONCE_ACCOUNT_SIZE])
    except Exception as exc:  # noqa: BLE001
        raise SerializationError("failed to decode nonce account") from exc
    return NonceAccount(
        version=parsed.version,
        state=parsed.state,
        authority=str(Pubkey(bytes(parsed.authority))),
        blockhash=str(Hash(bytes(parsed.blockhash))),
        fee_lamports=parsed.fee_lamports,
    )


class SolanaClient:
    """High level client.

    ``rpc_url`` and ``rpc`` are mutually exclusive; without either the RPC
    endpoint comes from ``Settings.rpc_url``.
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        settings: Optional[Settings] = None,
        rpc: Optional[Client] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        if rpc_url is not None and rpc is not None:
            raise ConfigurationError("solana client is already set", rpc_url=rpc_url)
        self.settings = settings or get_settings()
        self.rpc = rpc or Client(
            rpc_url or self.settings.rpc_url,
            commitment=Commitment(self.settings.commitment),
            timeout=self.settings.http_timeout,
        )
        self.session = session or requests.Session()
        self.default_decimals = self.settings.default_decimals
        self._token_list: Optional[List[dict]] = None

    def _call(self, method: str, *args: Any, **kwargs: Any) -> Any:
        try:
            return getattr(self.rpc, method)(*args, **kwargs)
        except Exception as exc:  # noqa: BLE001
            raise wrap_rpc(f"{method} failed", exc) from exc

    # accounts

    def get_account_info(self, address: Union[str, Pubkey]):
        """Raw account or ``None`` when it does not exist."""
        return self._call("get_account_info", to_pubkey(address)).value

    def _account_data(self, address: Union[str, Pubkey], kind: str) -> bytes:
        account = self.get_account_info(address)
        if account is None or account.data is None:
            raise AccountNotFoundError(f"{kind} account not found", address=str(address))
        return bytes(account.data)

    def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        return self._call("get_minimum_balance_for_rent_exemption", size).value

    def get_token_account_info(self, address: Union[str, Pubkey]) -> Optional[TokenAccountInfo]:
        account = self.get_account_info(address)
        if account is None:
            return None
        return parse_token_account(address, bytes(account.data))

    def get_mint_info(self, mint: Union[str, Pubkey]) -> MintInfo:
        return parse_mint_account(mint, self._account_data(mint, "mint"))

    def get_nonce_account(self, nonce: Union[str, Pubkey]) -> NonceAccount:
        return parse_nonce_account(self._account_data(nonce, "nonce"))

    # balances

    def get_sol_balance(self, wallet: Union[str, Pubkey]) -> int:
        pubkey = validate_wallet_address(wallet)
        return self._call("get_balance", pubkey).value

    def get_token_balance(self, wallet: Union[str, Pubkey], mint: Union[str, Pubkey]) -> TokenAmount:
        owner = validate_wallet_address(wallet)
        mint_key = to_pubkey(mint)
        return self.get_ata_balance(associated_token_address(owner, mint_key))

    def get_ata_balance(self, ata: Union[str, Pubkey]) -> TokenAmount:
        value = self._call("get_token_account_balance", to_pubkey(ata)).value
        return TokenAmount.from_raw(int(value.amount), value.decimals)

    def get_token_supply(self, mint: Union[str, Pubkey]) -> TokenAmount:
        value = self._call("get_token_supply", to_pubkey(mint)).value
        return TokenAmount.from_raw(int(value.amount), value.decimals)

    def _wallet_tokens(self, wallet: Union[str, Pubkey], fungible: bool) -> List[WalletToken]:
        owner = validate_wallet_address(wallet)
        resp = self._call(
            "get_token_accounts_by_owner_json_parsed", owner, TokenAccountOpts(program_id=TOKEN_PROGRAM_ID)
        )
        tokens = []
        for item in resp.value:
            info = item.account.data.parsed["info"]
            amount = info["tokenAmount"]
            token = WalletToken(
                address=str(item.pubkey),
                mint=info["mint"],
                owner=info["owner"],
                balance=TokenAmount.from_raw(int(amount["amount"]), int(amount["decimals"])),
            )
            if not token.is_empty and token.is_fungible == fungible:
                tokens.append(token)
        return tokens

    def get_fungible_tokens_list(self, wallet: Union[str, Pubkey]) -> List[WalletToken]:
        return self._wallet_tokens(wallet, fungible=True)

    def get_non_fungible_tokens_list(self, wallet: Union[str, Pubkey]) -> List[WalletToken]:
        """NFTs and zero-decimal assets held by ``wallet``."""
        return self._wallet_tokens(wallet, fungible=False)

    # metadata

    def get_token_metadata(self, mint: Union[str, Pubkey], with_offchain: bool = True) -> Metadata:
        mint_key = to_pubkey(mint)
        md = deserialize_metadata(self._account_data(metadata_pubkey(mint_key), "metadata"))
        if md.token_standard in _NFT_STANDARDS:
            md.edition = self.get_edition_info(mint_key)
        if with_offchain and md.metadata_uri.startswith("http"):
            try:
                offchain = self.fetch_metadata(md.metadata_uri)
            except SolplayError:
                logger.warning("token_metadata_offchain_failed mint=%s uri=%s", mint_key, md.metadata_uri, exc_info=True)
            else:
                md.data = offchain.model_dump(exclude_none=True) if offchain else None
        return md

    def get_master_edition_info(self, mint: Union[str, Pubkey]) -> Optional[Edition]:
        """Master edition of ``mint`` or ``None`` when the edition account does not exist."""
        account = self.get_account_info(edition_pubkey(to_pubkey(mint)))
        if account is None:
            return None
        return deserialize_master_edition(bytes(account.data))

    def get_edition_info(self, mint: Union[str, Pubkey]) -> Optional[Edition]:
        account = self.get_account_info(edition_pubkey(to_pubkey(mint)))
        if account is None:
            return None
        edition = deserialize_edition(bytes(account.data))
        if edition.type == KEY_PRINTED_EDITION and edition.parent:
            parent = self.get_account_info(edition.parent)
            if parent is not None:
                master = deserialize_master_edition(bytes(parent.data))
                edition.supply, edition.max_supply = master.supply, master.max_supply
        return edition

    def get_master_edition_supply(self, mint: Union[str, Pubkey]) -> Tuple[int, Optional[int]]:
        info = self.get_master_edition_info(mint)
        if info is None or not info.is_master:
            raise TokenIsNotMasterEditionError(mint=str(mint))
        return info.supply, info.max_supply

    def fetch_metadata(self, uri: str) -> Optional[OffchainMetadata]:
        return metadata_from_uri(uri, session=self.session, timeout=self.settings.http_timeout)

    def _token_list_entry(self, mint: str) -> Optional[dict]:
        if not self.settings.token_list_url:
            return None
        if self._token_list is None:
            try:
                resp = self.session.get(self.settings.token_list_url, timeout=self.settings.http_timeout)
                resp.raise_for_status()
                self._token_list = resp.json().get("tokens", [])
            except (requests.RequestException, ValueError) as exc:
                raise MetadataFetchError("failed to download token list", url=self.settings.token_list_url) from exc
        for token in self._token_list:
            if token.get("address") == mint and token.get("chainId") == MAINNET_CHAIN_ID:
                return token
        return None

    def get_fungible_token_metadata(self, mint: Union[str, Pubkey]) -> OffchainMetadata:
        """Name, symbol and artwork of a fungible token.

        Missing fields are filled from the legacy token list, which only
        covers mainnet mints.
        """
        mint_key = str(to_pubkey(mint))
        result: Optional[OffchainMetadata] = None
        try:
            onchain = self.get_token_metadata(mint_key, with_offchain=False)
            result = OffchainMetadata(name=onchain.name, symbol=onchain.symbol)
            if onchain.metadata_uri.startswith("http"):
                extra = self.fetch_metadata(onchain.metadata_uri)
                if extra is not None:
                    result.description = extra.description
                    result.image = extra.image
                    result.external_url = extra.external_url
        except SolplayError:
            logger.warning("fungible_metadata_onchain_failed mint=%s", mint_key, exc_info=True)

        if result is not None and result.name and result.symbol and result.image:
            return result

        try:
            entry = self._token_list_entry(mint_key)
        except MetadataFetchError:
            logger.warning("fungible_metadata_token_list_failed mint=%s", mint_key, exc_info=True)
            entry = None
        if entry is None:
            if result is None:
                raise AccountNotFoundError("token metadata not found", mint=mint_key)
            return result

        extensions = entry.get("extensions") or {}
        fallback = OffchainMetadata(
            name=entry.get("name", ""),
            symbol=entry.get("symbol", ""),
            image=entry.get("logoURI"),
            description=extensions.get("description"),
            external_url=extensions.get("website") or extensions.get("twitter") or extensions.get("discord"),
        )
        if result is None:
            return fallback
        for name in ("name", "symbol", "image", "external_url", "description"):
            if not getattr(result, name):
                setattr(result, name, getattr(fallback, name))
        return result

    # transactions

    def get_latest_blockhash(self) -> str:
        return str(self._call("get_latest_blockhash").value.blockhash)

    def new_transaction(
        self,
        fee_payer: Union[str, Pubkey, Keypair],
        instructions: Sequence[Instruction],
        signers: Sequence[Keypair] = (),
    ) -> str:
        return (
            TransactionBuilder(self)
            .set_fee_payer(fee_payer)
            .add_instruction(*instructions)
            .add_signer(*signers)
            .build()
        )

    def new_durable_transaction(
        self,
        nonce: Union[str, Pubkey],
        nonce_authority: Union[str, Pubkey, Keypair],
        instructions: Sequence[Instruction],
        signers: Sequence[Keypair] = (),
        fee_payer: Union[str, Pubkey, Keypair, None] = None,
    ) -> str:
        """Transaction stamped with the stored nonce value; the fee payer defaults to the nonce authority."""
        builder = TransactionBuilder(self).set_durable_nonce(nonce, nonce_authority)
        if fee_payer is not None:
            builder.set_fee_payer(fee_payer)
        return builder.add_instruction(*instructions).add_signer(*signers).build()

    def get_transaction_fee(self, tx: str) -> int:
        message = decode_transaction(tx).message
        fee = self._call("get_fee_for_message", message).value
        if fee is None:
            raise BlockhashNotFoundError("fee is unavailable for this blockhash")
        return fee

    def sign_transaction(self, tx: str, signer: Keypair) -> str:
        return encode_transaction(sign_partial(decode_transaction(tx), [signer]))

    def send_transaction(self, tx: str) -> str:
        """Submit a fully signed base64 transaction and return its signature.

        A stale blockhash is retried up to ``Settings.send_max_attempts`` times.
        """
        raw = bytes(decode_transaction(tx))
        opts = TxOpts(skip_preflight=False, preflight_commitment=Commitment(self.settings.commitment))
        attempts = max(1, self.settings.send_max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                resp = self._call("send_raw_transaction", raw, opts=opts)
            except BlockhashNotFoundError:
                if attempt >= attempts:
                    raise
                logger.warning("send_retry attempt=%s reason=blockhash_not_found", attempt)
                continue
            signature = str(resp.value)
            logger.info("tx_sent sig=%s attempt=%s", signature, attempt)
            return signature
        raise RpcError("transaction was not sent")

    def get_transaction_status(self, signature: Union[str, Signature]) -> TransactionStatus:
        sig = _signature(signature)
        statuses = self._call("get_signature_statuses", [sig], search_transaction_history=True).value
        status = statuses[0] if statuses else None
        if status is None:
            return TransactionStatus.UNKNOWN
        if status.err is not None:
            logger.warning("tx_failed sig=%s err=%s", sig, status.err)
            return TransactionStatus.FAILURE
        if status.confirmation_status is not None:
            return TransactionStatus.from_commitment(_confirmation_name(status.confirmation_status))
        if status.confirmations:
            return TransactionStatus.IN_PROGRESS
        return TransactionStatus.UNKNOWN

    def wait_for_transaction_confirmed(
        self, signature: Union[str, Signature], timeout: Optional[float] = None
    ) -> TransactionStatus:
        """Poll until the transaction is finalized or failed."""
        timeout = timeout or self.settings.confirm_timeout_seconds
        tick = self.settings.confirm_tick_seconds
        deadline = time.monotonic() + timeout
        while True:
            time.sleep(tick)
            status = self.get_transaction_status(signature)
            if status in (TransactionStatus.SUCCESS, TransactionStatus.FAILURE):
                return status
            if time.monotonic() >= deadline:
                raise ConfirmationTimeoutError(
                    "transaction was not confirmed in time", signature=str(signature), timeout=timeout
                )

    def get_transaction(self, signature: Union[str, Signature]):
        sig = _signature(signature)
        resp = self._call("get_transaction", sig, encoding="base64", max_supported_transaction_version=0)
        tx = resp.value
        if tx is None or tx.transaction.meta is None:
            raise TransactionNotFoundError("transaction not found", signature=str(sig))
        if tx.transaction.meta.err is not None:
            raise TransactionValidationError("transaction failed", signature=str(sig), err=tx.transaction.meta.err)
        return tx

    def get_oldest_transaction_for_wallet(
        self, wallet: Union[str, Pubkey], before: Union[str, Signature, None] = None
    ) -> Tuple[str, Any]:
        """Walk the signature history of ``wallet`` back to its first transaction."""
        address = to_pubkey(wallet)
        cursor = _signature(before) if before else None
        oldest = None
        while True:
            page = self._call(
                "get_signatures_for_address",
                address,
                before=cursor,
                limit=SIGNATURES_PAGE_LIMIT,
                commitment=Finalized,
            ).value
            if page:
                oldest = page[-1]
            if len(page or []) < SIGNATURES_PAGE_LIMIT:
                break
            cursor = oldest.signature
        if oldest is None:
            raise TransactionNotFoundError("no transactions found", address=str(address))
        if oldest.err is not None:
            raise TransactionValidationError("transaction failed", signature=str(oldest.signature))
        if not oldest.block_time or oldest.block_time > int(time.time()):
            raise TransactionValidationError("transaction is not confirmed", signature=str(oldest.signature))
        return str(oldest.signature), self.get_transaction(oldest.signature)

    def validate_transaction_by_reference(
        self,
        reference: Union[str, Pubkey],
        destination: Union[str, Pubkey],
        amount: int,
        mint: Union[str, Pubkey, None] = None,
    ) -> str:
        """Find the payment tagged with ``reference`` and check that ``destination`` got ``amount``.

        Without a mint (or with ``SOL`` / the wrapped SOL mint) lamport balances
        are compared, otherwise token balances of ``mint``.
        """
        signature, tx = self.get_oldest_transaction_for_wallet(reference)
        meta = tx.transaction.meta
        dest = to_pubkey(destination)
        if mint is None or str(mint) in ("", "SOL", str(WRAPPED_SOL_MINT)):
            keys = list(tx.transaction.transaction.message.account_keys)
            if dest not in keys:
                raise TransactionValidationError("destination is not part of the transaction", signature=signature)
            index = keys.index(dest)
            received = meta.post_balances[index] - meta.pre_balances[index]
        else:
            mint_key = to_pubkey(mint)
            received = self._token_balance(meta.post_token_balances, mint_key, dest) - self._token_balance(
                meta.pre_token_balances, mint_key, dest
            )
        if received != amount:
            raise TransactionValidationError(
                "amount is not equal to the amount in the transaction",
                signature=signature,
                expected=amount,
                received=received,
            )
        return signature

    @staticmethod
    def _token_balance(balances, mint: Pubkey, owner: Pubkey) -> int:
        for balance in balances or []:
            if balance.mint == mint and balance.owner == owner:
                return int(balance.ui_token_amount.amount)
        return 0

    # airdrop

    def request_airdrop(self, wallet: Union[str, Pubkey], lamports: int) -> str:
        if lamports is None or not 1 <= lamports <= MAX_AIRDROP_LAMPORTS:
            raise ValidationError("airdrop amount must be between 1 lamport and 2 SOL", lamports=lamports)
        pubkey = validate_wallet_address(wallet)
        signature = str(self._call("request_airdrop", pubkey, lamports).value)
        logger.info("airdrop_requested wallet=%s lamports=%s sig=%s", pubkey, lamports, signature)
        return signature


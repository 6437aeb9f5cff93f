import json
import logging
from pathlib import Path
from typing import List, Union

import base58
from mnemonic import Mnemonic
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

from .errors import InvalidAddressError, SerializationError, ValidationError

logger = logging.getLogger("solplay.accounts")

BIP44_PATH = "m/44'/501'/{index}'/0'"
MNEMONIC_STRENGTHS = (128, 160, 192, 224, 256)


def new_account() -> Keypair:
    return Keypair()


def account_to_base58(account: Keypair) -> str:
    return base58.b58encode(bytes(account)).decode()


def account_from_base58(value: str) -> Keypair:
    try:
        raw = base58.b58decode(value)
    except ValueError as exc:
        raise SerializationError("invalid base58 private key") from exc
    if len(raw) != 64:
        raise SerializationError("private key must be 64 bytes", length=len(raw))
    try:
        return Keypair.from_bytes(raw)
    except Exception as exc:  # noqa: BLE001
        raise SerializationError("invalid private key") from exc


def public_key_from_base58(value: str) -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except Exception as exc:  # noqa: BLE001
        raise InvalidAddressError("invalid public key", address=value) from exc


def to_pubkey(value: Union[str, Pubkey, Keypair]) -> Pubkey:
    if isinstance(value, Pubkey):
        return value
    if isinstance(value, Keypair):
        return value.pubkey()
    return public_key_from_base58(value)


def validate_wallet_address(address: Union[str, Pubkey]) -> Pubkey:
    """Ensure ``address`` is a 32-byte ed25519 point (i.e. not a PDA)."""
    if isinstance(address, str):
        try:
            raw = base58.b58decode(address)
        except ValueError as exc:
            raise InvalidAddressError("invalid wallet address", address=address) from exc
        if len(raw) != 32:
            raise InvalidAddressError("wallet address must be 32 bytes", address=address)
        pubkey = Pubkey.from_bytes(raw)
    else:
        pubkey = address
    if not pubkey.is_on_curve():
        raise InvalidAddressError("wallet address is not on the ed25519 curve", address=str(pubkey))
    return pubkey


def derive_token_account(wallet: Union[str, Pubkey], mint: Union[str, Pubkey]) -> Pubkey:
    return get_associated_token_address(to_pubkey(wallet), to_pubkey(mint))


def new_mnemonic(strength: int = 256) -> str:
    if strength not in MNEMONIC_STRENGTHS:
        raise ValidationError("mnemonic strength must be one of 128, 160, 192, 224, 256", strength=strength)
    return Mnemonic("english").generate(strength=strength)


def _seed_from_mnemonic(mnemonic: str, passphrase: str = "") -> bytes:
    words = Mnemonic("english")
    if not words.check(mnemonic):
        raise ValidationError("invalid mnemonic")
    return Mnemonic.to_seed(mnemonic, passphrase)


def account_from_mnemonic(mnemonic: str, passphrase: str = "") -> Keypair:
    """BIP39 account: the first 32 bytes of the seed are the ed25519 secret."""
    seed = _seed_from_mnemonic(mnemonic, passphrase)
    return Keypair.from_seed(seed[:32])


def derive_accounts_from_mnemonic(mnemonic: str, count: int = 1, passphrase: str = "") -> List[Keypair]:
    if count < 1:
        raise ValidationError("count must be positive", count=count)
    seed = _seed_from_mnemonic(mnemonic, passphrase)
    return [
        Keypair.from_seed_and_derivation_path(seed, BIP44_PATH.format(index=index))
        for index in range(count)
    ]


def load_keypair(path: Union[str, Path]) -> Keypair:
    path = Path(path)
    if not path.exists():
        raise ValidationError("keypair file not found", path=str(path))
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise SerializationError("failed to read keypair", path=str(path)) from exc
    if isinstance(data, list):
        secret = bytes(data)
    elif isinstance(data, dict) and "secretKey" in data:
        secret = bytes(data["secretKey"])
    else:
        raise SerializationError("unsupported keypair format", path=str(path))
    try:
        kp = Keypair.from_bytes(secret)
    except Exception as exc:  # noqa: BLE001
        raise SerializationError("failed to parse keypair", path=str(path)) from exc
    logger.debug("keypair_loaded pubkey=%s path=%s", kp.pubkey(), path)
    return kp

from dataclasses import asdict, dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

SOL = 1_000_000_000  # lamports per SOL
MAX_DECIMALS = 9


class TransactionStatus(str, Enum):
    UNKNOWN = "unknown"
    SUCCESS = "success"
    IN_PROGRESS = "in_progress"
    FAILURE = "failure"

    @classmethod
    def from_commitment(cls, commitment: Optional[str]) -> "TransactionStatus":
        """Only finalized transactions count as successful."""
        value = (commitment or "").lower()
        if value == "finalized":
            return cls.SUCCESS
        if value in ("confirmed", "processed"):
            return cls.IN_PROGRESS
        return cls.UNKNOWN


@dataclass
class TokenAmount:
    amount: int
    decimals: int
    ui_amount: float
    ui_amount_string: str

    @classmethod
    def from_raw(cls, amount: int, decimals: int) -> "TokenAmount":
        ui = Decimal(amount) / (Decimal(10) ** decimals)
        text = format(ui.normalize(), "f") if amount else "0"
        return cls(amount=amount, decimals=decimals, ui_amount=float(ui), ui_amount_string=text)

    def to_dict(self) -> dict:
        return asdict(self)


def lamports_to_sol(lamports: int) -> float:
    return lamports / SOL


def sol_to_lamports(sol: float) -> int:
    return int(Decimal(str(sol)) * SOL)


def amount_to_float(amount: int, decimals: int) -> float:
    return amount / (10 ** decimals)


def amount_to_int(amount: float, decimals: int) -> int:
    return int(Decimal(str(amount)) * (Decimal(10) ** decimals))


@dataclass
class MintInfo:
    address: str
    supply: int
    decimals: int
    is_initialized: bool
    mint_authority: Optional[str] = None
    freeze_authority: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TokenAccountInfo:
    address: str
    mint: str
    owner: str
    amount: int
    state: int
    delegate: Optional[str] = None
    delegated_amount: int = 0
    is_native: Optional[int] = None
    close_authority: Optional[str] = None

    @property
    def is_frozen(self) -> bool:
        return self.state == 2

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class NonceAccount:
    version: int
    state: int
    authority: str
    blockhash: str
    fee_lamports: int


@dataclass
class WalletToken:
    """A token account held by a wallet, as listed by getTokenAccountsByOwner."""

    address: str
    mint: str
    owner: str
    balance: TokenAmount

    @property
    def is_empty(self) -> bool:
        return self.balance.amount == 0

    @property
    def is_fungible(self) -> bool:
        return self.balance.decimals > 0

    def to_dict(self) -> dict:
        return asdict(self)

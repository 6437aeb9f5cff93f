"""Transaction and token helpers for Solana and the Metaplex token-metadata program."""

from .client import SolanaClient
from .config import Settings, get_settings
from .errors import (
    ConfigurationError,
    MaxSupplyReachedError,
    MissingFeePayerError,
    RpcError,
    SerializationError,
    SolplayError,
    TokenIsNotMasterEditionError,
    ValidationError,
)
from .mint_builder import MintBuilder
from .token_metadata import TokenStandard, UseMethod
from .transaction import TransactionBuilder
from .types import SOL, TokenAmount, TransactionStatus

__version__ = "0.1.0"

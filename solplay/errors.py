"""Error hierarchy for solplay.

Every failure raised by the package is a ``SolplayError``. Callers that only
care about the broad category can catch one of ``ValidationError``,
``RpcError`` or ``SerializationError``; the narrower classes exist for the
cases callers are expected to branch on.
"""

from typing import Any, Dict, Optional


class SolplayError(Exception):
    """Base error with optional structured context."""

    category = "solplay"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = " ".join(f"{key}={value}" for key, value in sorted(self.context.items()))
        return f"{self.message} ({details})"


class ConfigurationError(SolplayError):
    category = "configuration"


class ValidationError(SolplayError):
    category = "validation"


class RpcError(SolplayError):
    category = "rpc"


class SerializationError(SolplayError):
    category = "serialization"


# validation

class MissingFeePayerError(ValidationError):
    def __init__(self, message: str = "fee payer is required", **context: Any) -> None:
        super().__init__(message, **context)


class InvalidAddressError(ValidationError):
    pass


class BuilderConsumedError(ValidationError):
    def __init__(self, message: str = "builder has already been built", **context: Any) -> None:
        super().__init__(message, **context)


class TokenIsNotMasterEditionError(ValidationError):
    def __init__(self, message: str = "token is not a master edition", **context: Any) -> None:
        super().__init__(message, **context)


class MaxSupplyReachedError(ValidationError):
    def __init__(self, message: str = "max edition supply reached", **context: Any) -> None:
        super().__init__(message, **context)


class TransactionValidationError(ValidationError):
    pass


# rpc

class AccountNotFoundError(RpcError):
    pass


class TransactionNotFoundError(RpcError):
    pass


class BlockhashNotFoundError(RpcError):
    pass


class InsufficientFundsForRentError(RpcError):
    pass


class ConfirmationTimeoutError(RpcError):
    pass


class MetadataFetchError(RpcError):
    pass


def wrap_rpc(message: str, exc: Exception, **context: Any) -> RpcError:
    """Translate a transport/RPC exception into the matching ``RpcError`` subclass."""
    text = str(exc)
    if is_blockhash_not_found(text):
        return BlockhashNotFoundError(message, cause=text, **context)
    if "insufficient funds for rent" in text.lower():
        return InsufficientFundsForRentError(message, cause=text, **context)
    return RpcError(message, cause=text, **context)


def is_blockhash_not_found(text: Optional[str]) -> bool:
    if not text:
        return False
    lowered = text.lower()
    return "blockhashnotfound" in lowered or "blockhash not found" in lowered

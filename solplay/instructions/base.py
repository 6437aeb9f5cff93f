from typing import Any, Callable, List, Optional, Sequence, Union

from solders.instruction import Instruction
from solders.pubkey import Pubkey

from ..accounts import to_pubkey
from ..errors import ValidationError

InstructionFunc = Callable[[Any], List[Instruction]]
Step = Union[Instruction, Sequence[Instruction], InstructionFunc]

DEFAULT_PUBKEY = Pubkey.default()


def is_deferred(step: Step) -> bool:
    return callable(step) and not isinstance(step, Instruction)


def resolve_step(step: Step, client: Any) -> List[Instruction]:
    if isinstance(step, Instruction):
        return [step]
    if is_deferred(step):
        if client is None:
            raise ValidationError("instruction step needs a client to resolve")
        return list(step(client))
    return list(step)


def require_pubkey(value: Any, field: str) -> Pubkey:
    if value is None:
        raise ValidationError(f"field {field} is required")
    try:
        pubkey = to_pubkey(value)
    except ValidationError as exc:
        raise ValidationError(f"field {field} is not a valid public key") from exc
    if pubkey == DEFAULT_PUBKEY:
        raise ValidationError(f"field {field} is required")
    return pubkey


def optional_pubkey(value: Any, field: str) -> Optional[Pubkey]:
    if value is None:
        return None
    return require_pubkey(value, field)


def require_positive(value: int, field: str) -> int:
    if value is None or value <= 0:
        raise ValidationError(f"field {field} must be greater than 0", value=value)
    return value

# Result Values
# Explicit success/failure results for operations that must never raise

from dataclasses import dataclass
from typing import ClassVar, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    """Operation completed; `value` holds the result."""
    value: T
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class Failure:
    """
    Operation failed without raising.
    
    `reason` is a short human-readable description. It never contains
    key material, tokens or plaintext.
    """
    reason: str
    ok: ClassVar[bool] = False


Result = Union[Success[T], Failure]

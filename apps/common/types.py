"""
Result values returned across component seams.

Components such as the submission client and the credential cache return
`Ok(value)` or `Err(error)` instead of raising, so that the service decides
how each failure is classified.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, NoReturn, TypeVar

T = TypeVar("T")
E = TypeVar("E")


class UnwrapError(ValueError):
    """Raised when the wrong side of a Result is unwrapped."""


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_err(self) -> NoReturn:
        raise UnwrapError(f"Expected an error, got Ok({self.value!r})")


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> NoReturn:
        raise UnwrapError(f"Expected a value, got Err({self.error!r})")

    def unwrap_err(self) -> E:
        return self.error


Result = Ok[T] | Err[E]

__all__ = ["Err", "Ok", "Result", "UnwrapError"]

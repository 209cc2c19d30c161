"""Result type for operations that can fail.

Catalog operations never raise for expected failures; they return ``Ok`` or
``Err`` and callers branch with ``match``.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar, Generic

T = TypeVar("T")
E = TypeVar("E", bound=Exception)
F = TypeVar("F", bound=Exception)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E


type Result[T, E] = Ok[T] | Err[E]


def map_err(result: Result[T, E], fn: Callable[[E], F]) -> Result[T, F]:
    """Convert the error side, leaving ``Ok`` untouched."""
    match result:
        case Err(e):
            return Err(fn(e))
        case _:
            return result


def unwrap_or(result: Result[T, E], default: T) -> T:
    match result:
        case Ok(value):
            return value
        case _:
            return default

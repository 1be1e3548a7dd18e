"""Explicit success/failure values for calls to external services."""

from dataclasses import dataclass
from typing import Generic, TypeAlias, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class Err:
    error: str
    exception: BaseException | None = None


Result: TypeAlias = Ok[T] | Err

"""Discriminated result returned by lifecycle operations."""
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from courseflow.exceptions import DomainError

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """Either a value or a typed domain error, never both."""

    ok: bool
    value: Optional[T] = None
    error: Optional[DomainError] = None

    @classmethod
    def success(cls, value: T = None) -> "Result[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: DomainError) -> "Result[T]":
        return cls(ok=False, error=error)

    @property
    def message(self) -> Optional[str]:
        """Human-readable error message, if any."""
        return str(self.error) if self.error else None

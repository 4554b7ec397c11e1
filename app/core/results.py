from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from app.core.errors import EstateError

T = TypeVar("T")


@dataclass(frozen=True)
class CreateResult(Generic[T]):
    """Outcome of a create call: exactly one of ``value`` / ``error`` is set."""

    value: T | None = None
    error: EstateError | None = None

    def __post_init__(self) -> None:
        if (self.value is None) == (self.error is None):
            raise ValueError("CreateResult needs exactly one of value or error")

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> CreateResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: EstateError) -> CreateResult[T]:
        return cls(error=error)

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        assert self.value is not None
        return self.value

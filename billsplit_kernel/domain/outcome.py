"""
Outcome -- Result values returned by every public core operation.

Engines raise typed ``BillsplitError`` subclasses internally; the public
entry points catch them at the boundary and return ``Outcome.fail(exc)``.
Callers branch on ``outcome.ok`` or call ``unwrap()`` to get the value back
or have the original typed exception re-raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from billsplit_kernel.exceptions import BillsplitError, ErrorKind

T = TypeVar("T")


@dataclass(frozen=True)
class Failure:
    """A typed failure wrapping the exception that produced it."""

    error: BillsplitError

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind

    @property
    def code(self) -> str:
        return self.error.code

    @property
    def message(self) -> str:
        return str(self.error)

    @property
    def details(self) -> dict[str, Any]:
        return self.error.details()

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
        }


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Exactly one of ``value`` or ``failure`` is set."""

    value: T | None = None
    failure: Failure | None = None

    def __post_init__(self) -> None:
        if self.failure is not None and self.value is not None:
            raise ValueError("Outcome cannot carry both a value and a failure")

    @classmethod
    def success(cls, value: T) -> Outcome[T]:
        return cls(value=value)

    @classmethod
    def fail(cls, error: BillsplitError) -> Outcome[T]:
        return cls(failure=Failure(error))

    @property
    def ok(self) -> bool:
        return self.failure is None

    def unwrap(self) -> T:
        """Return the value, or re-raise the typed exception."""
        if self.failure is not None:
            raise self.failure.error
        return self.value  # type: ignore[return-value]

"""Tagged results returned by every network-facing operation in the core.

``Ok`` wraps a value, ``Err`` carries an ``ErrorKind`` plus context. Callers
branch on ``result.ok``; nothing at these seams raises for an expected
failure, so the "charged but not ordered" branch cannot be skipped by accident.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Generic, TypeVar, Union

from storefront.errors import ErrorKind

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    ok: ClassVar[bool] = False

    @property
    def user_message(self) -> str:
        return self.kind.message

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    @classmethod
    def of(cls, kind: ErrorKind, message: str | None = None, **details: Any) -> "Err":
        return cls(kind=kind, message=message or kind.message, details=details)


Result = Union[Ok[T], Err]

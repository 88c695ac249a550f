"""
Tagged service outcomes.

Services never raise for expected conditions (bad input, missing or hidden
rows, denied mutations, unique-constraint clashes).  They return a
``ServiceResult`` instead and the router layer turns a failure into the
JSON envelope with the matching status code.  Anything else is a bug or an
infrastructure fault and propagates as an ordinary exception.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


class OutcomeKind(str, enum.Enum):
    OK = "ok"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    CONFLICT = "conflict"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES: dict[OutcomeKind, int] = {
    OutcomeKind.OK: 200,
    OutcomeKind.VALIDATION: 400,
    OutcomeKind.NOT_FOUND: 404,
    OutcomeKind.ACCESS_DENIED: 403,
    OutcomeKind.CONFLICT: 409,
}


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    kind: OutcomeKind
    value: T | None = None
    error_message: str | None = None

    @property
    def success(self) -> bool:
        return self.kind is OutcomeKind.OK

    @classmethod
    def ok(cls, value: T | None = None) -> ServiceResult[T]:
        return cls(OutcomeKind.OK, value=value)

    @classmethod
    def validation(cls, message: str) -> ServiceResult[T]:
        return cls(OutcomeKind.VALIDATION, error_message=message)

    @classmethod
    def not_found(cls, message: str) -> ServiceResult[T]:
        return cls(OutcomeKind.NOT_FOUND, error_message=message)

    @classmethod
    def access_denied(cls, message: str) -> ServiceResult[T]:
        return cls(OutcomeKind.ACCESS_DENIED, error_message=message)

    @classmethod
    def conflict(cls, message: str) -> ServiceResult[T]:
        return cls(OutcomeKind.CONFLICT, error_message=message)

    def cast(self) -> ServiceResult:
        """Re-type a failure so it can be returned from a differently typed service."""
        if self.success:
            raise ValueError("only failed results can be re-typed")
        return ServiceResult(self.kind, error_message=self.error_message)


class ServiceFailure(Exception):
    """Raised by routers to hand a failed result to the envelope handler."""

    def __init__(self, result: ServiceResult) -> None:
        super().__init__(result.error_message)
        self.result = result


def unwrap(result: ServiceResult[T]) -> T | None:
    if not result.success:
        raise ServiceFailure(result)
    return result.value

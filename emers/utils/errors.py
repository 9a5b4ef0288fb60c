"""
Error taxonomy and result type for the market event analysis system.
Operations that refuse their input return a failed Result instead of raising.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(Enum):
    """Error kinds with their numeric codes."""
    INVALID_PARAMETER = 1003
    FILE_NOT_FOUND = 3001
    FILE_OPEN_FAILED = 3002
    FILE_READ_FAILED = 3003
    FILE_WRITE_FAILED = 3004
    CALCULATION_FAILED = 4001
    DIVISION_BY_ZERO = 4002
    DATA_INSUFFICIENT = 5002
    DATA_CORRUPTED = 5003
    FETCH_FAILED = 5101
    INSUFFICIENT_DATA = 5102

    @property
    def code(self) -> int:
        return self.value

    def describe(self) -> str:
        """Return the log tag used for this kind, e.g. ``[INVALID_PARAMETER:1003]``."""
        return f"[{self.name}:{self.value}]"


class EmersError(Exception):
    """Base exception carrying an error kind."""

    kind: ErrorKind = ErrorKind.CALCULATION_FAILED

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.describe()} {self.message}"


class InvalidParameterError(EmersError):
    kind = ErrorKind.INVALID_PARAMETER


class InsufficientDataError(EmersError):
    kind = ErrorKind.INSUFFICIENT_DATA


class CorruptedDatabaseError(EmersError):
    kind = ErrorKind.DATA_CORRUPTED


class IOFailureError(EmersError):
    kind = ErrorKind.FILE_READ_FAILED


class FetchError(IOFailureError):
    kind = ErrorKind.FETCH_FAILED


_EXCEPTIONS = {
    ErrorKind.INVALID_PARAMETER: InvalidParameterError,
    ErrorKind.INSUFFICIENT_DATA: InsufficientDataError,
    ErrorKind.DATA_INSUFFICIENT: InsufficientDataError,
    ErrorKind.DATA_CORRUPTED: CorruptedDatabaseError,
    ErrorKind.FETCH_FAILED: FetchError,
    ErrorKind.FILE_NOT_FOUND: IOFailureError,
    ErrorKind.FILE_OPEN_FAILED: IOFailureError,
    ErrorKind.FILE_READ_FAILED: IOFailureError,
    ErrorKind.FILE_WRITE_FAILED: IOFailureError,
}


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Either a value or an error kind with a message.

    Example:
        result = engine.run_backtest(series)
        if result.ok:
            print(result.value.final_capital)
    """
    value: Optional[T] = None
    error_kind: Optional[ErrorKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "Result[Any]":
        return cls(error_kind=kind, message=message)

    def unwrap(self) -> T:
        """
        Return the value or raise the exception matching the error kind.

        Raises:
            EmersError: If the result is a failure
        """
        if self.ok:
            return self.value
        exc_type = _EXCEPTIONS.get(self.error_kind, EmersError)
        raise exc_type(self.message, self.error_kind)

    def __bool__(self) -> bool:
        return self.ok

# ABOUTME: Typed error values and Ok/Err results returned by every goal/step operation.
# ABOUTME: operation() turns raised GoalError and SQLAlchemy failures into Err at the boundary.

import functools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, NoReturn, TypeVar

from sqlalchemy.exc import SQLAlchemyError

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Stable error kinds exposed to callers."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    UNAUTHENTICATED = "unauthenticated"
    STORAGE = "storage"


class GoalError(Exception):
    """Error with a stable kind and a message suitable for display or logging."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __repr__(self) -> str:
        return f"GoalError({self.kind.value!r}, {self.message!r})"

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}


def validation_error(message: str) -> GoalError:
    return GoalError(ErrorKind.VALIDATION, message)


def not_found(message: str) -> GoalError:
    return GoalError(ErrorKind.NOT_FOUND, message)


def forbidden(message: str) -> GoalError:
    return GoalError(ErrorKind.FORBIDDEN, message)


def unauthenticated(message: str = "You must be signed in") -> GoalError:
    return GoalError(ErrorKind.UNAUTHENTICATED, message)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: GoalError

    @property
    def ok(self) -> bool:
        return False

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind

    @property
    def message(self) -> str:
        return self.error.message

    def unwrap(self) -> NoReturn:
        raise self.error


Result = Ok[T] | Err


def operation(
    failure_message: str,
) -> Callable[[Callable[..., Awaitable[Any]]], Callable[..., Awaitable[Result]]]:
    """Decorate an async operation so it returns Ok/Err instead of raising.

    A GoalError raised inside becomes Err unchanged. A SQLAlchemyError is logged and
    re-wrapped as a storage error carrying the driver's message. Transactions opened
    inside the operation have already rolled back by the time the error is caught.
    """

    def decorator(fn: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Result]]:
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs) -> Result:
            try:
                return Ok(await fn(*args, **kwargs))
            except GoalError as e:
                return Err(e)
            except SQLAlchemyError as e:
                logging.exception("%s failed (database error)", fn.__name__)
                return Err(GoalError(ErrorKind.STORAGE, f"{failure_message}: {e}"))

        return wrapper

    return decorator

#!/usr/bin/env python3

"""
Result Monad

Every fallible operation in the core returns one of these instead of raising,
so a decode error or a load failure travels back to the caller as a value
carrying its typed AncError.
"""

from typing import TypeVar, Generic, Callable, Optional, Any
from abc import ABC, abstractmethod
from dataclasses import dataclass

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')
F = TypeVar('F')


class Result(Generic[T, E], ABC):
    """Outcome of a fallible operation: either a value or an error."""

    @abstractmethod
    def map(self, func: Callable[[T], U]) -> 'Result[U, E]':
        """Transform the value, leaving an error untouched."""

    @abstractmethod
    def flat_map(self, func: Callable[[T], 'Result[U, E]']) -> 'Result[U, E]':
        """Continue with another fallible step."""

    @abstractmethod
    def map_error(self, func: Callable[[E], F]) -> 'Result[T, F]':
        """Transform the error, leaving a value untouched."""

    @abstractmethod
    def is_success(self) -> bool:
        ...

    def is_failure(self) -> bool:
        return not self.is_success()

    @abstractmethod
    def get_value(self) -> Optional[T]:
        ...

    @abstractmethod
    def get_error(self) -> Optional[E]:
        ...

    def get_or_else(self, default: T) -> T:
        if self.is_success():
            return self.get_value()
        return default

    def fold(self, on_success: Callable[[T], U], on_failure: Callable[[E], U]) -> U:
        """Collapse both branches into a single value."""
        if self.is_failure():
            return on_failure(self.get_error())
        return on_success(self.get_value())

    def foreach(self, action: Callable[[T], Any]) -> 'Result[T, E]':
        if self.is_success():
            action(self.get_value())
        return self


@dataclass(frozen=True)
class Success(Result[T, E]):
    value: T

    def map(self, func: Callable[[T], U]) -> Result[U, E]:
        return Success(func(self.value))

    def flat_map(self, func: Callable[[T], Result[U, E]]) -> Result[U, E]:
        return func(self.value)

    def map_error(self, func: Callable[[E], F]) -> Result[T, F]:
        return self

    def is_success(self) -> bool:
        return True

    def get_value(self) -> Optional[T]:
        return self.value

    def get_error(self) -> Optional[E]:
        return None

    def __str__(self) -> str:
        return f"Success({self.value})"


@dataclass(frozen=True)
class Failure(Result[T, E]):
    """Carries the error; value accessors return None."""
    error: E

    def map(self, func: Callable[[T], U]) -> Result[U, E]:
        return self

    def flat_map(self, func: Callable[[T], Result[U, E]]) -> Result[U, E]:
        return self

    def map_error(self, func: Callable[[E], F]) -> Result[T, F]:
        return Failure(func(self.error))

    def is_success(self) -> bool:
        return False

    def get_value(self) -> Optional[T]:
        return None

    def get_error(self) -> Optional[E]:
        return self.error

    def __str__(self) -> str:
        return f"Failure({self.error})"


def success(value: T) -> Result[T, Any]:
    return Success(value)


def failure(error: E) -> Result[Any, E]:
    return Failure(error)

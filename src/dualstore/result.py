"""
Result type for explicit error propagation.

A ``Result`` is either a success carrying a value or a failure carrying an
error. Multi-step workflows chain steps with ``flat_map`` and stop at the
first failure without using exceptions for control flow:

    result = (
        validate(data)
        .flat_map(create_user)
        .on_success(send_welcome_email)
    )
    if result.is_failure():
        log(result.error())

Direct-call sites can keep catching the typed exceptions; ``Result.attempt``
converts them at a workflow boundary.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, Tuple, Type, TypeVar, Union

from .exceptions import DualStoreError, InvalidResultAccessError


T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")
F = TypeVar("F")


@dataclass(frozen=True, eq=True)
class Result(Generic[T, E]):
    """Immutable success/failure outcome.

    Build instances with ``Result.success`` or ``Result.failure``; exactly one
    payload is meaningful for a given instance.
    """

    _value: Any = None
    _error: Any = None
    _is_success: bool = True

    def __post_init__(self) -> None:
        if self._is_success and self._error is not None:
            raise ValueError("A successful Result cannot carry an error")
        if not self._is_success and self._value is not None:
            raise ValueError("A failed Result cannot carry a value")

    @classmethod
    def success(cls, value: T) -> "Result[T, Any]":
        return cls(_value=value, _error=None, _is_success=True)

    @classmethod
    def failure(cls, error: E) -> "Result[Any, E]":
        return cls(_value=None, _error=error, _is_success=False)

    @classmethod
    def attempt(
        cls,
        func: Callable[..., T],
        *args: Any,
        catch: Union[Type[BaseException], Tuple[Type[BaseException], ...]] = DualStoreError,
        **kwargs: Any,
    ) -> "Result[T, BaseException]":
        """Call ``func`` and capture the listed exception types as a failure.

        Exceptions not listed in ``catch`` propagate.
        """
        try:
            return cls.success(func(*args, **kwargs))
        except catch as exc:
            return cls.failure(exc)

    def is_success(self) -> bool:
        return self._is_success

    def is_failure(self) -> bool:
        return not self._is_success

    def value(self) -> T:
        """Get the success payload.

        Raises:
            InvalidResultAccessError: If this is a failure
        """
        if not self._is_success:
            raise InvalidResultAccessError("Cannot get value from failed result")
        return self._value

    def error(self) -> E:
        """Get the failure payload.

        Raises:
            InvalidResultAccessError: If this is a success
        """
        if self._is_success:
            raise InvalidResultAccessError("Cannot get error from successful result")
        return self._error

    def value_or(self, default: U) -> Union[T, U]:
        return self._value if self._is_success else default

    def map(self, func: Callable[[T], U]) -> "Result[U, E]":
        """Transform the success payload; failures pass through unchanged."""
        if not self._is_success:
            return self
        return Result.success(func(self._value))

    def flat_map(self, func: Callable[[T], "Result[U, E]"]) -> "Result[U, E]":
        """Chain a Result-producing step; short-circuits on failure."""
        if not self._is_success:
            return self
        return func(self._value)

    def map_error(self, func: Callable[[E], F]) -> "Result[T, F]":
        """Transform the failure payload; successes pass through unchanged."""
        if self._is_success:
            return self
        return Result.failure(func(self._error))

    def on_success(self, func: Callable[[T], Any]) -> "Result[T, E]":
        if self._is_success:
            func(self._value)
        return self

    def on_failure(self, func: Callable[[E], Any]) -> "Result[T, E]":
        if not self._is_success:
            func(self._error)
        return self

    def __repr__(self) -> str:
        if self._is_success:
            return f"Result.success({self._value!r})"
        return f"Result.failure({self._error!r})"


# ============================================================================
# Failure payloads for workflows built on top of the core
# ============================================================================

@dataclass(frozen=True)
class ValidationFailure:
    """Input rejected before any write."""

    message: str
    errors: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DuplicateConstraintFailure:
    """A write collided with an existing record on a unique field."""

    field: str
    value: Any

    @property
    def message(self) -> str:
        return f"A record with {self.field}={self.value!r} already exists"

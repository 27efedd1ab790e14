"""
Custom exceptions for the dualstore data-access layer.

This module defines the typed errors raised by repositories, model managers,
the cache wrapper and the Result type. Each exception includes:
- A descriptive message
- An error code
- Optional details for debugging

Failures of the underlying store clients are not wrapped. They reach the
caller as the client raised them; ``BACKEND_FAILURES`` lists their base
classes for ``except`` clauses.
"""

from enum import Enum
from typing import Any, Dict, Mapping, Optional

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy.exc import SQLAlchemyError


class ErrorCode(str, Enum):
    """Error codes for consistent error reporting."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    NOT_FOUND = "NOT_FOUND"

    # Capability errors
    CAPABILITY_NOT_SUPPORTED = "CAPABILITY_NOT_SUPPORTED"
    RELATIONS_NOT_SUPPORTED = "RELATIONS_NOT_SUPPORTED"
    ORDER_BY_NOT_SUPPORTED = "ORDER_BY_NOT_SUPPORTED"
    GROUP_BY_NOT_SUPPORTED = "GROUP_BY_NOT_SUPPORTED"
    MASS_UPDATE_NOT_AVAILABLE = "MASS_UPDATE_NOT_AVAILABLE"

    # Cache errors
    NO_SUCH_OPERATION = "NO_SUCH_OPERATION"

    # Result errors
    INVALID_RESULT_ACCESS = "INVALID_RESULT_ACCESS"


class DualStoreError(Exception):
    """
    Base exception for all dualstore errors.

    Attributes:
        message: Human-readable error message
        code: Error code from ErrorCode enum
        details: Optional dictionary with additional error details
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a serializable dictionary."""
        result: Dict[str, Any] = {
            "error": {
                "code": self.code.value,
                "message": self.message,
            }
        }
        if self.details:
            result["error"]["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"


# ============================================================================
# Capability Errors
# ============================================================================

class CapabilityError(DualStoreError):
    """Raised when a backend cannot perform the requested operation.

    This is distinct from an operation that was attempted and failed: it is
    always raised before the store is touched.
    """

    def __init__(
        self,
        feature: str,
        backend: str,
        message: Optional[str] = None,
        code: ErrorCode = ErrorCode.CAPABILITY_NOT_SUPPORTED,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        error_details["feature"] = feature
        error_details["backend"] = backend
        self.feature = feature
        self.backend = backend
        super().__init__(
            message=message or f"The {backend} backend does not support {feature}.",
            code=code,
            details=error_details,
        )


class RelationsNotSupportedError(CapabilityError):
    """Raised when eager loading of relations is requested on a store without relations."""

    def __init__(self, backend: str, relations: Optional[list] = None) -> None:
        details = {"relations": list(relations)} if relations else None
        super().__init__(
            feature="relations",
            backend=backend,
            message=(
                f"Relations (eager loading) are not supported for the {backend} backend. "
                "A schema-less store has no joins or relationships."
            ),
            code=ErrorCode.RELATIONS_NOT_SUPPORTED,
            details=details,
        )


class OrderByNotSupportedError(CapabilityError):
    """Raised when ordering is requested on a field the backend cannot sort by."""

    def __init__(self, backend: str, field: Optional[str] = None) -> None:
        if field is None:
            message = (
                f"ORDER BY operations are not supported for the {backend} backend."
            )
        else:
            message = (
                f"Cannot order by '{field}' on the {backend} backend. "
                "Ordering works only on sort keys defined by the table or its indexes."
            )
        super().__init__(
            feature="order_by",
            backend=backend,
            message=message,
            code=ErrorCode.ORDER_BY_NOT_SUPPORTED,
            details={"field": field} if field else None,
        )
        self.field = field


class GroupByNotSupportedError(CapabilityError):
    """Raised when grouping is requested on a backend without aggregation."""

    def __init__(self, backend: str) -> None:
        super().__init__(
            feature="group_by",
            backend=backend,
            message=(
                f"GROUP BY operations are not supported for the {backend} backend."
            ),
            code=ErrorCode.GROUP_BY_NOT_SUPPORTED,
        )


class MassUpdateNotAvailableError(CapabilityError):
    """Raised when a single-statement mass update is not declared for a record type."""

    def __init__(self, backend: str, model_name: str) -> None:
        super().__init__(
            feature="mass_update",
            backend=backend,
            message=(
                f"Mass update is not available for {model_name} on the {backend} backend. "
                "The record type must declare the 'mass_update' capability."
            ),
            code=ErrorCode.MASS_UPDATE_NOT_AVAILABLE,
            details={"model": model_name, "missing": "mass_update"},
        )
        self.model_name = model_name


# ============================================================================
# Lookup Errors
# ============================================================================

class NotFoundError(DualStoreError):
    """Raised when a required single-record lookup matches nothing."""

    def __init__(
        self,
        model_name: str,
        params: Optional[Mapping[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        params = dict(params or {})
        if params:
            criteria = ", ".join(f"{key}={value!r}" for key, value in params.items())
            message = f"No {model_name} found matching {criteria}"
        else:
            message = f"No {model_name} found"
        error_details = details or {}
        error_details["model"] = model_name
        error_details["params"] = {key: repr(value) for key, value in params.items()}
        super().__init__(
            message=message,
            code=ErrorCode.NOT_FOUND,
            details=error_details,
        )
        self.model_name = model_name
        self.params = params


class NoSuchOperationError(DualStoreError):
    """Raised when the cache wrapper is asked for an operation it does not proxy."""

    def __init__(self, operation: str, target: str) -> None:
        super().__init__(
            message=f"Method {operation} does not exist on {target}",
            code=ErrorCode.NO_SUCH_OPERATION,
            details={"operation": operation, "target": target},
        )
        self.operation = operation


class InvalidResultAccessError(DualStoreError):
    """Raised when reading the payload of the wrong Result variant."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code=ErrorCode.INVALID_RESULT_ACCESS)


# Failures raised by the store clients themselves; passed through unchanged
BACKEND_FAILURES = (SQLAlchemyError, BotoCoreError, ClientError)

"""
dualstore: one data-access interface over a relational and a wide-column store.

Reads go through repositories, writes through model managers. Repositories
can be wrapped in a read-through cache, and any operation can be re-exposed
as a ``Result`` for explicit error handling.
"""

from .capabilities import RELATIONAL, WIDE_COLUMN, WIDE_COLUMN_STRICT, Capabilities
from .config import Settings, get_settings
from .exceptions import (
    CapabilityError,
    DualStoreError,
    ErrorCode,
    GroupByNotSupportedError,
    InvalidResultAccessError,
    MassUpdateNotAvailableError,
    NoSuchOperationError,
    NotFoundError,
    OrderByNotSupportedError,
    RelationsNotSupportedError,
)
from .pipeline import DataBuilder, compose
from .query import Page, PageRequest, SortDirection
from .result import DuplicateConstraintFailure, Result, ValidationFailure

__version__ = "0.1.0"

__all__ = [
    "RELATIONAL",
    "WIDE_COLUMN",
    "WIDE_COLUMN_STRICT",
    "Capabilities",
    "Settings",
    "get_settings",
    "CapabilityError",
    "DualStoreError",
    "ErrorCode",
    "GroupByNotSupportedError",
    "InvalidResultAccessError",
    "MassUpdateNotAvailableError",
    "NoSuchOperationError",
    "NotFoundError",
    "OrderByNotSupportedError",
    "RelationsNotSupportedError",
    "DataBuilder",
    "compose",
    "Page",
    "PageRequest",
    "SortDirection",
    "DuplicateConstraintFailure",
    "Result",
    "ValidationFailure",
]

"""
Query value types shared by both backends.

Parameter sets, order and group specifications arrive from callers in a few
loose shapes; the normalizers here turn them into one canonical form before
any repository logic runs. ``PageRequest`` and ``Page`` carry pagination in
and out.
"""

from enum import Enum
from typing import Any, Generic, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field


T = TypeVar("T")

ParamsInput = Optional[Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]]
OrderByInput = Optional[Union[Mapping[str, Any], Sequence[str]]]
GroupByInput = Optional[Union[str, Sequence[str]]]


class SortDirection(str, Enum):
    """Sort direction for ordering."""

    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, value: Any) -> "SortDirection":
        if isinstance(value, SortDirection):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise ValueError(f"Invalid sort direction {value!r}; expected 'asc' or 'desc'")


def normalize_params(params: ParamsInput) -> dict:
    """Turn a parameter set into an ordered ``{field: value}`` dict.

    ``None`` and empty inputs mean "match all".
    """
    if not params:
        return {}
    items = params.items() if isinstance(params, Mapping) else params
    normalized = {}
    for key, value in items:
        if not isinstance(key, str):
            raise TypeError(f"Parameter names must be strings, got {key!r}")
        normalized[key] = value
    return normalized


def normalize_order_by(order_by: OrderByInput) -> List[Tuple[str, SortDirection]]:
    """Turn an order spec into ``[(field, direction), ...]`` preserving order.

    A plain sequence of field names sorts each field ascending.
    """
    if not order_by:
        return []
    if isinstance(order_by, Mapping):
        return [(field, SortDirection.parse(direction)) for field, direction in order_by.items()]
    if isinstance(order_by, str):
        return [(order_by, SortDirection.ASC)]
    return [(field, SortDirection.ASC) for field in order_by]


def normalize_group_by(group_by: GroupByInput) -> List[str]:
    if not group_by:
        return []
    if isinstance(group_by, str):
        return [group_by]
    return list(group_by)


def normalize_relations(relations: GroupByInput) -> List[str]:
    return normalize_group_by(relations)


class PageRequest(BaseModel):
    """Requested page: 1-based page number and page size."""

    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=15, ge=1)

    @property
    def offset(self) -> int:
        """Calculate offset from page and per_page."""
        return (self.page - 1) * self.per_page

    @property
    def limit(self) -> int:
        """Alias for per_page."""
        return self.per_page


class Page(BaseModel, Generic[T]):
    """One page of records plus the totals needed to navigate."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    items: List[T]
    total: int
    page: int
    per_page: int

    @classmethod
    def from_request(cls, items: List[T], total: int, request: PageRequest) -> "Page[T]":
        return cls(items=items, total=total, page=request.page, per_page=request.per_page)

    @property
    def total_pages(self) -> int:
        """Calculate total pages."""
        if self.per_page <= 0:
            return 0
        return (self.total + self.per_page - 1) // self.per_page

    @property
    def has_next(self) -> bool:
        """Check if there are more pages."""
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        """Check if there are previous pages."""
        return self.page > 1

    def __len__(self) -> int:
        return len(self.items)

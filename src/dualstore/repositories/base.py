"""Base repository interface.

Defines the read contract shared by every backend. Callers depend on
``Repository`` rather than on a concrete backend, so the same code pages,
filters and counts records whether they live in a relational database or in
a wide-column table.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, List, Optional, TypeVar

from ..capabilities import Capabilities
from ..config import Settings, get_settings
from ..exceptions import NotFoundError
from ..query import (
    GroupByInput,
    OrderByInput,
    Page,
    PageRequest,
    ParamsInput,
    normalize_params,
)

# Type variable for the record type returned by the repository
T = TypeVar("T")


class Repository(ABC, Generic[T]):
    """
    Abstract base class for read-only repositories.

    Subclasses set ``capabilities`` (class attribute or constructor argument)
    and implement the backend-specific reads. Every operation that a backend
    cannot perform raises a ``CapabilityError`` before touching the store.

    Type Parameters:
        T: The type of record returned by this repository
    """

    capabilities: Capabilities

    def __init__(
        self,
        settings: Optional[Settings] = None,
        capabilities: Optional[Capabilities] = None,
    ) -> None:
        self._settings = settings
        if capabilities is not None:
            self.capabilities = capabilities

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    @property
    def backend(self) -> str:
        return self.capabilities.backend

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Name of the record type, used in errors and cache keys."""
        pass

    def page_request(self, page: int = 1, items_per_page: Optional[int] = None) -> PageRequest:
        """Build the page request for a paginate call."""
        per_page = self.settings.resolve_items_per_page(items_per_page)
        return PageRequest(page=page, per_page=per_page)

    @abstractmethod
    def query(self) -> Any:
        """Return the backend's native query builder for this record type."""
        pass

    @abstractmethod
    def paginate(
        self,
        params: ParamsInput = None,
        with_relations: GroupByInput = (),
        items_per_page: Optional[int] = None,
        order_by: OrderByInput = None,
        group_by: GroupByInput = (),
        page: int = 1,
    ) -> Page[T]:
        """
        Get one page of records matching ``params``.

        Args:
            params: Field equality conditions (empty matches all)
            with_relations: Relations to eager-load
            items_per_page: Page size; the configured default when absent or <= 0
            order_by: Ordered mapping of field to direction
            group_by: Fields to group by
            page: 1-based page number

        Returns:
            Page with items, total, page and per_page

        Raises:
            CapabilityError: If the backend cannot honor relations, ordering or grouping
        """
        pass

    @abstractmethod
    def find_one(
        self,
        params: ParamsInput,
        with_relations: GroupByInput = (),
        order_by: OrderByInput = None,
    ) -> Optional[T]:
        """
        Get the first record matching ``params``.

        Returns:
            The record if found, None otherwise
        """
        pass

    def get_one(
        self,
        params: ParamsInput,
        with_relations: GroupByInput = (),
        order_by: OrderByInput = None,
    ) -> T:
        """
        Get the first record matching ``params``.

        Raises:
            NotFoundError: If nothing matches
        """
        record = self.find_one(params, with_relations=with_relations, order_by=order_by)
        if record is None:
            raise NotFoundError(self.model_name, normalize_params(params))
        return record

    @abstractmethod
    def find_all(
        self,
        params: ParamsInput = None,
        with_relations: GroupByInput = (),
        order_by: OrderByInput = None,
        group_by: GroupByInput = (),
        limit: Optional[int] = None,
    ) -> List[T]:
        """Get every record matching ``params``, optionally capped at ``limit``."""
        pass

    @abstractmethod
    def count_by_params(self, params: ParamsInput = None, group_by: GroupByInput = ()) -> int:
        """
        Count records matching ``params``.

        With ``group_by`` the number of groups is returned.
        """
        pass

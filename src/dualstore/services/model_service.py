"""Model service facade.

``ModelService`` pairs one repository (reads) with one model manager
(writes) for the same record type, so application code has a single entry
point. The ``*_result`` variants return ``Result`` values instead of raising,
for workflows that chain steps with ``flat_map``.
"""

import logging
from typing import Any, Generic, List, Mapping, Optional, Sequence, TypeVar

from ..exceptions import DualStoreError
from ..managers.base import ModelManager
from ..pipeline import DataBuilder
from ..query import GroupByInput, OrderByInput, Page, ParamsInput
from ..repositories.base import Repository
from ..result import DuplicateConstraintFailure, Result

T = TypeVar("T")


class ModelService(Generic[T]):
    """
    CRUD facade over a repository and a model manager.

    Usage:
        users = ModelService(UserRepository(db), UserManager(db), builder=user_builder)
        result = users.create_result({"email": "A@Example.com"}, unique=("email",))
        if result.is_failure():
            print(result.error().message)

    Args:
        repository: Read side
        manager: Write side
        builder: Optional data builder applied to data before create
        logger: Logger override
    """

    def __init__(
        self,
        repository: Repository[T],
        manager: ModelManager[T],
        builder: Optional[DataBuilder] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.repository = repository
        self.manager = manager
        self.builder = builder
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    @property
    def logger(self) -> logging.Logger:
        """Get the logger instance."""
        return self._logger

    def _build(self, data: Mapping[str, Any]) -> Mapping[str, Any]:
        if self.builder is None:
            return data
        return self.builder.build(data)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, data: Mapping[str, Any]) -> T:
        return self.manager.create(self._build(data))

    def update_by_params(self, values: Mapping[str, Any], params: ParamsInput) -> int:
        return self.manager.update_by_params(values, params)

    def delete_by_params(self, params: ParamsInput) -> bool:
        return self.manager.delete_by_params(params)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_one(
        self,
        params: ParamsInput,
        with_relations: GroupByInput = (),
        order_by: OrderByInput = None,
    ) -> Optional[T]:
        return self.repository.find_one(params, with_relations=with_relations, order_by=order_by)

    def get_one(
        self,
        params: ParamsInput,
        with_relations: GroupByInput = (),
        order_by: OrderByInput = None,
    ) -> T:
        return self.repository.get_one(params, with_relations=with_relations, order_by=order_by)

    def paginate(
        self,
        params: ParamsInput = None,
        with_relations: GroupByInput = (),
        items_per_page: Optional[int] = None,
        order_by: OrderByInput = None,
        group_by: GroupByInput = (),
        page: int = 1,
    ) -> Page[T]:
        return self.repository.paginate(
            params,
            with_relations=with_relations,
            items_per_page=items_per_page,
            order_by=order_by,
            group_by=group_by,
            page=page,
        )

    def find_all(
        self,
        params: ParamsInput = None,
        with_relations: GroupByInput = (),
        order_by: OrderByInput = None,
        group_by: GroupByInput = (),
        limit: Optional[int] = None,
    ) -> List[T]:
        return self.repository.find_all(
            params,
            with_relations=with_relations,
            order_by=order_by,
            group_by=group_by,
            limit=limit,
        )

    def count_by_params(self, params: ParamsInput = None, group_by: GroupByInput = ()) -> int:
        return self.repository.count_by_params(params, group_by=group_by)

    # ------------------------------------------------------------------
    # Result variants
    # ------------------------------------------------------------------

    def find_one_result(self, params: ParamsInput, **kwargs: Any) -> "Result[Optional[T], DualStoreError]":
        """``find_one`` with capability errors captured as failures."""
        return Result.attempt(self.find_one, params, **kwargs)

    def get_one_result(self, params: ParamsInput, **kwargs: Any) -> "Result[T, DualStoreError]":
        """``get_one`` with a missing record (or a capability error) as a failure."""
        return Result.attempt(self.get_one, params, **kwargs)

    def create_result(
        self,
        data: Mapping[str, Any],
        unique: Sequence[str] = (),
    ) -> "Result[T, DuplicateConstraintFailure]":
        """
        Create a record unless it collides with a stored one.

        Args:
            data: Field values, passed through the builder first
            unique: Fields whose values must not exist yet

        Returns:
            Success with the created record, or failure with a
            DuplicateConstraintFailure naming the first colliding field
        """
        built = self._build(data)
        for field in unique:
            if field not in built:
                continue
            if self.repository.find_one({field: built[field]}) is not None:
                self._logger.info(f"Refusing to create duplicate record with {field}={built[field]!r}")
                return Result.failure(DuplicateConstraintFailure(field, built[field]))
        return Result.success(self.manager.create(built))

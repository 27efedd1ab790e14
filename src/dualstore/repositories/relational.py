"""Relational repository backed by SQLAlchemy.

Filtering, eager loading, ordering and grouping are delegated to the
SQLAlchemy query builder. Each read runs in its own short-lived session.
"""

import logging
from typing import Any, List, Optional, Sequence, Tuple, Type, TypeVar

from sqlalchemy import Select, func, inspect, select
from sqlalchemy.orm import selectinload

from ..capabilities import RELATIONAL, Capabilities
from ..config import Settings
from ..db.relational import SqlDatabase
from ..query import (
    GroupByInput,
    OrderByInput,
    Page,
    ParamsInput,
    SortDirection,
    normalize_group_by,
    normalize_order_by,
    normalize_params,
    normalize_relations,
)
from .base import Repository

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


def relation_loader(model: Type[Any], path: str) -> Any:
    """Build a ``selectinload`` chain for a dotted relation path.

    ``"posts.comments"`` loads ``model.posts`` and then each post's
    ``comments``.

    Raises:
        ValueError: If a segment is not a relationship of its model
    """
    loader = None
    current = model
    for name in path.split("."):
        relationships = inspect(current).relationships
        if name not in relationships:
            raise ValueError(f"{current.__name__} has no relation named '{name}'")
        attribute = getattr(current, name)
        loader = selectinload(attribute) if loader is None else loader.selectinload(attribute)
        current = relationships[name].mapper.class_
    return loader


class RelationalRepository(Repository[ModelT]):
    """
    Repository for one mapped SQLAlchemy model.

    Subclasses usually only set ``model``:

        class UserRepository(RelationalRepository[User]):
            model = User

        users = UserRepository(SqlDatabase("sqlite:///app.db"))
        page = users.paginate({"active": True}, order_by={"name": "asc"})
    """

    model: Type[ModelT]
    capabilities: Capabilities = RELATIONAL

    def __init__(
        self,
        database: SqlDatabase,
        model: Optional[Type[ModelT]] = None,
        settings: Optional[Settings] = None,
        capabilities: Optional[Capabilities] = None,
    ) -> None:
        super().__init__(settings=settings, capabilities=capabilities)
        self.database = database
        if model is not None:
            self.model = model
        if getattr(self, "model", None) is None:
            raise ValueError(f"{type(self).__name__} needs a mapped model")

    @property
    def model_name(self) -> str:
        return self.model.__name__

    def query(self) -> Select:
        return select(self.model)

    def _column(self, field: str) -> Any:
        if field not in inspect(self.model).all_orm_descriptors:
            raise ValueError(f"{self.model_name} has no field named '{field}'")
        return getattr(self.model, field)

    def _filtered(self, params: ParamsInput, group_by: Sequence[str]) -> Select:
        statement = self.query().filter_by(**normalize_params(params))
        if group_by:
            statement = statement.group_by(*[self._column(field) for field in group_by])
        return statement

    def _shaped(
        self,
        statement: Select,
        relations: Sequence[str],
        order_by: Sequence[Tuple[str, SortDirection]],
    ) -> Select:
        if relations:
            statement = statement.options(*[relation_loader(self.model, path) for path in relations])
        for field, direction in order_by:
            column = self._column(field)
            statement = statement.order_by(column.desc() if direction is SortDirection.DESC else column.asc())
        return statement

    def _count(self, statement: Select) -> int:
        with self.database.session() as session:
            return session.scalar(select(func.count()).select_from(statement.subquery())) or 0

    def _normalized(
        self,
        with_relations: GroupByInput,
        order_by: OrderByInput,
        group_by: GroupByInput,
    ) -> Tuple[List[str], List[Tuple[str, SortDirection]], List[str]]:
        relations = normalize_relations(with_relations)
        ordering = normalize_order_by(order_by)
        grouping = normalize_group_by(group_by)
        self.capabilities.check_read(relations, ordering, grouping)
        return relations, ordering, grouping

    def paginate(
        self,
        params: ParamsInput = None,
        with_relations: GroupByInput = (),
        items_per_page: Optional[int] = None,
        order_by: OrderByInput = None,
        group_by: GroupByInput = (),
        page: int = 1,
    ) -> Page[ModelT]:
        relations, ordering, grouping = self._normalized(with_relations, order_by, group_by)
        request = self.page_request(page, items_per_page)

        filtered = self._filtered(params, grouping)
        total = self._count(filtered)
        statement = self._shaped(filtered, relations, ordering)
        statement = statement.offset(request.offset).limit(request.limit)

        with self.database.session() as session:
            items = list(session.scalars(statement).all())

        logger.debug(
            f"Paginated {self.model_name}: page {request.page}, {len(items)} of {total} rows"
        )
        return Page.from_request(items, total, request)

    def find_one(
        self,
        params: ParamsInput,
        with_relations: GroupByInput = (),
        order_by: OrderByInput = None,
    ) -> Optional[ModelT]:
        relations, ordering, _ = self._normalized(with_relations, order_by, ())
        statement = self._shaped(self._filtered(params, ()), relations, ordering).limit(1)
        with self.database.session() as session:
            return session.scalars(statement).first()

    def find_all(
        self,
        params: ParamsInput = None,
        with_relations: GroupByInput = (),
        order_by: OrderByInput = None,
        group_by: GroupByInput = (),
        limit: Optional[int] = None,
    ) -> List[ModelT]:
        relations, ordering, grouping = self._normalized(with_relations, order_by, group_by)
        statement = self._shaped(self._filtered(params, grouping), relations, ordering)
        if limit is not None:
            statement = statement.limit(limit)
        with self.database.session() as session:
            return list(session.scalars(statement).all())

    def count_by_params(self, params: ParamsInput = None, group_by: GroupByInput = ()) -> int:
        grouping = normalize_group_by(group_by)
        self.capabilities.require_grouping(grouping)
        return self._count(self._filtered(params, grouping))

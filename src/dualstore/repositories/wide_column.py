"""Wide-column repository backed by a DynamoDB table.

The store only answers equality lookups, so pagination and ordering are
emulated: every matching item is fetched, sorted client-side and sliced.
Relations and grouping do not exist here and are rejected up front.

Known limitation: ``paginate`` reads the full filtered result set before
slicing, so its cost grows with the number of matches rather than the
page size.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..capabilities import WIDE_COLUMN, WIDE_COLUMN_STRICT, Capabilities
from ..config import Settings
from ..db.wide_column import ItemQuery, WideColumnTable
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

Item = Dict[str, Any]


def sort_items(items: Iterable[Item], order_by: Sequence[Tuple[str, SortDirection]]) -> List[Item]:
    """Stable multi-key sort of items.

    Keys are applied from last to first so the first key dominates. Items
    without a value for a key go after the ones that have it, whatever the
    direction.
    """
    ordered = list(items)
    for field, direction in reversed(order_by):
        present = [item for item in ordered if item.get(field) is not None]
        missing = [item for item in ordered if item.get(field) is None]
        present.sort(key=lambda item: item[field], reverse=direction is SortDirection.DESC)
        ordered = present + missing
    return ordered


class WideColumnRepository(Repository[Item]):
    """
    Repository for the items of one DynamoDB table.

    Ordering is allowed on the sort keys of the table and its indexes.

    Usage:
        events = WideColumnRepository(WideColumnTable(events_schema))
        page = events.paginate({"user_id": "u-1"}, order_by={"created_at": "desc"}, page=2)
    """

    capabilities: Capabilities = WIDE_COLUMN

    def __init__(
        self,
        table: WideColumnTable,
        settings: Optional[Settings] = None,
        capabilities: Optional[Capabilities] = None,
    ) -> None:
        super().__init__(settings=settings, capabilities=capabilities)
        self.table = table
        caps = self.capabilities
        if caps.ordering and caps.sortable_keys is not None:
            self.capabilities = caps.with_sortable_keys(caps.sortable_keys | table.schema.sort_keys())

    @property
    def model_name(self) -> str:
        return self.table.schema.table_name

    def query(self) -> ItemQuery:
        return self.table.query()

    def _gate(
        self,
        with_relations: GroupByInput,
        order_by: OrderByInput,
        group_by: GroupByInput,
    ) -> List[Tuple[str, SortDirection]]:
        ordering = normalize_order_by(order_by)
        self.capabilities.check_read(
            normalize_relations(with_relations),
            ordering,
            normalize_group_by(group_by),
        )
        return ordering

    def _fetch(self, params: ParamsInput, ordering: Sequence[Tuple[str, SortDirection]]) -> List[Item]:
        items = self.query().where_all(normalize_params(params)).all()
        if ordering:
            items = sort_items(items, ordering)
        return items

    def paginate(
        self,
        params: ParamsInput = None,
        with_relations: GroupByInput = (),
        items_per_page: Optional[int] = None,
        order_by: OrderByInput = None,
        group_by: GroupByInput = (),
        page: int = 1,
    ) -> Page[Item]:
        ordering = self._gate(with_relations, order_by, group_by)
        request = self.page_request(page, items_per_page)

        items = self._fetch(params, ordering)
        window = items[request.offset:request.offset + request.limit]

        logger.debug(
            f"Paginated {self.model_name}: page {request.page}, {len(window)} of {len(items)} items"
        )
        return Page.from_request(window, len(items), request)

    def find_one(
        self,
        params: ParamsInput,
        with_relations: GroupByInput = (),
        order_by: OrderByInput = None,
    ) -> Optional[Item]:
        ordering = self._gate(with_relations, order_by, ())
        if ordering:
            items = self._fetch(params, ordering)
            return items[0] if items else None
        return self.query().where_all(normalize_params(params)).first()

    def find_all(
        self,
        params: ParamsInput = None,
        with_relations: GroupByInput = (),
        order_by: OrderByInput = None,
        group_by: GroupByInput = (),
        limit: Optional[int] = None,
    ) -> List[Item]:
        ordering = self._gate(with_relations, order_by, group_by)
        if ordering:
            items = self._fetch(params, ordering)
            return items if limit is None else items[:limit]
        query = self.query().where_all(normalize_params(params))
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def count_by_params(self, params: ParamsInput = None, group_by: GroupByInput = ()) -> int:
        self.capabilities.require_grouping(normalize_group_by(group_by))
        return self.query().where_all(normalize_params(params)).count()


class StrictWideColumnRepository(WideColumnRepository):
    """Wide-column repository that rejects every ordering request."""

    capabilities: Capabilities = WIDE_COLUMN_STRICT

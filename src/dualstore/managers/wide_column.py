"""Wide-column model manager backed by a DynamoDB table.

Records are plain item dicts. Writes go through ``WideColumnTable``; bulk
creates and deletes use the table's batch writer.
"""

import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..capabilities import WIDE_COLUMN, Capabilities
from ..config import Settings
from ..db.wide_column import WideColumnTable
from ..exceptions import MassUpdateNotAvailableError
from ..query import ParamsInput, normalize_params
from .base import ModelManager, UniqueBy

logger = logging.getLogger(__name__)

Item = Dict[str, Any]


class WideColumnModelManager(ModelManager[Item]):
    """
    Model manager for the items of one DynamoDB table.

    Usage:
        users = WideColumnModelManager(WideColumnTable(users_schema))
        user = users.create({"email": "a@example.com"})  # id generated
        users.update(user, {"name": "Ada"})
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
        self.schema = table.schema

    @property
    def model_name(self) -> str:
        return self.schema.table_name

    def new_instance(self, **fields: Any) -> Item:
        return dict(fields)

    def _prepare(self, data: Mapping[str, Any]) -> Item:
        item = dict(data)
        if item.get(self.schema.partition_key) is None:
            item[self.schema.partition_key] = str(uuid.uuid4())
        if self.schema.sort_key and item.get(self.schema.sort_key) is None:
            raise ValueError(
                f"{self.model_name} records need a value for sort key '{self.schema.sort_key}'"
            )
        return item

    def _matching(self, params: ParamsInput) -> List[Item]:
        return self.table.query().where_all(normalize_params(params)).all()

    def create(self, data: Mapping[str, Any]) -> Item:
        item = self.table.put(self._prepare(data))
        logger.debug(f"Created {self.model_name} item")
        return item

    def update(self, record: Item, data: Mapping[str, Any]) -> bool:
        """Set ``data`` on a stored item and on ``record`` itself.

        Returns False, and leaves ``record`` as it was, when the item is gone.

        Raises:
            ValueError: If ``data`` changes a primary key attribute
        """
        if not data:
            return False
        for name in self.schema.key_attributes:
            if name in data and data[name] != record.get(name):
                raise ValueError(f"Cannot change key attribute '{name}' of a {self.model_name} item")
        fields = {name: value for name, value in data.items() if name not in self.schema.key_attributes}
        if not fields:
            return False
        if not self.table.update(self.schema.key_of(record), fields):
            logger.debug(f"{self.model_name} item to update no longer exists")
            return False
        record.update(fields)
        return True

    def delete(self, record: Item) -> bool:
        return self.table.delete(self.schema.key_of(record))

    def delete_by_params(self, params: ParamsInput) -> bool:
        items = self._matching(params)
        if not items:
            return False
        self.table.batch_delete(items)
        return True

    def bulk_delete_by_params(self, params: ParamsInput) -> int:
        items = self._matching(params)
        if not items:
            return 0
        deleted = self.table.batch_delete(items)
        logger.info(f"Deleted {deleted} {self.model_name} items")
        return deleted

    def update_by_params(self, values: Mapping[str, Any], params: ParamsInput) -> int:
        if not values:
            return 0
        return sum(1 for item in self._matching(params) if self.update(item, values))

    def find_by_params(self, params: ParamsInput) -> Optional[Item]:
        return self.table.query().where_all(normalize_params(params)).first()

    def bulk_create(self, records: Sequence[Mapping[str, Any]]) -> int:
        if not records:
            return 0
        written = self.table.batch_put([self._prepare(record) for record in records])
        logger.info(f"Bulk created {written} {self.model_name} items")
        return written

    def insert_or_ignore(self, records: Sequence[Mapping[str, Any]]) -> int:
        """Create items that do not exist yet.

        Items carrying their full primary key are written with a conditional
        put. Other items count as existing when a stored item matches all of
        their attributes.
        """
        inserted = 0
        for record in records:
            data = dict(record)
            if self.schema.has_full_key(data):
                if self.table.put_if_absent(data):
                    inserted += 1
                else:
                    logger.debug(f"Ignoring {self.model_name} item with existing key")
                continue
            if self.find_by_params(data) is None:
                self.create(data)
                inserted += 1
        if records:
            logger.info(f"Inserted {inserted} of {len(records)} {self.model_name} items, ignoring duplicates")
        return inserted

    def _update_by_key(self, key_field: str, key: Any, fields: Dict[str, Any]) -> int:
        if key_field == self.schema.partition_key and not self.schema.sort_key:
            item = self.table.get({key_field: key})
        else:
            item = self.find_by_params({key_field: key})
        if item is None:
            return 0
        return 1 if self.update(item, fields) else 0

    def _mass_update(self, values: List[Any], unique_by: UniqueBy) -> int:
        """Not available, even when declared: DynamoDB has no multi-item update statement."""
        raise MassUpdateNotAvailableError(self.capabilities.backend, self.model_name)

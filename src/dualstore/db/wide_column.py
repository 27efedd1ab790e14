"""Wide-column store client (DynamoDB).

Thin adapter over a boto3 DynamoDB ``Table`` resource. It knows the table's
key schema and secondary indexes so that equality lookups can be served by a
Query when a partition key is among the conditions, and by a filtered Scan
otherwise. DynamoDB-Specific Considerations:

    - Only equality conditions are supported here
    - Results come in pages linked by LastEvaluatedKey; all pages are followed
    - Numbers are returned as Decimal; floats are written as Decimal
    - Ordering exists only on sort keys of the table or an index
"""

import functools
import logging
import operator
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from ..config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexSchema:
    """A global or local secondary index."""

    name: str
    partition_key: str
    sort_key: Optional[str] = None


@dataclass(frozen=True)
class TableSchema:
    """Key schema of a table and its secondary indexes.

    Attributes:
        table_name: DynamoDB table name
        partition_key: Hash key attribute
        sort_key: Optional range key attribute
        indexes: Secondary indexes usable for equality lookups
        attribute_types: DynamoDB scalar types (S, N, B) of key attributes;
            unlisted key attributes are strings
    """

    table_name: str
    partition_key: str = "id"
    sort_key: Optional[str] = None
    indexes: Tuple[IndexSchema, ...] = ()
    attribute_types: Mapping[str, str] = field(default_factory=dict)

    @property
    def key_attributes(self) -> Tuple[str, ...]:
        if self.sort_key:
            return (self.partition_key, self.sort_key)
        return (self.partition_key,)

    def sort_keys(self) -> frozenset:
        """Every attribute DynamoDB can order by for this table."""
        keys = {index.sort_key for index in self.indexes if index.sort_key}
        if self.sort_key:
            keys.add(self.sort_key)
        return frozenset(keys)

    def has_full_key(self, item: Mapping[str, Any]) -> bool:
        return all(item.get(name) is not None for name in self.key_attributes)

    def key_of(self, item: Mapping[str, Any]) -> Dict[str, Any]:
        """Extract the primary key of ``item``."""
        missing = [name for name in self.key_attributes if item.get(name) is None]
        if missing:
            raise ValueError(
                f"Item for table {self.table_name} is missing key attribute(s): {', '.join(missing)}"
            )
        return {name: item[name] for name in self.key_attributes}

    def plan(self, conditions: Mapping[str, Any]) -> Tuple[Optional[str], Dict[str, Any]]:
        """Choose the table or an index whose keys the conditions pin down.

        Returns:
            Tuple of (index name or None for the table, key conditions). Empty
            key conditions mean the lookup needs a Scan.
        """
        if self.partition_key in conditions:
            keys = {self.partition_key: conditions[self.partition_key]}
            if self.sort_key and self.sort_key in conditions:
                keys[self.sort_key] = conditions[self.sort_key]
            return None, keys
        # Indexes are sparse: items lacking the index sort key are not in it
        for index in self.indexes:
            if index.partition_key not in conditions:
                continue
            if index.sort_key and index.sort_key not in conditions:
                continue
            keys = {name: conditions[name] for name in (index.partition_key, index.sort_key) if name}
            return index.name, keys
        return None, {}


def to_dynamo(value: Any) -> Any:
    """Convert Python values to types boto3 accepts (floats become Decimal)."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {key: to_dynamo(inner) for key, inner in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_dynamo(inner) for inner in value]
    if isinstance(value, set):
        return {to_dynamo(inner) for inner in value}
    return value


def _all_equal(conditions: Mapping[str, Any], factory) -> Any:
    return functools.reduce(
        operator.and_,
        [factory(name).eq(to_dynamo(value)) for name, value in conditions.items()],
    )


class ItemQuery:
    """Equality query over one table, resolved to Query or Scan on execution.

    Usage:
        items = table.query().where("email", "a@example.com").all()
        count = table.query().where("status", "active").count()
    """

    def __init__(self, table: "WideColumnTable") -> None:
        self._table = table
        self._conditions: Dict[str, Any] = {}
        self._limit: Optional[int] = None

    @property
    def conditions(self) -> Dict[str, Any]:
        return dict(self._conditions)

    def where(self, name: str, value: Any) -> "ItemQuery":
        self._conditions[name] = value
        return self

    def where_all(self, params: Mapping[str, Any]) -> "ItemQuery":
        for name, value in params.items():
            self.where(name, value)
        return self

    def limit(self, count: int) -> "ItemQuery":
        self._limit = count
        return self

    def _request(self) -> Tuple[str, Dict[str, Any]]:
        schema = self._table.schema
        index_name, key_conditions = schema.plan(self._conditions)
        remaining = {
            name: value for name, value in self._conditions.items() if name not in key_conditions
        }
        kwargs: Dict[str, Any] = {}
        if remaining:
            kwargs["FilterExpression"] = _all_equal(remaining, Attr)
        if key_conditions:
            kwargs["KeyConditionExpression"] = _all_equal(key_conditions, Key)
            if index_name:
                kwargs["IndexName"] = index_name
            logger.debug(f"Query on {schema.table_name} via {index_name or 'primary key'}")
            return "query", kwargs
        logger.debug(f"Scan on {schema.table_name} with {len(remaining)} filter(s)")
        return "scan", kwargs

    def _pages(self, **extra: Any) -> Iterator[Dict[str, Any]]:
        operation, kwargs = self._request()
        kwargs.update(extra)
        call = getattr(self._table.table, operation)
        while True:
            response = call(**kwargs)
            yield response
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key

    def iter(self) -> Iterator[Dict[str, Any]]:
        returned = 0
        for response in self._pages():
            for item in response.get("Items", []):
                if self._limit is not None and returned >= self._limit:
                    return
                returned += 1
                yield item

    def all(self) -> List[Dict[str, Any]]:
        """Fetch every matching item."""
        return list(self.iter())

    def first(self) -> Optional[Dict[str, Any]]:
        return next(self.iter(), None)

    def count(self) -> int:
        return sum(response.get("Count", 0) for response in self._pages(Select="COUNT"))


class WideColumnTable:
    """boto3 DynamoDB table bound to a ``TableSchema``.

    Usage:
        users = WideColumnTable(TableSchema("users", indexes=(IndexSchema("email-index", "email"),)))
        users.put({"id": "u-1", "email": "a@example.com"})
        item = users.query().where("email", "a@example.com").first()
    """

    def __init__(
        self,
        schema: TableSchema,
        table: Any = None,
        resource: Any = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.schema = schema
        self._table = table
        self._resource = resource
        self._settings = settings

    @property
    def table(self) -> Any:
        """Lazy-initialize the boto3 Table resource."""
        if self._table is None:
            if self._resource is None:
                settings = self._settings or get_settings()
                self._resource = boto3.resource(
                    "dynamodb",
                    region_name=settings.dynamodb_region,
                    endpoint_url=settings.dynamodb_endpoint_url,
                )
            self._table = self._resource.Table(self.schema.table_name)
        return self._table

    def query(self) -> ItemQuery:
        return ItemQuery(self)

    def get(self, key: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        response = self.table.get_item(Key=to_dynamo(dict(key)))
        return response.get("Item")

    def put(self, item: Mapping[str, Any]) -> Dict[str, Any]:
        item = to_dynamo(dict(item))
        self.table.put_item(Item=item)
        return item

    def put_if_absent(self, item: Mapping[str, Any]) -> bool:
        """Write ``item`` unless its primary key is taken.

        Returns:
            True if written, False if an item with the same key exists
        """
        try:
            self.table.put_item(
                Item=to_dynamo(dict(item)),
                ConditionExpression=Attr(self.schema.partition_key).not_exists(),
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                return False
            raise
        return True

    def update(self, key: Mapping[str, Any], fields: Mapping[str, Any]) -> bool:
        """Set ``fields`` on the stored item identified by ``key``.

        Returns:
            False if there is nothing to write or no item has that key
        """
        if not fields:
            return False
        names = {}
        values = {}
        assignments = []
        for position, (name, value) in enumerate(fields.items()):
            names[f"#field{position}"] = name
            values[f":value{position}"] = to_dynamo(value)
            assignments.append(f"#field{position} = :value{position}")
        try:
            self.table.update_item(
                Key=to_dynamo(dict(key)),
                UpdateExpression="SET " + ", ".join(assignments),
                ConditionExpression=Attr(self.schema.partition_key).exists(),
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                return False
            raise
        return True

    def delete(self, key: Mapping[str, Any]) -> bool:
        """Delete by key; returns whether an item existed."""
        response = self.table.delete_item(Key=to_dynamo(dict(key)), ReturnValues="ALL_OLD")
        return bool(response.get("Attributes"))

    def batch_put(self, items: Iterable[Mapping[str, Any]]) -> int:
        written = 0
        with self.table.batch_writer() as batch:
            for item in items:
                batch.put_item(Item=to_dynamo(dict(item)))
                written += 1
        return written

    def batch_delete(self, items: Iterable[Mapping[str, Any]]) -> int:
        deleted = 0
        with self.table.batch_writer() as batch:
            for item in items:
                batch.delete_item(Key=to_dynamo(self.schema.key_of(item)))
                deleted += 1
        return deleted

    def create(self, resource: Any = None) -> Any:
        """Create the table with on-demand billing; used for provisioning and tests."""
        resource = resource or self._resource
        if resource is None:
            settings = self._settings or get_settings()
            resource = boto3.resource(
                "dynamodb",
                region_name=settings.dynamodb_region,
                endpoint_url=settings.dynamodb_endpoint_url,
            )
        schema = self.schema
        key_schema = [{"AttributeName": schema.partition_key, "KeyType": "HASH"}]
        if schema.sort_key:
            key_schema.append({"AttributeName": schema.sort_key, "KeyType": "RANGE"})

        attributes = set(schema.key_attributes)
        indexes = []
        for index in schema.indexes:
            index_keys = [{"AttributeName": index.partition_key, "KeyType": "HASH"}]
            attributes.add(index.partition_key)
            if index.sort_key:
                index_keys.append({"AttributeName": index.sort_key, "KeyType": "RANGE"})
                attributes.add(index.sort_key)
            indexes.append({
                "IndexName": index.name,
                "KeySchema": index_keys,
                "Projection": {"ProjectionType": "ALL"},
            })

        kwargs: Dict[str, Any] = {
            "TableName": schema.table_name,
            "KeySchema": key_schema,
            "AttributeDefinitions": [
                {"AttributeName": name, "AttributeType": schema.attribute_types.get(name, "S")}
                for name in sorted(attributes)
            ],
            "BillingMode": "PAY_PER_REQUEST",
        }
        if indexes:
            kwargs["GlobalSecondaryIndexes"] = indexes

        table = resource.create_table(**kwargs)
        table.wait_until_exists()
        self._resource = resource
        self._table = table
        logger.info(f"Created table {schema.table_name}")
        return table

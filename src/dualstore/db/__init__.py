"""Store clients for the relational and wide-column backends."""

from .relational import SqlDatabase, create_db_engine
from .wide_column import IndexSchema, ItemQuery, TableSchema, WideColumnTable, to_dynamo

__all__ = [
    "SqlDatabase",
    "create_db_engine",
    "IndexSchema",
    "ItemQuery",
    "TableSchema",
    "WideColumnTable",
    "to_dynamo",
]

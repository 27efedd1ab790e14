"""Relational model manager backed by SQLAlchemy.

Every operation runs in its own session and commits on success. Bulk
updates open one session per record, so earlier records stay written if a
later one fails.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Type, TypeVar

from sqlalchemy import and_, case, delete, insert, inspect, or_, select, update
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.exc import IntegrityError

from ..capabilities import RELATIONAL, Capabilities
from ..config import Settings
from ..db.relational import SqlDatabase
from ..query import ParamsInput, normalize_params
from .base import ModelManager, UniqueBy

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


class RelationalModelManager(ModelManager[ModelT]):
    """
    Model manager for one mapped SQLAlchemy model.

    Mass updates are only allowed when the capabilities declare them:

        class UserManager(RelationalModelManager[User]):
            model = User
            capabilities = RELATIONAL.enable(mass_update=True)
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

    @property
    def table(self) -> Any:
        return self.model.__table__

    def new_instance(self, **fields: Any) -> ModelT:
        return self.model(**fields)

    def create(self, data: Mapping[str, Any]) -> ModelT:
        record = self.model(**dict(data))
        with self.database.session() as session:
            session.add(record)
            session.flush()
            session.refresh(record)
        logger.debug(f"Created {self.model_name}")
        return record

    def _identity_clause(self, record: ModelT) -> Optional[Any]:
        mapper = inspect(self.model)
        identity = mapper.primary_key_from_instance(record)
        if any(value is None for value in identity):
            return None
        return and_(*[column == value for column, value in zip(mapper.primary_key, identity)])

    def update(self, record: ModelT, data: Mapping[str, Any]) -> bool:
        """Write ``data`` to the stored row of ``record``, then onto ``record``.

        Returns:
            False if there is nothing to write or the row no longer exists
        """
        if not data:
            return False
        clause = self._identity_clause(record)
        if clause is None:
            return False
        statement = (
            update(self.model)
            .where(clause)
            .values(**dict(data))
            .execution_options(synchronize_session=False)
        )
        with self.database.session() as session:
            matched = session.execute(statement).rowcount
        if not matched:
            logger.debug(f"{self.model_name} row to update no longer exists")
            return False
        for name, value in data.items():
            setattr(record, name, value)
        return True

    def delete(self, record: ModelT) -> bool:
        identity = inspect(self.model).primary_key_from_instance(record)
        if any(value is None for value in identity):
            return False
        with self.database.session() as session:
            stored = session.get(self.model, tuple(identity))
            if stored is None:
                return False
            session.delete(stored)
        return True

    def delete_by_params(self, params: ParamsInput) -> bool:
        return self.bulk_delete_by_params(params) > 0

    def bulk_delete_by_params(self, params: ParamsInput) -> int:
        statement = (
            delete(self.model)
            .filter_by(**normalize_params(params))
            .execution_options(synchronize_session=False)
        )
        with self.database.session() as session:
            deleted = session.execute(statement).rowcount
        logger.info(f"Deleted {deleted} {self.model_name} records")
        return deleted

    def update_by_params(self, values: Mapping[str, Any], params: ParamsInput) -> int:
        if not values:
            return 0
        statement = (
            update(self.model)
            .filter_by(**normalize_params(params))
            .values(**dict(values))
            .execution_options(synchronize_session=False)
        )
        with self.database.session() as session:
            return session.execute(statement).rowcount

    def find_by_params(self, params: ParamsInput) -> Optional[ModelT]:
        with self.database.session() as session:
            statement = select(self.model).filter_by(**normalize_params(params)).limit(1)
            return session.scalars(statement).first()

    def bulk_create(self, records: Sequence[Mapping[str, Any]]) -> int:
        if not records:
            return 0
        rows = [dict(record) for record in records]
        with self.database.session() as session:
            session.execute(insert(self.model), rows)
        logger.info(f"Bulk created {len(rows)} {self.model_name} records")
        return len(rows)

    def insert_or_ignore(self, records: Sequence[Mapping[str, Any]]) -> int:
        if not records:
            return 0
        rows = [dict(record) for record in records]
        dialect = self.database.dialect

        if dialect == "sqlite":
            statement = sqlite.insert(self.table).values(rows).on_conflict_do_nothing()
        elif dialect == "postgresql":
            statement = postgresql.insert(self.table).values(rows).on_conflict_do_nothing()
        elif dialect in ("mysql", "mariadb"):
            statement = mysql.insert(self.table).values(rows).prefix_with("IGNORE")
        else:
            return self._insert_each_or_ignore(rows)

        with self.database.session() as session:
            inserted = session.execute(statement).rowcount
        logger.info(f"Inserted {inserted} of {len(rows)} {self.model_name} records, ignoring conflicts")
        return inserted

    def _insert_each_or_ignore(self, rows: List[Dict[str, Any]]) -> int:
        inserted = 0
        with self.database.session() as session:
            for row in rows:
                try:
                    with session.begin_nested():
                        session.execute(insert(self.table).values(**row))
                except IntegrityError:
                    logger.warning(f"Ignoring conflicting {self.model_name} record")
                    continue
                inserted += 1
        return inserted

    def _update_by_key(self, key_field: str, key: Any, fields: Dict[str, Any]) -> int:
        statement = (
            update(self.model)
            .filter_by(**{key_field: key})
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        with self.database.session() as session:
            return session.execute(statement).rowcount

    def _as_row(self, value: Any) -> Dict[str, Any]:
        if isinstance(value, Mapping):
            return dict(value)
        mapper = inspect(self.model)
        return {attr.key: getattr(value, attr.key) for attr in mapper.column_attrs}

    def _mass_update(self, values: List[Any], unique_by: UniqueBy) -> int:
        if unique_by is None:
            keys = [column.key for column in inspect(self.model).primary_key]
        elif isinstance(unique_by, str):
            keys = [unique_by]
        else:
            keys = list(unique_by)

        rows = [self._as_row(value) for value in values]
        for row in rows:
            missing = [key for key in keys if key not in row]
            if missing:
                raise ValueError(
                    f"Mass update record for {self.model_name} is missing {', '.join(missing)}"
                )

        columns: List[str] = []
        for row in rows:
            for name in row:
                if name not in keys and name not in columns:
                    columns.append(name)
        if not columns:
            return 0

        table = self.table

        def matches(row: Dict[str, Any]) -> Any:
            return and_(*[table.c[key] == row[key] for key in keys])

        assignments = {
            name: case(
                *[(matches(row), row[name]) for row in rows if name in row],
                else_=table.c[name],
            )
            for name in columns
        }
        statement = update(table).where(or_(*[matches(row) for row in rows])).values(assignments)

        with self.database.session() as session:
            updated = session.execute(statement).rowcount
        logger.info(f"Mass updated {updated} {self.model_name} records on {', '.join(columns)}")
        return updated

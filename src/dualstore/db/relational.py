"""Relational store client.

Wraps a SQLAlchemy engine and session factory. Repositories and model
managers open one short-lived session per operation through ``session()``;
sessions do not expire instances on commit, so records stay readable after
the session closes.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import Settings, get_settings

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create and configure a database engine."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        # In-memory databases live in a single connection
        if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(database_url, echo=echo)


class SqlDatabase:
    """Engine plus session factory for one relational database.

    Usage:
        db = SqlDatabase("sqlite:///app.db")
        db.create_all(Base)

        with db.session() as session:
            session.add(user)
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        engine: Optional[Engine] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or get_settings()
        if engine is None:
            engine = create_db_engine(
                database_url or settings.database_url,
                echo=settings.database_echo,
            )
        self.engine = engine
        self._session_factory = sessionmaker(
            bind=engine,
            autoflush=False,
            expire_on_commit=False,
        )

    @property
    def dialect(self) -> str:
        """Dialect name of the engine (sqlite, postgresql, mysql, ...)."""
        return self.engine.dialect.name

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Session scope: commit on success, roll back on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_all(self, base: type[DeclarativeBase]) -> None:
        """Create all tables declared on ``base``."""
        base.metadata.create_all(bind=self.engine)

    def drop_all(self, base: type[DeclarativeBase]) -> None:
        """Drop all tables declared on ``base``."""
        base.metadata.drop_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

"""Pytest configuration and fixtures."""

from typing import List, Optional

import boto3
import pytest
from moto import mock_aws
from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from dualstore.cache import CacheManager, MemoryCacheStore
from dualstore.config import Settings
from dualstore.db import IndexSchema, SqlDatabase, TableSchema, WideColumnTable
from dualstore.managers import RelationalModelManager, WideColumnModelManager
from dualstore.repositories import RelationalRepository, WideColumnRepository


# ============================================================================
# Relational models
# ============================================================================

class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True)
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    role: Mapped[str] = mapped_column(String(20), default="member")
    age: Mapped[Optional[int]] = mapped_column(nullable=True)

    posts: Mapped[List["Post"]] = relationship(back_populates="author")


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    title: Mapped[str] = mapped_column(String(200))

    author: Mapped[User] = relationship(back_populates="posts")
    comments: Mapped[List["Comment"]] = relationship(back_populates="post")


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(primary_key=True)
    post_id: Mapped[int] = mapped_column(ForeignKey("posts.id"))
    body: Mapped[str] = mapped_column(String(500))

    post: Mapped[Post] = relationship(back_populates="comments")


class UserRepository(RelationalRepository[User]):
    model = User


class UserManager(RelationalModelManager[User]):
    model = User


# ============================================================================
# Settings and cache
# ============================================================================

@pytest.fixture
def settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        default_items_per_page=15,
        repository_cache_enabled=True,
        repository_cache_ttl=60,
        repository_cache_prefix="test_repo",
        database_url="sqlite:///:memory:",
    )


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store(clock):
    return MemoryCacheStore(clock=clock)


@pytest.fixture
def cache_manager(memory_store):
    return CacheManager({"memory": memory_store}, default="memory")


# ============================================================================
# Relational backend
# ============================================================================

@pytest.fixture
def database(settings):
    """In-memory SQLite database with all test tables."""
    db = SqlDatabase("sqlite:///:memory:", settings=settings)
    db.create_all(Base)
    yield db
    db.drop_all(Base)
    db.dispose()


@pytest.fixture
def user_repository(database, settings):
    return UserRepository(database, settings=settings)


@pytest.fixture
def user_manager(database, settings):
    return UserManager(database, settings=settings)


@pytest.fixture
def sample_users(user_manager):
    """Five users with mixed roles and ages."""
    rows = [
        {"email": "ada@example.com", "name": "Ada", "role": "admin", "age": 36},
        {"email": "bob@example.com", "name": "Bob", "role": "member", "age": 25},
        {"email": "cy@example.com", "name": "Cy", "role": "member", "age": 41},
        {"email": "di@example.com", "name": "Di", "role": "member", "age": None},
        {"email": "ed@example.com", "name": "Ed", "role": "admin", "age": 29},
    ]
    return [user_manager.create(row) for row in rows]


# ============================================================================
# Wide-column backend
# ============================================================================

USERS_SCHEMA = TableSchema(
    table_name="users",
    partition_key="id",
    indexes=(IndexSchema("email-index", "email"),),
)

EVENTS_SCHEMA = TableSchema(
    table_name="events",
    partition_key="user_id",
    sort_key="created_at",
    indexes=(IndexSchema("kind-index", "kind", "score"),),
    attribute_types={"score": "N"},
)


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake credentials so boto3 never reaches real AWS."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def dynamodb(aws_credentials):
    with mock_aws():
        yield boto3.resource("dynamodb", region_name="us-east-1")


@pytest.fixture
def users_table(dynamodb, settings):
    table = WideColumnTable(USERS_SCHEMA, resource=dynamodb, settings=settings)
    table.create()
    return table


@pytest.fixture
def events_table(dynamodb, settings):
    table = WideColumnTable(EVENTS_SCHEMA, resource=dynamodb, settings=settings)
    table.create()
    return table


@pytest.fixture
def item_repository(users_table, settings):
    return WideColumnRepository(users_table, settings=settings)


@pytest.fixture
def item_manager(users_table, settings):
    return WideColumnModelManager(users_table, settings=settings)


@pytest.fixture
def event_repository(events_table, settings):
    return WideColumnRepository(events_table, settings=settings)


@pytest.fixture
def event_manager(events_table, settings):
    return WideColumnModelManager(events_table, settings=settings)

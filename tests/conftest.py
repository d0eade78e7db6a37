"""Shared fixtures.

Each test gets its own SQLite file. Tables and seed rows are written
with a plain synchronous engine; the application and async tests talk
to the same file through aiosqlite.
"""

from collections.abc import Callable, Generator
from dataclasses import dataclass
from functools import partial
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from app.catalog.models import Category, Product
from app.infrastructure.blob_store import LocalBlobStore, get_blob_store
from app.infrastructure.database import Base, get_session
from app.infrastructure.models import UserModel
from app.infrastructure.security import create_access_token, hash_password
from app.main import app

PASSWORD = "secret123"
PASSWORD_HASH = hash_password(PASSWORD)


@dataclass
class SeededUser:
    """User row created for a test, with a ready-made token."""

    id: str
    email: str
    username: str

    @property
    def headers(self) -> dict[str, str]:
        """Authorization headers for this user."""
        return {"Authorization": f"Bearer {create_access_token(self.id, self.email)}"}


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def database_path(tmp_path: Path) -> Path:
    """Create a fresh database file with every table."""
    path = tmp_path / "inventory.db"
    engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(engine)
    engine.dispose()
    return path


@pytest.fixture
def sync_engine(database_path: Path) -> Generator[Engine, None, None]:
    """Synchronous engine for seeding and inspecting rows."""
    engine = create_engine(f"sqlite:///{database_path}")
    event.listen(engine, "connect", _enable_foreign_keys)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(database_path: Path) -> async_sessionmaker[AsyncSession]:
    """Async session factory bound to the test database."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{database_path}",
        poolclass=NullPool,
    )
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# ============================================================================
# Seed Data Fixtures
# ============================================================================


def create_user(engine: Engine, username: str) -> SeededUser:
    """Insert a user row."""
    email = f"{username}@example.com"
    with Session(engine) as session:
        user = UserModel(email=email, username=username, password_hash=PASSWORD_HASH)
        session.add(user)
        session.commit()
        return SeededUser(id=user.id, email=email, username=username)


def create_category(engine: Engine, name: str, description: str | None = None) -> str:
    """Insert a category row and return its id."""
    with Session(engine) as session:
        category = Category(name=name, description=description)
        session.add(category)
        session.commit()
        return category.id


def create_product(
    engine: Engine,
    owner_id: str,
    category_id: str,
    name: str,
    price: str | Decimal = "10.00",
    **fields: Any,
) -> str:
    """Insert a product row and return its id.

    Extra keyword arguments are set on the row as given, for example
    ``description``, ``stock``, ``image_url`` or ``created_at``.
    """
    fields.setdefault("stock", 1)
    with Session(engine) as session:
        product = Product(
            name=name,
            price=Decimal(price),
            category_id=category_id,
            owner_id=owner_id,
            **fields,
        )
        session.add(product)
        session.commit()
        return product.id


def load_product(engine: Engine, product_id: str) -> Product | None:
    """Read a product row as currently stored."""
    with Session(engine, expire_on_commit=False) as session:
        return session.get(Product, product_id)


@pytest.fixture
def make_user(sync_engine: Engine) -> Callable[[str], SeededUser]:
    """Factory inserting users into the test database."""
    return partial(create_user, sync_engine)


@pytest.fixture
def make_category(sync_engine: Engine) -> Callable[..., str]:
    """Factory inserting categories into the test database."""
    return partial(create_category, sync_engine)


@pytest.fixture
def make_product(sync_engine: Engine) -> Callable[..., str]:
    """Factory inserting products into the test database."""
    return partial(create_product, sync_engine)


@pytest.fixture
def fetch_product(sync_engine: Engine) -> Callable[[str], Product | None]:
    """Read products back from the test database."""
    return partial(load_product, sync_engine)


@pytest.fixture
def alice(sync_engine: Engine) -> SeededUser:
    """First test user."""
    return create_user(sync_engine, "alice")


@pytest.fixture
def bob(sync_engine: Engine) -> SeededUser:
    """Second test user."""
    return create_user(sync_engine, "bob")


@pytest.fixture
def electronics_id(sync_engine: Engine) -> str:
    """ID of an "Electronics" category."""
    return create_category(sync_engine, "Electronics", "Electronic devices and gadgets")


@pytest.fixture
def books_id(sync_engine: Engine) -> str:
    """ID of a "Books" category."""
    return create_category(sync_engine, "Books")


# ============================================================================
# Storage and Client Fixtures
# ============================================================================


@pytest.fixture
def blob_store(tmp_path: Path) -> LocalBlobStore:
    """Local blob store writing under the test directory."""
    return LocalBlobStore(tmp_path / "uploads", "http://testserver")


@pytest.fixture
def client(
    session_factory: async_sessionmaker[AsyncSession],
    blob_store: LocalBlobStore,
) -> Generator[TestClient, None, None]:
    """Test client wired to the test database and blob store."""

    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    yield TestClient(app)
    app.dependency_overrides.clear()

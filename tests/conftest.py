"""Pytest fixtures for school finance tests."""

from __future__ import annotations

from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.pool import StaticPool

from school_finance.database import create_schema, make_engine, make_session_factory
from school_finance.models import Book, User

# In-memory SQLite, one fresh database per test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create test database engine with the schema in place."""
    engine = make_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    await create_schema(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    session_factory = make_session_factory(engine)

    async with session_factory() as session:
        yield session
        await session.rollback()


def make_user(
    first_name: str,
    last_name: str,
    role: str = "teacher",
    status: str = "active",
) -> User:
    return User(
        id=uuid4(),
        first_name=first_name,
        last_name=last_name,
        email=f"{first_name.lower()}.{last_name.lower()}@school.test",
        role=role,
        status=status,
    )


@pytest.fixture
async def admin_user(session: AsyncSession) -> User:
    """Create the acting administrator."""
    user = make_user("Aung", "Admin", role="admin")
    session.add(user)
    await session.flush()
    return user


@pytest.fixture
async def teachers(session: AsyncSession) -> list[User]:
    """Three active teachers, plus an inactive teacher and a staff member."""
    active = [
        make_user("Mya", "Thein"),
        make_user("Kyaw", "Aye"),
        make_user("Su", "Lwin"),
    ]
    session.add_all(active)
    session.add(make_user("Retired", "Teacher", status="inactive"))
    session.add(make_user("Office", "Staff", role="staff"))
    await session.flush()
    return active


@pytest.fixture
async def costed_book(session: AsyncSession) -> Book:
    """A book with a known cost price."""
    book = Book(
        id=uuid4(),
        title="Myanmar Grammar I",
        sku="MG-1",
        sale_price=Decimal("1500"),
        cost_price=Decimal("1000"),
        is_active=True,
    )
    session.add(book)
    await session.flush()
    return book


@pytest.fixture
async def uncosted_book(session: AsyncSession) -> Book:
    """A book whose cost price was never entered."""
    book = Book(
        id=uuid4(),
        title="English Workbook",
        sku="EW-1",
        sale_price=Decimal("2000"),
        cost_price=None,
        is_active=True,
    )
    session.add(book)
    await session.flush()
    return book

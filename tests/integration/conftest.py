"""Integration test fixtures: the FastAPI app over a fresh SQLite database."""

from collections.abc import AsyncGenerator
from decimal import Decimal
from types import SimpleNamespace
from uuid import UUID

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from school_finance.api.app import create_app
from school_finance.api.dependencies import get_db_session
from school_finance.database import make_session_factory
from school_finance.models import Book, User

ADMIN_ID = UUID("00000000-0000-4000-8000-000000000001")
TEACHER_IDS = [
    UUID("00000000-0000-4000-8000-000000000101"),
    UUID("00000000-0000-4000-8000-000000000102"),
    UUID("00000000-0000-4000-8000-000000000103"),
]
COSTED_BOOK_ID = UUID("00000000-0000-4000-8000-000000000201")
UNCOSTED_BOOK_ID = UUID("00000000-0000-4000-8000-000000000202")


@pytest_asyncio.fixture
async def seed(engine: AsyncEngine) -> SimpleNamespace:
    """Commit the users and books every API test relies on."""
    factory = make_session_factory(engine)
    async with factory() as session:
        session.add(
            User(
                id=ADMIN_ID,
                first_name="Aung",
                last_name="Admin",
                email="admin@school.test",
                role="admin",
                status="active",
            )
        )
        for teacher_id, last_name in zip(TEACHER_IDS, ["Thein", "Aye", "Lwin"]):
            session.add(
                User(
                    id=teacher_id,
                    first_name="Teacher",
                    last_name=last_name,
                    email=f"{last_name.lower()}@school.test",
                    role="teacher",
                    status="active",
                )
            )
        session.add_all(
            [
                Book(
                    id=COSTED_BOOK_ID,
                    title="Myanmar Grammar I",
                    sale_price=Decimal("1500"),
                    cost_price=Decimal("1000"),
                ),
                Book(
                    id=UNCOSTED_BOOK_ID,
                    title="English Workbook",
                    sale_price=Decimal("2000"),
                    cost_price=None,
                ),
            ]
        )
        await session.commit()

    return SimpleNamespace(
        admin_id=ADMIN_ID,
        teacher_ids=TEACHER_IDS,
        costed_book_id=COSTED_BOOK_ID,
        uncosted_book_id=UNCOSTED_BOOK_ID,
    )


@pytest_asyncio.fixture
async def client(engine: AsyncEngine, seed: SimpleNamespace) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing, acting as the administrator."""
    factory = make_session_factory(engine)

    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            yield session

    app = create_app()
    app.dependency_overrides[get_db_session] = override_db_session

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"X-User-ID": str(seed.admin_id)},
    ) as client:
        yield client


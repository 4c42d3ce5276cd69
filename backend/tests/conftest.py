"""Shared fixtures: a fresh SQLite database per test and an API client bound to it."""
import os
from datetime import datetime, timedelta, timezone

# Keep the module-level engine off PostgreSQL while the package imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from library_api.api.deps import get_clock
from library_api.database import build_engine, get_db, init_db
from library_api.main import app
from library_api.models import BookCategory
from library_api.schemas import BookCreate, BorrowerCreate
from library_api.services import BookService, BorrowerService

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


class FixedClock:
    """A clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: float = 0, **kwargs) -> datetime:
        self.now = self.now + timedelta(days=days, **kwargs)
        return self.now


def isbn_for(n: int) -> str:
    return f"97801323508{n:02d}"


def book_payload(n: int = 1, total_copies: int = 3, **overrides) -> dict:
    payload = {
        "title": f"Clean Code Volume {n}",
        "author": "Robert Martin",
        "isbn": isbn_for(n),
        "totalCopies": total_copies,
        "category": "Technology",
    }
    payload.update(overrides)
    return payload


def user_payload(n: int = 1, **overrides) -> dict:
    payload = {
        "name": "jane doe",
        "email": f"Jane{n}@University.edu",
        "studentId": f"s{1000 + n}",
        "phone": f"+1555000{n:04d}",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite so that several sessions can share it."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'library.db'}")
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
async def client(session_factory, clock):
    """API client using the per-test database and the fixed clock."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def add_book(db: AsyncSession, n: int = 1, total_copies: int = 3):
    return await BookService(db).create_book(
        BookCreate(
            title=f"Clean Code Volume {n}",
            author="Robert Martin",
            isbn=isbn_for(n),
            total_copies=total_copies,
            category=BookCategory.TECHNOLOGY,
        )
    )


async def add_borrower(db: AsyncSession, n: int = 1):
    return await BorrowerService(db).create_borrower(
        BorrowerCreate(
            name="jane doe",
            email=f"jane{n}@university.edu",
            student_id=f"s{1000 + n}",
            phone=f"+1555000{n:04d}",
        )
    )

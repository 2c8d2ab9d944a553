"""
MakerBench Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.
Who:   Used by all test files in the tests/ directory.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── db_engine: In-memory SQLite engine with all tables created
    ├── db_session: AsyncSession bound to db_engine
    ├── seeded_bookmarks: Small approved/pending/rejected catalogue
    ├── api_app: FastAPI app whose get_db_session uses db_engine
    ├── test_client: HTTPX AsyncClient for API endpoint testing
    ├── mock_db_session: Mock database session (no real DB needed)
    └── png_bytes: Minimal bytes passing the PNG signature check
"""

import os
import tempfile

# Override settings for testing BEFORE any makerbench imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="makerbench_test_")
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["BROWSERLESS_API_KEY"] = ""
os.environ["RATE_LIMIT_REQUESTS"] = "10000"

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Sequence
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from makerbench.database import Base, get_db_session
from makerbench.models.bookmark import Bookmark, BookmarkStatus, BookmarkTag
from makerbench.services.tag_service import tag_service

ADMIN_TOKEN = "test-admin-token"
BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


async def create_bookmark(
    session: AsyncSession,
    url: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    status: BookmarkStatus = BookmarkStatus.APPROVED,
    created_at: Optional[datetime] = None,
    tags: Sequence[str] = (),
) -> Bookmark:
    """Inserts one bookmark (and its tags) and flushes."""
    bookmark = Bookmark(
        url=url,
        title=title,
        description=description,
        status=status.value,
        created_at=created_at or BASE_TIME,
    )
    session.add(bookmark)
    await session.flush()

    if tags:
        for tag in await tag_service.get_or_create_tags(session, tags):
            session.add(BookmarkTag(bookmark_id=bookmark.id, tag_id=tag.id))
        await session.flush()
    return bookmark


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    """
    Provides a fresh in-memory database per test.

    StaticPool keeps the single SQLite connection alive so every session
    sees the same tables and rows.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded_bookmarks(db_session) -> Dict[str, Bookmark]:
    """
    Catalogue used by search, tag and API tests.

    Approved, newest first:
        coolors     "Color palette generator"             [color, design]
        figma       "... design tool with color styles"  [design]
        regex101    "Test regular expressions"            [dev-tools]
        excalidraw  "Virtual whiteboard ..."              [design, whiteboard]
        untagged    "100% free tools_for makers"          []
    Not public:
        pending     (pending)   [design]
        rejected    (rejected)  [color]
    """
    day = timedelta(days=1)
    bookmarks = {
        "coolors": await create_bookmark(
            db_session,
            url="https://coolors.co/",
            title="Coolors",
            description="Color palette generator",
            created_at=BASE_TIME + 5 * day,
            tags=["design", "color"],
        ),
        "figma": await create_bookmark(
            db_session,
            url="https://www.figma.com/",
            title="Figma",
            description="Collaborative interface design tool with color styles",
            created_at=BASE_TIME + 4 * day,
            tags=["design"],
        ),
        "regex101": await create_bookmark(
            db_session,
            url="https://regex101.com/",
            title="Regex101",
            description="Test regular expressions",
            created_at=BASE_TIME + 3 * day,
            tags=["dev-tools"],
        ),
        "excalidraw": await create_bookmark(
            db_session,
            url="https://excalidraw.com/",
            title="Excalidraw",
            description="Virtual whiteboard for sketching diagrams",
            created_at=BASE_TIME + 2 * day,
            tags=["design", "whiteboard"],
        ),
        "untagged": await create_bookmark(
            db_session,
            url="https://example.com/untagged",
            title="Untagged",
            description="100% free tools_for makers",
            created_at=BASE_TIME + 1 * day,
        ),
        "pending": await create_bookmark(
            db_session,
            url="https://pending.example.com/",
            title="Pending color picker",
            status=BookmarkStatus.PENDING,
            created_at=BASE_TIME + 6 * day,
            tags=["design"],
        ),
        "rejected": await create_bookmark(
            db_session,
            url="https://rejected.example.com/",
            title="Rejected colors",
            status=BookmarkStatus.REJECTED,
            created_at=BASE_TIME + 7 * day,
            tags=["color"],
        ),
    }
    await db_session.commit()
    return bookmarks


# ══════════════════════════════════════════════════════════════════════════
# API Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def api_app(db_engine):
    """
    Fresh application instance wired to the test database.

    A new app per test also gives the rate limiter an empty request log.
    """
    from makerbench.main import create_app

    app = create_app()
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db_session():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_client(api_app):
    """
    Provides an async HTTP test client for endpoint testing.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=api_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def admin_headers():
    return {"X-Admin-Token": ADMIN_TOKEN}


# ══════════════════════════════════════════════════════════════════════════
# Unit Test Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    What:    A MagicMock that simulates AsyncSession behavior.
    Why:     Failure paths are easier to force without a real database.

    Usage:
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        mock_db_session.execute.return_value = result
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def png_bytes():
    """PNG signature followed by a few bytes; enough for storage validation."""
    return b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + b"\x00" * 16

"""
Pytest fixtures for AccentVote backend tests.
"""

import os
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

# Set test environment variables before importing app
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test-accentvote.db")
# httpx only replays Secure cookies over https
os.environ.setdefault("COOKIE_SECURE", "false")


# Catalog used across tests:
#   subject 10 (箸)  offers nakadaka as option 101 and odaka as option 102
#   subject 20 (橋)  offers atamadaka as option 201 and heiban as option 202
#   subject 30 (雨)  closed, offers atamadaka as option 301
SUBJECT_S = 10
SUBJECT_T = 20
SUBJECT_CLOSED = 30
SUBJECT_POLL = 40


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[Any, None]:
    """File-backed SQLite engine, so separate sessions really are separate connections."""
    import models  # noqa: F401
    from db.base import Base
    from db.session import build_engine

    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'votes.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: Any) -> Any:
    from db.session import build_session_factory

    return build_session_factory(engine)


@pytest.fixture
async def db_session(session_factory: Any) -> AsyncGenerator[Any, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def catalog(session_factory: Any) -> dict[str, int]:
    """Seed the semantic keys and the test subjects."""
    from models.subject import SemanticKey, Subject, SubjectOption

    async with session_factory() as session:
        session.add_all(
            [
                SemanticKey(id=1, code="atamadaka", label="頭高型"),
                SemanticKey(id=2, code="heiban", label="平板型"),
                SemanticKey(id=3, code="nakadaka", label="中高型"),
                SemanticKey(id=4, code="odaka", label="尾高型"),
            ]
        )
        await session.flush()

        session.add_all(
            [
                Subject(id=SUBJECT_S, label="箸"),
                Subject(id=SUBJECT_T, label="橋"),
                Subject(
                    id=SUBJECT_CLOSED,
                    label="雨",
                    ends_at=datetime.now(timezone.utc) - timedelta(days=1),
                ),
            ]
        )
        await session.flush()

        session.add_all(
            [
                SubjectOption(id=101, subject_id=SUBJECT_S, semantic_key_id=3, label="A", display_order=0),
                SubjectOption(id=102, subject_id=SUBJECT_S, semantic_key_id=4, label="B", display_order=1),
                SubjectOption(id=201, subject_id=SUBJECT_T, semantic_key_id=1, label="A", display_order=0),
                SubjectOption(id=202, subject_id=SUBJECT_T, semantic_key_id=2, label="B", display_order=1),
                SubjectOption(id=301, subject_id=SUBJECT_CLOSED, semantic_key_id=1, label="A", display_order=0),
            ]
        )
        await session.commit()

    return {"S": SUBJECT_S, "T": SUBJECT_T, "closed": SUBJECT_CLOSED}


@pytest.fixture
async def poll_catalog(catalog: dict[str, int], session_factory: Any) -> dict[str, int]:
    """Add an opinion poll whose answers are its own semantic keys."""
    from models.subject import SemanticKey, Subject, SubjectKind, SubjectOption

    async with session_factory() as session:
        session.add_all(
            [
                SemanticKey(id=5, code="yes", label="はい"),
                SemanticKey(id=6, code="no", label="いいえ"),
                Subject(id=SUBJECT_POLL, label="方言は好きですか", kind=SubjectKind.POLL.value),
            ]
        )
        await session.flush()

        session.add_all(
            [
                SubjectOption(id=401, subject_id=SUBJECT_POLL, semantic_key_id=5, label="はい", display_order=0),
                SubjectOption(id=402, subject_id=SUBJECT_POLL, semantic_key_id=6, label="いいえ", display_order=1),
            ]
        )
        await session.commit()

    return dict(catalog, poll=SUBJECT_POLL)


@pytest.fixture
def cookie_guard() -> Any:
    """CookieGuard with a fixed test key."""
    from core.cookie_guard import CookieGuard

    return CookieGuard([b"k" * 32], max_age_seconds=30 * 24 * 3600)


@pytest.fixture
async def app(session_factory: Any, cookie_guard: Any) -> AsyncGenerator[Any, None]:
    """FastAPI application wired to the test database."""
    from core.cookie_guard import get_cookie_guard
    from db.session import get_db
    from main import app as fastapi_app

    async def override_get_db() -> AsyncGenerator[Any, None]:
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_cookie_guard] = lambda: cookie_guard

    yield fastapi_app

    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app: Any) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def mock_db_session() -> AsyncMock:
    """Create mock database session."""
    session = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    return session


@pytest.fixture
def fingerprint() -> dict[str, str]:
    return {
        "user_agent": "Mozilla/5.0 (iPhone; CPU iPhone OS 17_4 like Mac OS X)",
        "screen_resolution": "390x844",
        "timezone": "Asia/Tokyo",
        "language": "ja-JP",
        "platform": "iPhone",
    }

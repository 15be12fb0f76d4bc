"""
Shared fixtures for Otro7a Manager integration tests.

Uses a throwaway SQLite database (aiosqlite) unless TEST_DATABASE_URL points
somewhere else. Each test function gets its own session; the schema is
created before the test and dropped after it, so every test starts clean.
Outgoing invitation emails never leave the process: they land in the
``outbox`` fixture.
"""
from __future__ import annotations

import json
import os
import shutil
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

# Override settings *before* any app module is imported, so that
# settings.DATABASE_URL and the global engine point at the test DB.
TEST_DATABASE_URL = os.environ.get(
    "TEST_DATABASE_URL",
    "sqlite+aiosqlite:///./test_otro7a.db",
)
TEST_UPLOAD_DIR = os.path.abspath("./test_uploads")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["UPLOAD_DIR"] = TEST_UPLOAD_DIR
os.environ["ADMIN_EMAILS"] = "platform-admin@example.com"

from app.database import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.database_models import ThesisInvitation  # noqa: E402
from app.services.email_service import EmailService, get_email_service  # noqa: E402


class Outbox(list):
    """Messages posted to the email provider. Set ``status_code`` >= 400 to make it fail."""

    status_code = 200


# ---------------------------------------------------------------------------
# Per-test fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a DB session for each test. After the test, all tables are dropped
    so each test starts with a clean slate.
    """
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def outbox() -> Outbox:
    return Outbox()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, outbox: Outbox) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient wired to the FastAPI app with the DB dependency
    overridden to use the per-test session and email going to ``outbox``.
    """

    async def _override_get_db():
        yield db_session

    def _email_handler(request: httpx.Request) -> httpx.Response:
        if outbox.status_code >= 400:
            return httpx.Response(outbox.status_code, json={"message": "provider error"})
        outbox.append(json.loads(request.content))
        return httpx.Response(200, json={"id": f"email-{len(outbox)}"})

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_email_service] = lambda: EmailService(
        transport=httpx.MockTransport(_email_handler)
    )

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def upload_dir():
    """Fresh figure upload directory, removed afterwards."""
    os.makedirs(TEST_UPLOAD_DIR, exist_ok=True)
    yield TEST_UPLOAD_DIR
    shutil.rmtree(TEST_UPLOAD_DIR, ignore_errors=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

AUTH_HEADERS = {
    "X-User-Id": "test-user-1",
    "X-User-Email": "test1@example.com",
    "X-User-Name": "Test User 1",
}

AUTH_HEADERS_USER2 = {
    "X-User-Id": "test-user-2",
    "X-User-Email": "test2@example.com",
    "X-User-Name": "Test User 2",
}

AUTH_HEADERS_USER3 = {
    "X-User-Id": "test-user-3",
    "X-User-Email": "test3@example.com",
    "X-User-Name": "Test User 3",
}

ADMIN_HEADERS = {
    "X-User-Id": "platform-admin",
    "X-User-Email": "platform-admin@example.com",
    "X-User-Name": "Platform Admin",
}


async def create_thesis(client: AsyncClient, headers: dict = AUTH_HEADERS, **fields) -> dict:
    """POST a thesis and return its JSON body."""
    payload = {"title": "Deep Learning for Arabic OCR", "language": "en", **fields}
    resp = await client.post("/api/theses", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def invitation_token(db: AsyncSession, invitation_id: int) -> str:
    result = await db.execute(select(ThesisInvitation.token).where(ThesisInvitation.id == invitation_id))
    return result.scalar_one()


async def add_collaborator(
    client: AsyncClient,
    db: AsyncSession,
    thesis_id: str,
    role: str,
    invitee_headers: dict,
    owner_headers: dict = AUTH_HEADERS,
) -> dict:
    """Invite the user behind *invitee_headers* with *role* and accept on their behalf."""
    resp = await client.post(
        f"/api/theses/{thesis_id}/invitations",
        json={"email": invitee_headers["X-User-Email"], "role": role},
        headers=owner_headers,
    )
    assert resp.status_code == 201, resp.text
    token = await invitation_token(db, resp.json()["id"])

    resp = await client.post(f"/api/invitations/{token}/accept", headers=invitee_headers)
    assert resp.status_code == 200, resp.text
    return resp.json()

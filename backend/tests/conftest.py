"""
Cook Journal Backend — Test Configuration (conftest.py)
=========================================================

What:  Shared pytest fixtures for the whole suite.
How:   Environment overrides are applied BEFORE any cookjournal import so the
       settings singleton, the engine and the password context pick them up.

Fixture Hierarchy:
    Function-scoped:
    ├── db_schema: drops and recreates every table on a temp SQLite file
    ├── db_session: an AsyncSession for service-level tests
    ├── upload_dir: a fresh directory that settings.upload_dir points at
    ├── make_client: builds AsyncClients (own cookie jar each) on one app
    ├── client: the first of those clients
    └── jpeg_bytes / sample_image: Pillow-generated pictures
"""

import io
import os
import tempfile
from typing import AsyncGenerator, Callable, List

# ── Environment Setup (must precede cookjournal imports) ──────────────────
_TEST_DIR = tempfile.mkdtemp(prefix="cookjournal_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TEST_DIR, 'test.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_TEST_DIR, "uploads")
os.environ["PASSWORD_HASH_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["AUTH_RATE_LIMIT_REQUESTS"] = "10000"
os.environ["WRITE_RATE_LIMIT_REQUESTS"] = "10000"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image

from cookjournal.config import settings
from cookjournal.database import Base, async_session_factory, engine
from cookjournal.main import create_app
from cookjournal import models  # noqa: F401


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_schema() -> AsyncGenerator[None, None]:
    """
    Fresh schema per test.

    The engine is disposed afterwards: pooled aiosqlite connections must not
    outlive the event loop of the test that opened them.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_schema):
    async with async_session_factory() as session:
        yield session
        await session.rollback()


# ══════════════════════════════════════════════════════════════════════════
# Uploads
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    target = tmp_path / "uploads"
    target.mkdir()
    monkeypatch.setattr(settings, "upload_dir", str(target))
    return target


def make_image(
    width: int = 1200,
    height: int = 600,
    color=(200, 40, 40),
    fmt: str = "JPEG",
    exif_orientation=None,
) -> bytes:
    image = Image.new("RGB", (width, height), color)
    out = io.BytesIO()
    if exif_orientation is not None:
        exif = Image.Exif()
        exif[0x0112] = exif_orientation  # Orientation tag
        image.save(out, format=fmt, exif=exif.tobytes())
    else:
        image.save(out, format=fmt)
    return out.getvalue()


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image()


# ══════════════════════════════════════════════════════════════════════════
# HTTP Clients
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def make_client(db_schema, upload_dir) -> AsyncGenerator[Callable[[], AsyncClient], None]:
    """
    Factory for clients that share one app instance but not cookies, so a
    test can act as two different users.
    """
    app = create_app()
    clients: List[AsyncClient] = []

    def _make() -> AsyncClient:
        c = AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver")
        clients.append(c)
        return c

    yield _make

    for c in clients:
        await c.aclose()


@pytest_asyncio.fixture
async def client(make_client) -> AsyncClient:
    return make_client()


# ══════════════════════════════════════════════════════════════════════════
# Helpers
# ══════════════════════════════════════════════════════════════════════════

async def register(client: AsyncClient, email: str, password: str = "secret123", name=None):
    payload = {"email": email, "password": password}
    if name is not None:
        payload["name"] = name
    response = await client.post("/api/auth/register", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["user"]


async def create_recipe(client: AsyncClient, **fields):
    payload = {"title": "Soup", **fields}
    response = await client.post("/api/recipes", json=payload)
    assert response.status_code == 201, response.text
    return response.json()

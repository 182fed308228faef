"""Shared test fixtures.

Each test gets its own SQLite database file, created from the ORM metadata,
and an RSA key pair generated once per session for JWT signing. Redis and
the background jobs are disabled.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from heroes.auth.jwt import reset_keys
from heroes.children.service import create_child
from heroes.config import get_settings
from heroes.database import close_db, create_all, get_session_factory, init_db
from heroes.habits.service import create_habit
from heroes.rewards.seed import seed_shop
from tests.factories import NOW, Family, make_parent


@pytest.fixture(scope="session", autouse=True)
def jwt_keys(tmp_path_factory: pytest.TempPathFactory) -> tuple[str, str]:
    """Generate an RSA key pair for the whole session."""
    key_dir = tmp_path_factory.mktemp("keys")
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_path = key_dir / "jwt_private.pem"
    public_path = key_dir / "jwt_public.pem"
    private_path.write_bytes(
        private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    public_path.write_bytes(
        private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )
    os.environ["HH_JWT_PRIVATE_KEY_PATH"] = str(private_path)
    os.environ["HH_JWT_PUBLIC_KEY_PATH"] = str(public_path)
    get_settings.cache_clear()
    reset_keys()
    return str(private_path), str(public_path)


@pytest_asyncio.fixture
async def database(tmp_path, monkeypatch: pytest.MonkeyPatch) -> AsyncGenerator[str, None]:
    """Fresh SQLite database per test, with the shop catalogue seeded."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'heroes.db'}"
    monkeypatch.setenv("HH_DATABASE_URL", url)
    monkeypatch.setenv("HH_REDIS_ENABLED", "false")
    monkeypatch.setenv("HH_ENABLE_BACKGROUND_JOBS", "false")
    monkeypatch.setenv("HH_LOG_FORMAT", "console")
    get_settings.cache_clear()

    await init_db(url)
    await create_all()
    async with get_session_factory()() as db:
        await seed_shop(db)
    yield url
    await close_db()
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def db_session(database: str) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for service-level tests."""
    async with get_session_factory()() as session:
        yield session


@pytest_asyncio.fixture
async def client(database: str) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over the ASGI app. The database fixture stands in for the lifespan."""
    from heroes.main import create_app

    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def family(db_session: AsyncSession) -> Family:
    """One parent, one child (Emma) and a daily 'Brush Teeth' habit worth 10 XP."""
    parent = await make_parent(db_session)
    child, pin = await create_child(db_session, parent, "Emma", now=NOW)
    habit = await create_habit(db_session, child.id, {"name": "Brush Teeth", "xp_reward": 10}, now=NOW)
    await db_session.commit()
    return Family(parent=parent, child=child, pin=pin, habit=habit)

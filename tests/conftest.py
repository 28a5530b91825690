"""
Pytest configuration and fixtures for crmvault tests.
"""
import os
from collections.abc import AsyncGenerator

# Settings are read lazily; these must exist before the first get_settings()
os.environ.setdefault("CIPHER_KEY", "test-cipher-key-0123456789abcdef")
os.environ.setdefault("INDEX_KEY", "test-index-key-0123456789abcdef")

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from crmvault.config import get_encryption_context, get_settings
from crmvault.infrastructure.database.models import Client, Role, User
from crmvault.infrastructure.database.models.base import Base
from crmvault.shared.crypto import EncryptionContext, EnvelopeCipher, generate_keys


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(autouse=True)
def clear_cached_settings():
    """Every test starts from a fresh settings/encryption-context cache."""
    get_settings.cache_clear()
    get_encryption_context.cache_clear()
    yield
    get_settings.cache_clear()
    get_encryption_context.cache_clear()


@pytest.fixture
def encryption_context() -> EncryptionContext:
    """A fresh random key pair."""
    return EncryptionContext.from_keys(*generate_keys())


@pytest.fixture
def cipher(encryption_context: EncryptionContext) -> EnvelopeCipher:
    return EnvelopeCipher(encryption_context)


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with the full schema."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself so SAVEPOINT nests correctly
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def async_session(async_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create async test database session."""
    session_factory = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session


@pytest.fixture
def make_role(async_session: AsyncSession):
    """Factory for persisted roles."""

    async def _make(name: str, *, is_global: bool = False, is_superuser: bool = False) -> Role:
        role = Role(name=name, is_global=is_global, is_superuser=is_superuser)
        async_session.add(role)
        await async_session.flush()
        return role

    return _make


@pytest.fixture
def make_user(async_session: AsyncSession, cipher: EnvelopeCipher):
    """Factory for persisted users (not indexed)."""

    async def _make(email: str, role: Role | None = None) -> User:
        user = User(
            email_encrypted=cipher.encrypt(email),
            password_hash="not-a-real-hash",
            role_id=role.id if role is not None else None,
            is_approved=True,
        )
        async_session.add(user)
        await async_session.flush()
        return user

    return _make


@pytest.fixture
def make_client(async_session: AsyncSession, cipher: EnvelopeCipher):
    """Factory for persisted clients (not indexed)."""

    async def _make(name: str = "Acme", package: str = "gold") -> Client:
        client = Client(
            package_encrypted=cipher.encrypt(package),
            client_name_encrypted=cipher.encrypt(name),
            person_name_encrypted=cipher.encrypt("Jane Doe"),
            address_encrypted=cipher.encrypt("1 Main St"),
            phone_encrypted=cipher.encrypt("+1 555 0100"),
            email_encrypted=cipher.encrypt("jane@acme.test"),
            domains_encrypted=cipher.encrypt("[]"),
        )
        async_session.add(client)
        await async_session.flush()
        return client

    return _make

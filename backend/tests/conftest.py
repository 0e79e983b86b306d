"""Pytest configuration and shared fixtures for DentalDesk backend tests.

This module provides common fixtures for testing the backend components
including database sessions, the attachment store, and an API app wired
with dependency overrides.
"""

from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.api.v1.endpoints.auth import get_current_active_user
from app.api.v1.router import api_router
from app.core.security import TokenData
from app.models.attachment import StorageMode
from app.models.base import Base, get_db
from app.services.attachments import AttachmentStore, AttachmentStoreConfig

TEST_MAX_FILE_SIZE = 64 * 1024

USERS = {
    "admin": TokenData(user_id="user_admin", username="admin", roles=["admin"]),
    "dentist": TokenData(user_id="user_dentist", username="dentist", roles=["dentist"]),
    "receptionist": TokenData(
        user_id="user_reception", username="reception", roles=["receptionist"]
    ),
}


@pytest.fixture
def tmp_storage_dir(tmp_path: Path) -> Path:
    """Temporary attachment storage directory (not created yet)."""
    return tmp_path / "uploads"


@pytest.fixture
async def session_maker(tmp_path: Path) -> AsyncGenerator[async_sessionmaker, None]:
    """Session factory bound to a fresh on-disk SQLite database."""
    db_file = tmp_path / "dentaldesk.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_file}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    await engine.dispose()


@pytest.fixture
async def db_session(session_maker: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture
async def attachment_store(tmp_storage_dir: Path) -> AttachmentStore:
    """Reference-mode attachment store writing under ``tmp_storage_dir``."""
    store = AttachmentStore(
        AttachmentStoreConfig(
            storage_mode=StorageMode.REFERENCE,
            max_file_size=TEST_MAX_FILE_SIZE,
            storage_dir=tmp_storage_dir,
            serve_static=True,
        )
    )
    await store.initialize()
    return store


@pytest.fixture
async def inline_store(tmp_storage_dir: Path) -> AttachmentStore:
    """Inline-mode attachment store; ``tmp_storage_dir`` is never touched."""
    store = AttachmentStore(
        AttachmentStoreConfig(
            storage_mode=StorageMode.INLINE,
            max_file_size=TEST_MAX_FILE_SIZE,
            storage_dir=tmp_storage_dir,
        )
    )
    await store.initialize()
    return store


@pytest.fixture
def api_app(session_maker: async_sessionmaker, attachment_store: AttachmentStore) -> FastAPI:
    """API app acting as an admin unless switched with the ``act_as`` fixture."""
    app = FastAPI()
    app.include_router(api_router, prefix="/api/v1")
    app.state.attachment_store = attachment_store
    app.state.test_user = USERS["admin"]

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def override_user() -> TokenData:
        return app.state.test_user

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_active_user] = override_user
    return app


@pytest.fixture
def act_as(api_app: FastAPI) -> Callable[[str], None]:
    """Switch the user returned by the auth override to the given role."""

    def _act(role: str) -> None:
        api_app.state.test_user = USERS[role]

    return _act


@pytest.fixture
async def client(api_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=api_app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def sample_patient_data() -> dict[str, Any]:
    """Sample patient payload for creation requests."""
    return {
        "name": "Jane Doe",
        "email": "jane@x.com",
        "phone": "555-0100",
    }


@pytest.fixture
def sample_user_data() -> dict[str, str]:
    """Sample user data for authentication tests."""
    return {
        "username": "testuser",
        "email": "test@example.com",
        "password": "TestPassword123!",
        "full_name": "Test User",
    }

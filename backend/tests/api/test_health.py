"""Tests for the operational endpoints of the main application."""

import pytest
from httpx import ASGITransport, AsyncClient

from app.main import app


@pytest.mark.asyncio
async def test_health() -> None:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_ready_reports_missing_attachment_storage(session_maker) -> None:
    app.state.db_session_maker = session_maker
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/ready")
    finally:
        del app.state.db_session_maker

    assert response.status_code == 503
    assert response.json()["checks"] == {"database": True, "attachment_storage": False}


@pytest.mark.asyncio
async def test_ready_with_storage(session_maker, attachment_store) -> None:
    app.state.db_session_maker = session_maker
    app.state.attachment_store = attachment_store
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/ready")
    finally:
        del app.state.db_session_maker
        del app.state.attachment_store

    assert response.status_code == 200
    assert response.json()["ready"] is True

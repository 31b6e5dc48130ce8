"""Tests for the health check endpoint."""
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from models.setting import Setting


async def test_health_endpoint_returns_200(client: AsyncClient) -> None:
    """Test that the health endpoint returns 200 OK."""
    response = await client.get("/health")
    assert response.status_code == 200


async def test_health_endpoint_returns_healthy_status(client: AsyncClient) -> None:
    """Test that the health endpoint returns healthy status."""
    response = await client.get("/health")
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "healthy"
    assert data["workflow"] == "healthy"


async def test_health_endpoint_reports_misconfigured_workflow(
    client: AsyncClient,
    db_session: AsyncSession,
) -> None:
    """A malformed stored default workflow degrades the health status."""
    db_session.add(Setting(key="workflow.default", value={"name": "Broken"}))
    await db_session.flush()

    response = await client.get("/health")
    data = response.json()
    assert response.status_code == 200
    assert data["status"] == "degraded"
    assert data["database"] == "healthy"
    assert data["workflow"] == "misconfigured"

"""Health check endpoints."""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import get_async_session
from services.exceptions import ConfigurationError
from services.workflow_config_service import workflow_config_service


logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: str
    workflow: str


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: AsyncSession = Depends(get_async_session),
) -> HealthResponse:
    """Check database connectivity and that the default workflow resolves."""
    db_status = "healthy"
    workflow_status = "unknown"
    try:
        await db.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Database health check failed")
        db_status = "unhealthy"

    if db_status == "healthy":
        try:
            await workflow_config_service.resolve(db, "post")
            workflow_status = "healthy"
        except ConfigurationError:
            logger.exception("Default workflow configuration is invalid")
            workflow_status = "misconfigured"

    healthy = db_status == "healthy" and workflow_status == "healthy"
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        database=db_status,
        workflow=workflow_status,
    )

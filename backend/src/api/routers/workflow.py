"""Workflow configuration endpoints."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_user
from models.user import User
from models.versionable import VersionableType
from schemas.workflow import WorkflowConfigResponse
from services.workflow_config_service import workflow_config_service

router = APIRouter(prefix="/workflow", tags=["workflow"])


@router.get("/config", response_model=WorkflowConfigResponse)
async def get_workflow_config(
    versionable_type: VersionableType = Query(default=VersionableType.POST),
    post_type: str | None = Query(default=None, max_length=50),
    _current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> WorkflowConfigResponse:
    """Get the workflow that applies to a content type (and optional post type)."""
    config = await workflow_config_service.resolve(db, versionable_type, post_type)
    return WorkflowConfigResponse(
        versionable_type=versionable_type,
        post_type=post_type,
        workflow=config,
    )

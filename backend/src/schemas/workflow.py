"""Pydantic schemas for workflow configuration endpoints."""
from pydantic import BaseModel

from models.versionable import VersionableType
from services.workflow_config_service import TransitionRule, WorkflowConfig


class WorkflowConfigResponse(BaseModel):
    """The workflow resolved for a content type."""

    versionable_type: VersionableType
    post_type: str | None
    workflow: WorkflowConfig


class AvailableTransitionsResponse(BaseModel):
    """Transitions the current user may take from a version's status."""

    version_id: int
    workflow_status: str
    transitions: list[TransitionRule]

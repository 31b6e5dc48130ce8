"""Pydantic schemas for content version endpoints."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from models.versionable import VersionableType


class TransitionResponse(BaseModel):
    """Schema for a single workflow transition record."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    from_status: str | None  # None for the record written at version creation
    to_status: str
    performed_by: int | None
    comment: str | None
    label: str
    created_at: datetime


class VersionResponse(BaseModel):
    """Schema for a content version."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    versionable_type: VersionableType
    versionable_id: int
    version_number: int
    workflow_status: str
    is_active: bool
    content_snapshot: dict[str, Any]
    created_by: int | None
    version_note: str | None
    created_at: datetime
    updated_at: datetime


class VersionDetailResponse(VersionResponse):
    """Schema for a content version with its transition history."""

    transitions: list[TransitionResponse]


class VersionHistoryResponse(BaseModel):
    """Schema for an owner's version history (newest first)."""

    versionable_type: VersionableType
    versionable_id: int
    draft_version_id: int | None
    active_version_id: int | None
    items: list[VersionDetailResponse]


class OwnerStateResponse(BaseModel):
    """Version bookkeeping of a post or page after an operation."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    draft_version_id: int | None
    active_version_id: int | None
    workflow_status: str
    status: str
    published_at: datetime | None


class VersionOperationResponse(BaseModel):
    """Schema returned by operations that change a version and its owner."""

    version: VersionResponse
    owner: OwnerStateResponse


class VersionCreate(BaseModel):
    """Request body for creating a version. Omit the snapshot to capture the live content."""

    content_snapshot: dict[str, Any] | None = None
    version_note: str | None = Field(default=None, max_length=1000)


class DraftUpdate(BaseModel):
    """Request body for replacing the draft version's content."""

    content_snapshot: dict[str, Any]


class TransitionRequest(BaseModel):
    """Request body for a workflow transition."""

    to_status: str = Field(min_length=1, max_length=50)
    comment: str | None = Field(default=None, max_length=2000)


class MakeLiveRequest(BaseModel):
    """Request body for switching the live version."""

    comment: str | None = Field(default=None, max_length=2000)


class ScheduleRequest(BaseModel):
    """Request body for scheduling a post's draft for publishing."""

    scheduled_at: datetime


class FieldDiff(BaseModel):
    """One differing snapshot key."""

    old: Any = None
    new: Any = None


class VersionCompareResponse(BaseModel):
    """Schema for the differences between two versions' snapshots."""

    version_a: int
    version_b: int
    differences: dict[str, FieldDiff]

"""Content version endpoints: history, drafts, workflow transitions and publishing."""
from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_actor
from core.request_context import Actor
from models.content_version import ContentVersion
from models.post import Post
from models.versionable import OwnerKey, Versionable, VersionableType
from schemas.version import (
    DraftUpdate,
    FieldDiff,
    MakeLiveRequest,
    OwnerStateResponse,
    ScheduleRequest,
    TransitionRequest,
    VersionCompareResponse,
    VersionCreate,
    VersionDetailResponse,
    VersionHistoryResponse,
    VersionOperationResponse,
    VersionResponse,
)
from schemas.workflow import AvailableTransitionsResponse
from services.exceptions import OwnerNotFoundError
from services.version_service import version_service
from services.version_store import version_store
from services.workflow_service import workflow_service

router = APIRouter(prefix="/versions", tags=["versions"])


async def _get_owner(
    db: AsyncSession,
    versionable_type: VersionableType,
    owner_id: int,
) -> Versionable:
    """Load a post or page, treating soft-deleted content as missing."""
    owner = await version_store.get_owner(db, OwnerKey(versionable_type, owner_id))
    if owner.deleted_at is not None:
        raise OwnerNotFoundError(versionable_type.value, owner_id)
    return owner


async def _operation_response(
    db: AsyncSession,
    version: ContentVersion,
) -> VersionOperationResponse:
    owner = await version_store.get_owner(db, version.owner_key)
    return VersionOperationResponse(
        version=VersionResponse.model_validate(version),
        owner=OwnerStateResponse.model_validate(owner),
    )


# Literal routes first so "/compare" is not captured by "/{version_id}"
@router.get("/compare", response_model=VersionCompareResponse)
async def compare_versions(
    a: int = Query(..., description="Older version id"),
    b: int = Query(..., description="Newer version id"),
    _actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_async_session),
) -> VersionCompareResponse:
    """Compare the content snapshots of two versions."""
    version_a = await version_store.get(db, a)
    version_b = await version_store.get(db, b)
    differences = workflow_service.compare_versions(version_a, version_b)
    return VersionCompareResponse(
        version_a=version_a.id,
        version_b=version_b.id,
        differences={key: FieldDiff(**diff) for key, diff in differences.items()},
    )


@router.get("/{version_id}", response_model=VersionDetailResponse)
async def get_version(
    version_id: int = Path(...),
    _actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_async_session),
) -> VersionDetailResponse:
    """Get a single version with its transition records."""
    version = await version_store.get_with_transitions(db, version_id)
    return VersionDetailResponse.model_validate(version)


@router.get(
    "/{version_id}/transitions/available",
    response_model=AvailableTransitionsResponse,
)
async def get_available_transitions(
    version_id: int = Path(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_async_session),
) -> AvailableTransitionsResponse:
    """List the transitions the current user may take from this version's status."""
    version = await version_store.get(db, version_id)
    transitions = await workflow_service.available_transitions(db, version, actor)
    return AvailableTransitionsResponse(
        version_id=version.id,
        workflow_status=version.workflow_status,
        transitions=transitions,
    )


@router.post("/{version_id}/transition", response_model=VersionOperationResponse)
async def transition_version(
    data: TransitionRequest,
    version_id: int = Path(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_async_session),
) -> VersionOperationResponse:
    """
    Move a version to another workflow status.

    Returns 422 for an edge the workflow does not define (or missing publish
    requirements), 403 when the user lacks the edge's roles, and 409 when the
    version was moved concurrently.
    """
    version = await version_store.get(db, version_id)
    version = await workflow_service.transition(
        db, version, data.to_status, actor, comment=data.comment,
    )
    return await _operation_response(db, version)


@router.post(
    "/{version_id}/restore",
    response_model=VersionOperationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def restore_version(
    version_id: int = Path(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_async_session),
) -> VersionOperationResponse:
    """Create a new draft version carrying this version's content."""
    version = await version_store.get(db, version_id)
    restored = await version_service.restore_from_version(db, version, created_by=actor.user_id)
    return await _operation_response(db, restored)


@router.post("/{version_id}/make-live", response_model=VersionOperationResponse)
async def make_version_live(
    data: MakeLiveRequest | None = None,
    version_id: int = Path(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_async_session),
) -> VersionOperationResponse:
    """Switch the live version of already-published content to this version."""
    version = await version_store.get(db, version_id)
    version = await workflow_service.make_version_live(
        db, version, actor, comment=data.comment if data else None,
    )
    return await _operation_response(db, version)


@router.get("/{versionable_type}/{owner_id}", response_model=VersionHistoryResponse)
async def get_version_history(
    versionable_type: VersionableType = Path(...),
    owner_id: int = Path(...),
    _actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_async_session),
) -> VersionHistoryResponse:
    """Get all versions of a post or page, newest first."""
    owner = await _get_owner(db, versionable_type, owner_id)
    versions = await workflow_service.get_version_history(db, owner)
    return VersionHistoryResponse(
        versionable_type=versionable_type,
        versionable_id=owner.id,
        draft_version_id=owner.draft_version_id,
        active_version_id=owner.active_version_id,
        items=[VersionDetailResponse.model_validate(v) for v in versions],
    )


@router.post(
    "/{versionable_type}/{owner_id}",
    response_model=VersionOperationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_version(
    data: VersionCreate,
    versionable_type: VersionableType = Path(...),
    owner_id: int = Path(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_async_session),
) -> VersionOperationResponse:
    """Create a new draft version from the given snapshot or the live content."""
    owner = await _get_owner(db, versionable_type, owner_id)
    version = await version_service.create_version(
        db,
        owner,
        snapshot=data.content_snapshot,
        note=data.version_note,
        created_by=actor.user_id,
    )
    return await _operation_response(db, version)


@router.put(
    "/{versionable_type}/{owner_id}/draft",
    response_model=VersionOperationResponse,
)
async def update_draft_version(
    data: DraftUpdate,
    versionable_type: VersionableType = Path(...),
    owner_id: int = Path(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_async_session),
) -> VersionOperationResponse:
    """
    Replace the draft version's content.

    Edits the current draft in place when there is one; otherwise a new
    draft version is started.
    """
    owner = await _get_owner(db, versionable_type, owner_id)
    if not await workflow_service.can_edit_published(db, owner, actor):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not allowed to edit published content",
        )
    version = await version_service.update_draft_version(
        db, owner, data.content_snapshot, created_by=actor.user_id,
    )
    return await _operation_response(db, version)


@router.post(
    "/{versionable_type}/{owner_id}/schedule",
    response_model=OwnerStateResponse,
)
async def schedule_publish(
    data: ScheduleRequest,
    versionable_type: VersionableType = Path(...),
    owner_id: int = Path(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_async_session),
) -> OwnerStateResponse:
    """Schedule a post's approved draft version for automatic publishing."""
    owner = await _get_owner(db, versionable_type, owner_id)
    if not isinstance(owner, Post):
        raise HTTPException(
            status_code=422,
            detail="Only posts can be scheduled",
        )
    post = await workflow_service.schedule_publish(db, owner, data.scheduled_at, actor)
    return OwnerStateResponse.model_validate(post)
